"""Interactive session controller.

One foreground loop owns every piece of mutable state. Each iteration draws
the screen and then does exactly one blocking thing: while idle it waits for
a key, while a request is outstanding it waits at most ``poll_interval`` for
a key and then takes the next item the background request produced.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from prompt_toolkit.buffer import Buffer
from prompt_toolkit.document import Document
from prompt_toolkit.key_binding import KeyPress
from prompt_toolkit.keys import Keys
from rich.console import Console

from .codeblocks import render_for_write
from .config import MIN_PANE_HEIGHT, SessionConfig, TaskMode
from .context import Context
from .errors import ShaiError, StreamError
from .keymap import DisplayState, Focus, Layout, UiIntent, derive_state, handle_key
from .llm import ChatClient, RequestHandle
from .logger import get_logger
from .prompts import Task
from .rendering import NoticeLevel, max_main_height, pane_heights, render_screen, visible_rows
from .response import Response
from .terminal import Terminal

log = get_logger(__name__)


class Disposition(Enum):
    DISCARD = "discard"
    WRITE_RENDERED = "write_rendered"
    WRITE_RAW = "write_raw"


class RequestExit(Enum):
    FINISHED = "finished"
    CANCEL = "cancel"
    EXIT = "exit"
    FAILED = "failed"
    RESUBMIT = "resubmit"


_ACCEPT_DISPOSITIONS = {
    UiIntent.ACCEPT: Disposition.WRITE_RENDERED,
    UiIntent.ACCEPT_RAW: Disposition.WRITE_RAW,
}


class Session:
    """A single ask/explain session from startup until the user leaves."""

    def __init__(self, config: SessionConfig, client: ChatClient, terminal: Terminal,
                 seed_text: str = "", stdout: Optional[Console] = None):
        self.config = config
        self.client = client
        self.terminal = terminal
        self.stdout = stdout or Console(highlight=False)

        self.input = Buffer(document=Document(seed_text, len(seed_text)), multiline=True)
        self.main = Response()
        self.auxiliary = Response()
        self.layout = Layout.INPUT_ONLY
        self.focus = Focus.MAIN
        self.main_height = config.main_pane_height
        self.notice: Optional[str] = None
        self.notice_level = NoticeLevel.ERROR
        self.disposition = Disposition.DISCARD
        self._context: Optional[str] = None

    @property
    def state(self) -> DisplayState:
        return derive_state(
            self.config.mode,
            main_empty=self.main.is_empty(),
            aux_empty=self.auxiliary.is_empty(),
            busy=self.main.busy or self.auxiliary.busy,
        )

    @property
    def context(self) -> str:
        if self._context is None:
            self._context = str(Context.from_config(self.config))
        return self._context

    def handle_key(self, key: KeyPress) -> Optional[UiIntent]:
        return handle_key(key, self.state, self.layout)

    def draw(self) -> None:
        self.terminal.draw(render_screen(self, self.terminal.height))

    # -- main loop ---------------------------------------------------------

    def run(self) -> Disposition:
        """Run the full-screen session, then apply the final disposition."""
        with self.terminal:
            self.mainloop()
        return self.finish()

    def mainloop(self) -> None:
        while True:
            self.draw()
            key = self.terminal.read_key()
            intent = self.handle_key(key)
            if intent is None:
                continue

            if intent is UiIntent.FORCE_EXIT:
                self.disposition = Disposition.DISCARD
                return
            if intent in _ACCEPT_DISPOSITIONS:
                self.disposition = _ACCEPT_DISPOSITIONS[intent]
                return

            if intent is UiIntent.SUBMIT:
                result = self.submit()
            elif intent is UiIntent.EXPLAIN:
                result = self.explain_current()
                if result is RequestExit.RESUBMIT:
                    result = self.submit()
            else:
                self.apply(intent, key)
                continue

            if result is RequestExit.EXIT:
                self.disposition = Disposition.DISCARD
                return

    def submit(self, prompt_text: Optional[str] = None) -> RequestExit:
        """Ask for a new main response; Enter while it streams starts over."""
        while True:
            text = self.input.text if prompt_text is None else prompt_text
            prompt_text = None
            if not text.strip():
                log.info("Ignoring empty prompt")
                return RequestExit.FINISHED

            handle = self._open(text, self._main_task())
            if handle is None:
                return RequestExit.FAILED

            result = self._drain(self.main, handle, on_accept=self._clear_answers)
            if result is not RequestExit.RESUBMIT:
                return result
            log.info("Resubmitting with the current input")

    def explain_current(self) -> RequestExit:
        """Explain the generated command in the auxiliary pane."""
        if self.config.mode is not TaskMode.ASK or self.main.is_empty():
            raise ShaiError("There is no generated command to explain")

        handle = self._open(self.main.text, Task.EXPLAIN)
        if handle is None:
            return RequestExit.FAILED

        # The pane is shown right away so its spinner is visible.
        previous = self.layout, self.focus
        self.layout = Layout.INPUT_WITH_AUXILIARY
        self.focus = Focus.AUXILIARY
        result = self._drain(self.auxiliary, handle, on_accept=self.auxiliary.reset)
        if result is RequestExit.FAILED and self.auxiliary.is_empty():
            self.layout, self.focus = previous
        return result

    def finish(self) -> Disposition:
        """Write the accepted answer to the edit file and/or echo it."""
        text = self.main.text
        edit_file = self.config.edit_file
        if (self.config.mode is TaskMode.ASK and edit_file is not None
                and self.disposition is not Disposition.DISCARD):
            content = render_for_write(text, raw=self.disposition is Disposition.WRITE_RAW)
            try:
                Path(edit_file).write_text(content, encoding="utf-8")
            except OSError as e:
                log.error("Cannot write %s: %s", edit_file, e)
                raise ShaiError(f"Cannot write {edit_file}: {e}") from e
            log.info("Wrote %d characters to %s (%s)", len(content), edit_file, self.disposition.value)

        if self.config.write_stdout:
            self.stdout.print(text, markup=False, highlight=False, soft_wrap=True)
        return self.disposition

    # -- requests ----------------------------------------------------------

    def _main_task(self) -> Task:
        return Task.GENERATE_COMMAND if self.config.mode is TaskMode.ASK else Task.EXPLAIN

    def _open(self, message: str, task: Task) -> Optional[RequestHandle]:
        self.notice = None
        try:
            return self.client.open_stream(message, self.context, task)
        except StreamError as e:
            self._fail(e)
            return None

    def _fail(self, error: StreamError) -> None:
        log.warning("%s", error)
        self.notice = str(error)
        self.notice_level = NoticeLevel.ERROR

    def _clear_answers(self) -> None:
        self.main.reset()
        self.auxiliary.reset()
        self.layout = Layout.INPUT_ONLY
        self.focus = Focus.MAIN

    def _drain(self, slot: Response, handle: RequestHandle,
               on_accept: Optional[Callable[[], None]] = None) -> RequestExit:
        """Stream ``handle`` into ``slot`` until it ends or a key interrupts it.

        ``on_accept`` runs once, when the first fragment arrives or the request
        ends without failing, so a request that fails before producing
        anything leaves the previous answer on screen.
        """
        accepted = False

        def accept():
            nonlocal accepted
            if not accepted:
                accepted = True
                if on_accept is not None:
                    on_accept()

        slot.start()
        handle.start()
        try:
            while True:
                self.draw()

                timeout = 0 if handle.pending else self.config.poll_interval
                key = self.terminal.poll_key(timeout)
                if key is not None:
                    intent = self.handle_key(key)
                    if intent is UiIntent.FORCE_EXIT:
                        accept()
                        return RequestExit.EXIT
                    if intent is UiIntent.CANCEL:
                        log.info("Request cancelled")
                        accept()
                        self.notice = "Request cancelled"
                        self.notice_level = NoticeLevel.WARN
                        return RequestExit.CANCEL
                    if intent is UiIntent.SUBMIT:
                        return RequestExit.RESUBMIT
                    if intent is not None:
                        self.apply(intent, key)

                item = handle.poll()
                if isinstance(item, StreamError):
                    self._fail(item)
                    return RequestExit.FAILED
                if item is not None:
                    accept()
                    slot.append(item)
                elif handle.finished:
                    accept()
                    return RequestExit.FINISHED
                slot.tick()
        finally:
            if not handle.finished:
                handle.cancel()
            slot.finish()

    # -- local intents -----------------------------------------------------

    def apply(self, intent: UiIntent, key: KeyPress) -> None:
        """Apply an intent that only changes what is on screen."""
        if intent is UiIntent.EDIT:
            self._edit(key)
        elif intent is UiIntent.SCROLL_UP:
            self._scroll(-1)
        elif intent is UiIntent.SCROLL_DOWN:
            self._scroll(1)
        elif intent is UiIntent.GROW_MAIN:
            self.main_height = min(self.main_height + 1, max_main_height(self.terminal.height))
        elif intent is UiIntent.SHRINK_MAIN:
            self.main_height = max(MIN_PANE_HEIGHT, self.main_height - 1)
        elif intent is UiIntent.TOGGLE_FOCUS:
            self.focus = Focus.AUXILIARY if self.focus is Focus.MAIN else Focus.MAIN
        else:
            log.debug("Intent %s has no local effect", intent)

    def _focused(self) -> Response:
        if self.layout is Layout.INPUT_WITH_AUXILIARY and self.focus is Focus.AUXILIARY:
            return self.auxiliary
        return self.main

    def _scroll(self, direction: int) -> None:
        main_rows, aux_rows = pane_heights(self.terminal.height, self.layout, self.main_height)
        pane = self._focused()
        rows = aux_rows if pane is self.auxiliary else main_rows
        pane.scroll_by(direction, visible_rows(rows))

    def _edit(self, key: KeyPress) -> None:
        buf = self.input
        k = key.key
        if k == Keys.ControlH:
            buf.delete_before_cursor()
        elif k == Keys.Delete:
            buf.delete()
        elif k == Keys.Left:
            buf.cursor_left()
        elif k == Keys.Right:
            buf.cursor_right()
        elif k == Keys.Up:
            buf.cursor_up()
        elif k == Keys.Down:
            buf.cursor_down()
        elif k == Keys.Home:
            buf.cursor_position += buf.document.get_start_of_line_position()
        elif k == Keys.End:
            buf.cursor_position += buf.document.get_end_of_line_position()
        elif k == Keys.BracketedPaste:
            buf.insert_text(key.data.replace("\r\n", "\n").replace("\r", "\n"))
        else:
            buf.insert_text(key.data)
