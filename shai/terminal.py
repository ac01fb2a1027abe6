"""Full-screen terminal: raw keyboard input and alternate-screen drawing.

Keys come from prompt_toolkit's VT100 input (raw mode, escape-sequence
parsing); frames are drawn with a rich ``Live`` on the alternate screen.
Both are entered through one ExitStack, so leaving the context undoes them
in reverse order on every path, exceptions included.
"""

from __future__ import annotations

import select
import sys
from collections import deque
from contextlib import ExitStack
from typing import Deque, Optional

from prompt_toolkit.input import Input, create_input
from prompt_toolkit.key_binding import KeyPress
from prompt_toolkit.keys import Keys
from rich.console import Console, RenderableType
from rich.live import Live

from .errors import InputClosedError
from .logger import get_logger

log = get_logger(__name__)

# Parser output that never represents a user key.
_IGNORED_KEYS = frozenset({Keys.CPRResponse, Keys.Vt100MouseEvent, Keys.Ignore})


class Terminal:
    """Owns the tty for the duration of a session."""

    def __init__(self, console: Optional[Console] = None, input: Optional[Input] = None):
        self.console = console or Console(stderr=False, highlight=False)
        self._input = input
        self._live: Optional[Live] = None
        self._stack: Optional[ExitStack] = None
        self._pending: Deque[KeyPress] = deque()

    def __enter__(self) -> "Terminal":
        stack = ExitStack()
        try:
            if self._input is None:
                self._input = create_input(sys.stdin)
            stack.callback(self._input.close)
            stack.enter_context(self._input.raw_mode())
            self._live = Live(
                console=self.console,
                screen=True,
                auto_refresh=False,
                redirect_stdout=False,
                redirect_stderr=False,
            )
            stack.enter_context(self._live)
        except BaseException:
            stack.close()
            raise
        self._stack = stack
        log.info("Terminal entered raw mode (%sx%s)", self.console.width, self.console.height)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        stack, self._stack = self._stack, None
        self._live = None
        if stack is not None:
            stack.close()
        log.info("Terminal restored")

    @property
    def height(self) -> int:
        return self.console.size.height

    def draw(self, renderable: RenderableType) -> None:
        if self._live is None:
            raise RuntimeError("Terminal is not active")
        self._live.update(renderable, refresh=True)

    def read_key(self) -> KeyPress:
        """Block until the next key press."""
        while True:
            key = self.poll_key(None)
            if key is not None:
                return key

    def poll_key(self, timeout: Optional[float]) -> Optional[KeyPress]:
        """Return the next key press, waiting at most ``timeout`` seconds."""
        if not self._pending:
            self._fill(timeout)
        return self._pending.popleft() if self._pending else None

    def _fill(self, timeout: Optional[float]) -> None:
        if self._input is None:
            raise RuntimeError("Terminal is not active")
        ready, _, _ = select.select([self._input.fileno()], [], [], timeout)
        if not ready:
            return
        keys = self._input.read_keys()
        if not keys:
            # A lone Escape is held back by the parser until flushed.
            keys = self._input.flush_keys()
        if not keys and self._input.closed:
            # At EOF the descriptor stays readable forever.
            log.error("Terminal input closed")
            raise InputClosedError()
        self._pending.extend(k for k in keys if k.key not in _IGNORED_KEYS)
