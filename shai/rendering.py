"""Screen composition: input field, response panes and the controls bar."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple, TYPE_CHECKING

from prompt_toolkit.buffer import Buffer
from rich.console import RenderableType
from rich.layout import Layout as RichLayout
from rich.panel import Panel
from rich.text import Text

from .config import MIN_PANE_HEIGHT, TaskMode
from .keymap import DisplayState, Focus, Layout, legal_bindings
from .response import Response
from .themes import Theme, get_theme

if TYPE_CHECKING:
    from .session import Session

INPUT_HEIGHT = 3
CONTROLS_HEIGHT = 1
PANE_BORDER_ROWS = 2

INPUT_TITLES = {
    TaskMode.ASK: "What should shai's command do?",
    TaskMode.EXPLAIN: "What command should shai explain?",
}
MAIN_TITLE = "shai"
AUX_TITLE = "explanation"


class NoticeLevel(Enum):
    WARN = "warn"
    ERROR = "error"


def pane_heights(total_height: int, layout: Layout, main_height: int) -> Tuple[int, int]:
    """Rows given to the main and auxiliary panes (borders included)."""
    available = max(0, total_height - INPUT_HEIGHT - CONTROLS_HEIGHT)
    if layout is Layout.INPUT_ONLY:
        return available, 0
    main = min(main_height, available - MIN_PANE_HEIGHT)
    main = max(0, min(max(main, MIN_PANE_HEIGHT), available))
    return main, available - main


def max_main_height(total_height: int) -> int:
    """Tallest main pane that still leaves the auxiliary pane its minimum."""
    available = total_height - INPUT_HEIGHT - CONTROLS_HEIGHT
    return max(MIN_PANE_HEIGHT, available - MIN_PANE_HEIGHT)


def visible_rows(pane_height: int) -> int:
    return max(1, pane_height - PANE_BORDER_ROWS)


def render_input(buffer: Buffer, title: str, theme: Theme) -> Panel:
    doc = buffer.document
    before = doc.current_line_before_cursor
    after = doc.current_line_after_cursor

    line = Text(before, style=theme.TEXT)
    line.append(after[:1] or " ", style=theme.CURSOR)
    line.append(after[1:], style=theme.TEXT)

    if doc.line_count > 1:
        title = f"{title} ({doc.cursor_position_row + 1}/{doc.line_count})"
    return Panel(line, title=Text(title), title_align="left", border_style=theme.ACCENT)


def render_response(response: Response, title: str, rows: int, focused: bool, theme: Theme) -> Panel:
    lines = response.text.splitlines()
    shown = lines[response.offset:response.offset + rows]
    body = Text("\n".join(shown), style=theme.TEXT)
    spinner = str(response.progress)
    full_title = f"{title} {spinner}" if spinner else title
    if response.offset:
        full_title += f" [{response.offset + 1}/{len(lines)}]"
    return Panel(
        body,
        title=Text(full_title),
        title_align="left",
        border_style=theme.ACCENT if focused else theme.BORDER,
    )


def render_controls(state: DisplayState, layout: Layout, notice: Optional[str], theme: Theme,
                    level: NoticeLevel = NoticeLevel.ERROR) -> Text:
    bar = Text(no_wrap=True, overflow="ellipsis")
    for binding in legal_bindings(state, layout):
        if bar:
            bar.append("  ")
        bar.append(binding.key_label, style=theme.KEY)
        bar.append(f" {binding.label}", style=theme.DIM)
    if notice:
        bar.append("  │ ", style=theme.DIM)
        bar.append(notice, style=theme.WARN if level is NoticeLevel.WARN else theme.ERROR)
    return bar


def render_screen(session: "Session", height: int) -> RenderableType:
    theme = get_theme()
    main_rows, aux_rows = pane_heights(height, session.layout, session.main_height)
    aux_visible = session.layout is Layout.INPUT_WITH_AUXILIARY

    regions = [
        RichLayout(
            render_input(session.input, INPUT_TITLES[session.config.mode], theme),
            name="input", size=INPUT_HEIGHT,
        ),
    ]
    main_panel = render_response(
        session.main, MAIN_TITLE, visible_rows(main_rows),
        focused=aux_visible and session.focus is Focus.MAIN, theme=theme,
    )
    if aux_visible:
        regions.append(RichLayout(main_panel, name="main", size=main_rows))
        regions.append(RichLayout(
            render_response(
                session.auxiliary, AUX_TITLE, visible_rows(aux_rows),
                focused=session.focus is Focus.AUXILIARY, theme=theme,
            ),
            name="auxiliary", ratio=1,
        ))
    else:
        regions.append(RichLayout(main_panel, name="main", ratio=1))
    regions.append(RichLayout(
        render_controls(session.state, session.layout, session.notice, theme,
                        session.notice_level),
        name="controls", size=CONTROLS_HEIGHT,
    ))

    root = RichLayout(name="root")
    root.split_column(*regions)
    return root
