"""Response accumulator for the main and auxiliary panes."""

from enum import Enum
from typing import List


class Progress(Enum):
    """Spinner shown in a pane title while its request is outstanding."""

    IDLE = ""
    S0 = "-"
    S1 = "\\"
    S2 = "|"
    S3 = "/"

    def next(self) -> "Progress":
        return _NEXT_PROGRESS[self]

    def __str__(self) -> str:
        return self.value


_NEXT_PROGRESS = {
    Progress.IDLE: Progress.S0,
    Progress.S0: Progress.S1,
    Progress.S1: Progress.S2,
    Progress.S2: Progress.S3,
    Progress.S3: Progress.S0,
}


class Response:
    """Growing text of one answer plus its scroll offset and busy state.

    Fragments are kept in a list and joined lazily, so appending stays cheap
    while the screen is redrawn after every fragment.
    """

    def __init__(self):
        self._parts: List[str] = []
        self._text = ""
        self._dirty = False
        self.offset = 0
        self.progress = Progress.IDLE
        self.busy = False

    @property
    def text(self) -> str:
        if self._dirty:
            self._text = "".join(self._parts)
            self._parts = [self._text]
            self._dirty = False
        return self._text

    def is_empty(self) -> bool:
        return not self._parts or not self.text

    @property
    def line_count(self) -> int:
        return len(self.text.splitlines())

    def append(self, fragment: str) -> None:
        if not fragment:
            return
        self._parts.append(fragment)
        self._dirty = True

    def reset(self) -> None:
        self._parts = []
        self._text = ""
        self._dirty = False
        self.offset = 0

    def start(self) -> None:
        self.busy = True
        self.progress = Progress.S0

    def tick(self) -> None:
        if self.busy:
            self.progress = self.progress.next()

    def finish(self) -> None:
        self.busy = False
        self.progress = Progress.IDLE

    def max_offset(self) -> int:
        return max(1, self.line_count - 1)

    def scroll_by(self, delta: int, page_size: int) -> int:
        """Scroll ``delta`` half pages (negative is up) and return the new offset."""
        step = max(1, page_size // 2)
        self.offset = min(max(self.offset + delta * step, 0), self.max_offset())
        return self.offset
