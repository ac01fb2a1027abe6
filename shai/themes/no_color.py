"""No Color theme: plain text output respecting NO_COLOR environment variable."""

from .base import Theme


class NoColorTheme(Theme):
    """No color theme for NO_COLOR environment variable."""

    def __init__(self):
        # All colors are empty: no ANSI codes
        self.ACCENT = ""
        self.BORDER = ""
        self.DIM = ""
        self.TEXT = ""

        self.WARN = ""
        self.ERROR = ""

        # Cursor must stay visible without color
        self.KEY = "bold"
        self.CURSOR = "reverse"
