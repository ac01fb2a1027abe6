"""GitHub Dark theme: the default dark color scheme."""

from .base import Theme


class GithubDarkTheme(Theme):
    """GitHub Dark color palette."""

    def __init__(self):
        self.ACCENT = "#7FA6D9"
        self.BORDER = "#484F58"
        self.DIM = "#6E7681"
        self.TEXT = "#E6EDF3"

        self.WARN = "#E3B341"
        self.ERROR = "#F85149"

        self.KEY = "bold #C8D8EE"
        self.CURSOR = "reverse"
