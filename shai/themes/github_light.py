"""GitHub Light theme: light color scheme."""

from .base import Theme


class GithubLightTheme(Theme):
    """GitHub Light color palette."""

    def __init__(self):
        self.ACCENT = "#0969DA"
        self.BORDER = "#D0D7DE"
        self.DIM = "#57606A"
        self.TEXT = "#24292F"

        self.WARN = "#9A6700"
        self.ERROR = "#CF222E"

        self.KEY = "bold #0969DA"
        self.CURSOR = "reverse"
