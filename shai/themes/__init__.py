"""Theme system: centralized color management with multiple themes."""

import os
from typing import Optional, Dict, Type

from .base import Theme
from .github_dark import GithubDarkTheme
from .github_light import GithubLightTheme
from .no_color import NoColorTheme

DEFAULT_THEME = "github_dark"

# Theme registry
_THEMES: Dict[str, Type[Theme]] = {
    "github_dark": GithubDarkTheme,
    "github_light": GithubLightTheme,
    "no_color": NoColorTheme,
    "dark": GithubDarkTheme,  # alias
    "light": GithubLightTheme,  # alias
}

# Current active theme
_current_theme: Optional[Theme] = None


def get_theme() -> Theme:
    """Return the currently active theme instance."""
    global _current_theme
    if _current_theme is None:
        _current_theme = NoColorTheme() if os.environ.get("NO_COLOR") else GithubDarkTheme()
    return _current_theme


def set_theme(name: str) -> bool:
    """Set the active theme by name. Returns True if successful."""
    global _current_theme

    if os.environ.get("NO_COLOR"):
        _current_theme = NoColorTheme()
        return True

    theme_class = _THEMES.get(name.lower())
    if theme_class:
        _current_theme = theme_class()
        return True
    return False


def list_themes() -> list[str]:
    """Return list of available theme names."""
    seen = set()
    result = []
    for name, cls in _THEMES.items():
        if cls not in seen:
            result.append(name)
            seen.add(cls)
    return result


__all__ = [
    "Theme",
    "DEFAULT_THEME",
    "get_theme",
    "set_theme",
    "list_themes",
]
