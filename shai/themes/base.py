"""Base theme interface."""

from abc import ABC, abstractmethod


class Theme(ABC):
    """Base theme class defining the palette used by the session screen."""

    # Core palette
    ACCENT: str
    BORDER: str
    DIM: str
    TEXT: str

    # Semantic colors
    WARN: str
    ERROR: str

    # Controls bar / input field
    KEY: str
    CURSOR: str

    @abstractmethod
    def __init__(self):
        """Initialize theme colors."""
        pass
