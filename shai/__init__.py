"""shai: turn intent into shell commands from your terminal."""

__version__ = "0.2.0"
