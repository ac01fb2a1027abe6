"""Structured error types for shai."""


class ShaiError(Exception):
    """Base error for all shai operations."""
    pass


class ConfigError(ShaiError):
    """Invalid configuration or command-line values."""
    pass


class StreamError(ShaiError):
    """A chat request failed, either during setup or mid-stream."""
    pass


class AuthenticationError(StreamError):
    """Missing or rejected API credential."""

    def __init__(self, message: str):
        super().__init__(f"Authentication failed: {message}")


class TransportError(StreamError):
    """Connection or timeout failure talking to the endpoint."""

    def __init__(self, message: str):
        super().__init__(f"Cannot reach model endpoint: {message}")


class StreamInterruptedError(StreamError):
    """The event stream broke off mid-delivery."""

    def __init__(self, message: str):
        super().__init__(f"Stream interrupted: {message}")


class DeserializationError(StreamError):
    """A frame could not be decoded into the expected chunk shape."""

    def __init__(self, message: str, payload: str = ""):
        self.payload = payload
        super().__init__(f"Unexpected response data: {message}")


class UnknownError(StreamError):
    """Any other failure, wrapped with its original message."""

    def __init__(self, message: str):
        super().__init__(f"Model error: {message}")


class InputClosedError(ShaiError):
    """The keyboard input reached end of file."""

    def __init__(self):
        super().__init__("Terminal input closed")
