class ChatClientError(Exception):
    """Base class for failures surfaced by the chat client."""


class TransportError(ChatClientError):
    """Connection-level failure or a non-OK initial response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StreamError(ChatClientError):
    """The server reported an error frame on an open stream."""
