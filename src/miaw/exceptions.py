from __future__ import annotations


class MiawError(Exception):
    """Base error for the miaw library."""


class NotConnectedError(MiawError):
    """A command or query was issued while the client is not connected."""

    def __init__(self, state: str) -> None:
        super().__init__(f"Not connected (connection state: {state})")
        self.state = state


class ValidationError(MiawError, ValueError):
    """An argument has the wrong shape (phone number, JID, text, ...)."""


class TransportRequestError(MiawError):
    """
    The transport rejected a request.

    `operation` names the transport call so callers can tell failures apart
    without parsing the message.
    """

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class UnsupportedOperationError(TransportRequestError):
    """The active transport does not implement this operation."""

    def __init__(self, operation: str) -> None:
        super().__init__(operation, "not supported by this transport")


class ReconnectLimitError(MiawError):
    """Automatic reconnection gave up after the configured number of attempts."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Max reconnection attempts reached ({attempts})")
        self.attempts = attempts


class SessionError(MiawError):
    """The session directory could not be prepared or purged."""
