"""quickws error types."""

from __future__ import annotations


class QuickWsError(Exception):
    """Base error for all quickws errors."""


class NotConnectedError(QuickWsError):
    """The connection has no open transport handle."""

    def __init__(self) -> None:
        super().__init__("Connection is not open")


class TransportError(QuickWsError):
    """Failure reported by a transport handle, with the underlying cause."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
