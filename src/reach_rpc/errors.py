"""Exception types for the Reach RPC client."""

from __future__ import annotations

from typing import Any


class ReachError(Exception):
    """Base exception for reach_rpc."""


class ConfigurationError(ReachError):
    """Raised when client settings are invalid."""


class ServerError(ReachError):
    """Base exception for failures on the server side of a call."""


class TransportError(ServerError):
    """Raised when an HTTP exchange with the RPC server fails."""

    def __init__(self, message: str, *, path: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.status_code = status_code


class ProtocolViolationError(ServerError):
    """Raised when the server sends a message the protocol does not allow."""


class UnknownCallbackError(ProtocolViolationError):
    """Raised when the server asks for a callback the client never registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"server requested unknown callback: {name!r}")
        self.name = name


class CallbackError(ReachError):
    """Raised when a client callback fails while the server waits on it."""

    def __init__(self, callback: str, error: BaseException) -> None:
        super().__init__(f"callback {callback!r} failed: {error!s}")
        self.callback = callback
        self.error = error


class InteractiveCallError(ReachError):
    """Raised when an interactive call object is reused after it finished."""

    def __init__(self, state: Any) -> None:
        super().__init__(f"interactive call already finished in state {state}")
        self.state = state
