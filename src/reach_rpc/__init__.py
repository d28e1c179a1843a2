"""Reach RPC - client for the Reach RPC Server interactive protocol."""

from .client import Reach
from .errors import (
    CallbackError,
    ConfigurationError,
    InteractiveCallError,
    ProtocolViolationError,
    ReachError,
    ServerError,
    TransportError,
    UnknownCallbackError,
)
from .interactive import CallState, InteractiveCall, invoke_interactive
from .rpc import RpcClient
from .transport import HttpTransport, Transport

__version__ = "0.1.0"

__all__ = [
    "CallState",
    "CallbackError",
    "ConfigurationError",
    "HttpTransport",
    "InteractiveCall",
    "InteractiveCallError",
    "ProtocolViolationError",
    "Reach",
    "ReachError",
    "RpcClient",
    "ServerError",
    "Transport",
    "TransportError",
    "UnknownCallbackError",
    "invoke_interactive",
]
