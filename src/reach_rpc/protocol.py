"""Wire-level shapes of the interactive Reach RPC protocol.

An interactive call posts ``[*args, values, methods]`` to a method path. Each
response is a JSON object tagged by ``t``:

* ``{"t": "Done", "ans": <json>}`` ends the call.
* ``{"t": "Kont", "m": <name>, "kid": <token>, "args": [...]}`` asks the client
  to run callback ``m`` and post ``[kid, result]`` to :data:`KONT_PATH`.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias

from reach_rpc.errors import ProtocolViolationError

JSON: TypeAlias = Any
CorrelationId: TypeAlias = str | int | float

METHOD_SEPARATOR = "/"
KONT_PATH = "/kont"

TAG_FIELD = "t"
TAG_DONE: Literal["Done"] = "Done"
TAG_KONT: Literal["Kont"] = "Kont"


def normalize_method(method: str) -> str:
    """Return the method path with surrounding whitespace trimmed and a leading separator."""

    path = method.strip()
    if not path or path == METHOD_SEPARATOR:
        raise ValueError("RPC method must be a non-empty path")
    if not path.startswith(METHOD_SEPARATOR):
        path = f"{METHOD_SEPARATOR}{path}"
    return path


@dataclass(frozen=True)
class CallDescriptor:
    """Everything sent with the opening request of one interactive call."""

    method: str
    positional_args: tuple[JSON, ...] = ()
    values: Mapping[str, JSON] = field(default_factory=dict)
    methods: Mapping[str, bool] = field(default_factory=dict)

    def wire_args(self) -> list[JSON]:
        return [*self.positional_args, dict(self.values), dict(self.methods)]


@dataclass(frozen=True)
class Done:
    """Terminal server message."""

    answer: JSON


@dataclass(frozen=True)
class Kont:
    """Server request to run one client callback."""

    callback_name: str
    correlation_id: CorrelationId
    args: tuple[JSON, ...] = ()


ServerMessage: TypeAlias = Done | Kont


@dataclass(frozen=True)
class KontReply:
    """Callback result sent back under the server's correlation token."""

    correlation_id: CorrelationId
    answer: JSON

    def wire_args(self) -> list[JSON]:
        return [self.correlation_id, self.answer]


def parse_server_message(raw: JSON) -> ServerMessage:
    """Decode one interactive response into :class:`Done` or :class:`Kont`."""

    if not isinstance(raw, Mapping):
        raise ProtocolViolationError(f"interactive response is not an object: {raw!r}")

    tag = raw.get(TAG_FIELD)
    if tag == TAG_DONE:
        return Done(answer=raw.get("ans"))
    if tag != TAG_KONT:
        raise ProtocolViolationError(f"illegal interactive message tag: {tag!r}")

    name = raw.get("m")
    if not isinstance(name, str) or not name:
        raise ProtocolViolationError(f"Kont message without callback name: {raw!r}")
    kid = raw.get("kid")
    # bool is an int subclass but never a valid token
    if kid is None or isinstance(kid, bool) or not isinstance(kid, Hashable):
        raise ProtocolViolationError(f"Kont message with invalid correlation id: {kid!r}")
    args = raw.get("args", [])
    if not isinstance(args, list):
        raise ProtocolViolationError(f"Kont message args must be a list, got {type(args).__name__}")
    return Kont(callback_name=name, correlation_id=kid, args=tuple(args))
