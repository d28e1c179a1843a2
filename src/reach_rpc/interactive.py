"""Continuation engine for interactive RPC calls."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import Any

from loguru import logger

from reach_rpc.callbacks import CallbackTable, split_callbacks
from reach_rpc.errors import InteractiveCallError, ProtocolViolationError
from reach_rpc.protocol import (
    JSON,
    CallDescriptor,
    CorrelationId,
    Done,
    Kont,
    KontReply,
    normalize_method,
    parse_server_message,
)
from reach_rpc.rpc import RpcClient


class CallState(StrEnum):
    SENDING = "sending"
    AWAITING_SERVER = "awaiting_server"
    DISPATCHING = "dispatching"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({CallState.DONE, CallState.FAILED})


class InteractiveCall:
    """One suspend/resume exchange with the server, from opening request to ``Done``.

    The call alternates strictly between one request and its response. Each
    ``Kont`` response runs a registered callback and posts its result back
    under the server's correlation id; a ``Done`` response ends the call.
    Instances are single-use.
    """

    def __init__(
        self,
        rpc: RpcClient,
        method: str,
        args: Sequence[JSON] = (),
        callbacks: Mapping[str, Any] | None = None,
        *,
        max_steps: int | None = None,
    ) -> None:
        self._rpc = rpc
        self._method = normalize_method(method)
        self._args = tuple(args)
        self._callbacks = dict(callbacks or {})
        self._table = CallbackTable.from_mapping(self._callbacks)
        self._max_steps = max_steps
        self._state = CallState.SENDING
        self._answered: set[CorrelationId] = set()
        self._descriptor: CallDescriptor | None = None

    @property
    def state(self) -> CallState:
        return self._state

    @property
    def method(self) -> str:
        return self._method

    @property
    def descriptor(self) -> CallDescriptor | None:
        return self._descriptor

    @property
    def continuations(self) -> int:
        """Number of callback results sent back so far."""
        return len(self._answered)

    async def run(self) -> JSON:
        if self._state is not CallState.SENDING:
            raise InteractiveCallError(self._state)

        try:
            return await self._run()
        except asyncio.CancelledError:
            logger.info("interactive.cancelled method={} state={}", self._method, self._state)
            self._state = CallState.FAILED
            raise
        except Exception as exc:
            logger.warning(
                "interactive.failed method={} state={} error={}: {}",
                self._method,
                self._state,
                type(exc).__name__,
                exc,
            )
            self._state = CallState.FAILED
            raise

    async def _run(self) -> JSON:
        response = await self._send()
        while True:
            self._transition(CallState.AWAITING_SERVER)
            message = parse_server_message(response)
            if isinstance(message, Done):
                self._transition(CallState.DONE)
                logger.info("interactive.done method={} continuations={}", self._method, self.continuations)
                return message.answer
            self._transition(CallState.DISPATCHING)
            response = await self._dispatch(message)

    async def _send(self) -> JSON:
        split = split_callbacks(self._callbacks)
        self._descriptor = CallDescriptor(
            method=self._method,
            positional_args=self._args,
            values=split.values,
            methods=split.methods,
        )
        logger.debug(
            "interactive.start method={} values={} methods={}",
            self._method,
            sorted(split.values),
            sorted(split.methods),
        )
        return await self._rpc.call(self._descriptor.method, self._descriptor.wire_args())

    async def _dispatch(self, kont: Kont) -> JSON:
        kid = kont.correlation_id
        if kid in self._answered:
            raise ProtocolViolationError(f"correlation id {kid!r} was already answered")
        if self._max_steps is not None and len(self._answered) >= self._max_steps:
            raise ProtocolViolationError(f"interactive call exceeded max_steps={self._max_steps}")

        answer = await self._table.invoke(kont.callback_name, kont.args)
        self._answered.add(kid)
        return await self._rpc.kont(KontReply(correlation_id=kid, answer=answer))

    def _transition(self, state: CallState) -> None:
        logger.debug("interactive.step method={} {} -> {}", self._method, self._state, state)
        self._state = state


async def invoke_interactive(
    rpc: RpcClient,
    method: str,
    args: Sequence[JSON] = (),
    callbacks: Mapping[str, Any] | None = None,
    *,
    max_steps: int | None = None,
) -> JSON:
    """Run one interactive call to completion and return the server's final answer."""

    call = InteractiveCall(rpc, method, args, callbacks, max_steps=max_steps)
    return await call.run()
