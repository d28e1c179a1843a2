"""Single-shot RPC calls."""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from reach_rpc.protocol import JSON, KONT_PATH, KontReply, normalize_method
from reach_rpc.transport import Transport


class RpcClient:
    """One request, one response; the payload shape is never interpreted."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    @property
    def transport(self) -> Transport:
        return self._transport

    async def call(self, method: str, args: Sequence[JSON] | None = None) -> JSON:
        path = normalize_method(method)
        logger.debug("rpc.call path={} argc={}", path, len(args or ()))
        return await self._transport.post(path, list(args or ()))

    async def kont(self, reply: KontReply) -> JSON:
        """Send a callback result back to the server."""
        logger.debug("rpc.kont kid={}", reply.correlation_id)
        return await self._transport.post(KONT_PATH, reply.wire_args())
