"""HTTP transport for the Reach RPC Server."""

from __future__ import annotations

import json
from typing import Any, Protocol, Self

import httpx
from loguru import logger

from reach_rpc.config import DEFAULT_API_KEY, DEFAULT_PORT, ReachSettings
from reach_rpc.errors import TransportError
from reach_rpc.protocol import JSON

API_KEY_HEADER = "X-API-Key"
CONTENT_TYPE = "application/json; charset=utf-8"


class Transport(Protocol):
    """Single request/response exchange with the RPC server."""

    async def post(self, path: str, body: JSON) -> JSON: ...


def format_base_url(host: str, port: int | None = DEFAULT_PORT) -> str:
    """Build ``scheme://host:port``, defaulting to https when no scheme is given."""

    host = host.strip().rstrip("/")
    if not host.startswith(("http://", "https://")):
        host = f"https://{host}"
    if port is None:
        return host
    return f"{host}:{port}"


class HttpTransport:
    """JSON-over-HTTP transport backed by ``httpx.AsyncClient``."""

    def __init__(
        self,
        host: str,
        port: int | None = DEFAULT_PORT,
        *,
        key: str = DEFAULT_API_KEY,
        verify: bool = True,
        timeout: float = 5.0,
        debug: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = format_base_url(host, port)
        self._debug = debug
        if not verify:
            logger.warning("transport.tls_verification_disabled base_url={}", self.base_url)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={API_KEY_HEADER: key, "Content-Type": CONTENT_TYPE},
            verify=verify,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: ReachSettings, **kwargs: Any) -> HttpTransport:
        return cls(
            settings.host,
            settings.port,
            key=settings.key,
            verify=settings.verify,
            timeout=settings.timeout,
            debug=settings.debug,
            **kwargs,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post(self, path: str, body: JSON) -> JSON:
        payload = json.dumps(body)
        if self._debug:
            logger.debug("transport.request path={} body={}", path, payload)
        try:
            response = await self._client.post(path, content=payload)
        except httpx.HTTPError as exc:
            raise TransportError(f"request to {path} failed: {exc!s}", path=path) from exc

        if self._debug:
            logger.debug("transport.response path={} status={} body={}", path, response.status_code, response.text)
        if response.is_error:
            raise TransportError(
                f"server answered {response.status_code} for {path}: {response.text}",
                path=path,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"server sent a non-JSON body for {path}",
                path=path,
                status_code=response.status_code,
            ) from exc
