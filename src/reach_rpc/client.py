"""Reach RPC Server client.

The Reach RPC Server exposes compiled Reach backends over an HTTPS JSON
protocol. Start one locally with ``reach rpc-server``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Self

from reach_rpc.config import ReachSettings, load_settings, update_settings
from reach_rpc.interactive import invoke_interactive
from reach_rpc.protocol import JSON
from reach_rpc.rpc import RpcClient
from reach_rpc.transport import HttpTransport, Transport


class Reach:
    """High-level client for one Reach RPC Server."""

    def __init__(self, transport: Transport, *, max_steps: int | None = None) -> None:
        self._transport = transport
        self._rpc = RpcClient(transport)
        self._max_steps = max_steps

    @classmethod
    def connect(cls, settings: ReachSettings | None = None, **overrides: Any) -> Reach:
        """Create a client over HTTP.

        Args:
            settings: Explicit settings; loaded from ``REACH_RPC_*`` variables when omitted.
            **overrides: Field overrides applied on top of the loaded settings
                (``host``, ``port``, ``key``, ``verify``, ``timeout``, ``debug``, ``max_steps``).
        """
        if settings is None:
            settings = load_settings(**overrides)
        elif overrides:
            settings = update_settings(settings, **overrides)
        return cls(HttpTransport.from_settings(settings), max_steps=settings.max_steps)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        close = getattr(self._transport, "aclose", None)
        if close is not None:
            await close()

    async def rpc(self, method: str, *args: JSON) -> JSON:
        """Invoke a synchronous value RPC method and return its JSON result."""
        return await self._rpc.call(method, args)

    async def rpc_interactive(
        self,
        method: str,
        args: Sequence[JSON] = (),
        callbacks: Mapping[str, Any] | None = None,
    ) -> JSON:
        """Invoke an interactive RPC method such as a participant backend.

        ``callbacks`` maps names to JSON values or to functions (sync or async).
        Functions are exposed to the server as callbacks and receive JSON
        positional arguments.
        """
        return await invoke_interactive(self._rpc, method, args, callbacks, max_steps=self._max_steps)

    async def health(self) -> bool:
        """True when the server reports it is running properly."""
        return await self.rpc("/health") is True

    async def set_provider(self, callbacks: Mapping[str, Any]) -> JSON:
        return await self.rpc_interactive("/stdlib/setProvider", (), callbacks)

    async def parse_currency(self, amount: JSON) -> JSON:
        return await self.rpc("/stdlib/parseCurrency", amount)

    async def format_currency(self, amount: JSON, decimals: int = 4) -> JSON:
        return await self.rpc("/stdlib/formatCurrency", amount, decimals)

    async def new_test_account(self, balance: JSON = 10) -> JSON:
        """Create a funded account on the private test network; returns its handle."""
        starting_balance = await self.parse_currency(balance)
        return await self.rpc("/stdlib/newTestAccount", starting_balance)

    async def balance_of(self, account: JSON) -> JSON:
        return await self.rpc("/stdlib/balanceOf", account)

    async def deploy(self, account: JSON) -> JSON:
        """Deploy a new contract from ``account``; returns the contract handle."""
        return await self.rpc("/acc/deploy", account)

    async def attach(self, account: JSON, contract_info: JSON) -> JSON:
        """Attach ``account`` to an existing contract; returns the contract handle."""
        return await self.rpc("/acc/attach", account, contract_info)

    async def get_contract_info(self, contract: JSON) -> JSON:
        return await self.rpc("/ctc/getInfo", contract)

    async def forget_account(self, account: JSON) -> JSON:
        return await self.rpc("/forget/acc", account)

    async def forget_accounts(self, accounts: Sequence[JSON]) -> JSON:
        return await self.rpc("/forget/acc", *accounts)

    async def forget_contract(self, contract: JSON) -> JSON:
        return await self.rpc("/forget/ctc", contract)
