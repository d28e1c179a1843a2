"""Command line access to a Reach RPC Server."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import typer
from rich.console import Console

from reach_rpc.client import Reach
from reach_rpc.config import ReachSettings, load_settings
from reach_rpc.errors import ConfigurationError, ReachError
from reach_rpc.logging_utils import configure_logging

app = typer.Typer(name="reach-rpc", help="Talk to a Reach RPC Server.", add_completion=False)
console = Console()


def _parse_arg(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _settings(ctx: typer.Context) -> ReachSettings:
    return ctx.ensure_object(dict)["settings"]


def _run(settings: ReachSettings, method: str, args: list[Any]) -> Any:
    async def _call() -> Any:
        async with Reach.connect(settings) as reach:
            return await reach.rpc(method, *args)

    return asyncio.run(_call())


@app.callback()
def main(
    ctx: typer.Context,
    host: str | None = typer.Option(None, "--host", "-H", help="Server hostname"),
    port: int | None = typer.Option(None, "--port", "-p", help="Server port"),
    key: str | None = typer.Option(None, "--key", help="API key"),
    no_verify: bool = typer.Option(False, "--no-verify", help="Skip TLS certificate verification"),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds to wait for a response"),
    debug: bool = typer.Option(False, "--debug", help="Log request and response bodies"),
) -> None:
    try:
        settings = load_settings(
            host=host,
            port=port,
            key=key,
            verify=False if no_verify else None,
            timeout=timeout,
            debug=True if debug else None,
        )
    except ConfigurationError as exc:
        console.print(f"[red]error:[/red] {exc}")
        raise typer.Exit(2) from exc
    configure_logging(settings.log_level, debug=settings.debug)
    ctx.ensure_object(dict)["settings"] = settings


@app.command()
def health(ctx: typer.Context) -> None:
    """Check that the server is running."""

    settings = _settings(ctx)
    try:
        ok = _run(settings, "/health", []) is True
    except ReachError as exc:
        console.print(f"[red]error:[/red] {exc}")
        raise typer.Exit(1) from exc
    console.print("ok" if ok else "unhealthy")
    if not ok:
        raise typer.Exit(1)


@app.command()
def call(
    ctx: typer.Context,
    method: str = typer.Argument(..., help="RPC method path, e.g. /stdlib/parseCurrency"),
    args: list[str] | None = typer.Argument(None, help="Arguments, parsed as JSON when possible"),
) -> None:
    """Invoke one non-interactive RPC method and print its result."""

    settings = _settings(ctx)
    try:
        result = _run(settings, method, [_parse_arg(raw) for raw in args or []])
    except (ReachError, ValueError) as exc:
        console.print(f"[red]error:[/red] {exc}")
        raise typer.Exit(1) from exc
    console.print_json(data=result)
