"""Reach RPC CLI entry point."""

from __future__ import annotations

from reach_rpc.cli import app

if __name__ == "__main__":
    app()
