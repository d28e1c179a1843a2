from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import pytest


class ScriptedTransport:
    """Transport double that replays canned responses and records every request."""

    def __init__(self, responses: Iterable[Any] = ()) -> None:
        self._responses = list(responses)
        self.requests: list[tuple[str, Any]] = []

    async def post(self, path: str, body: Any) -> Any:
        self.requests.append((path, body))
        if not self._responses:
            raise AssertionError(f"unexpected request to {path}")
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    @property
    def paths(self) -> list[str]:
        return [path for path, _ in self.requests]


@pytest.fixture
def scripted_transport() -> type[ScriptedTransport]:
    return ScriptedTransport
