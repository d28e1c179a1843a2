"""Callback registry for interactive calls."""

from __future__ import annotations

import asyncio
import functools
import inspect
import json
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from loguru import logger

from reach_rpc.errors import CallbackError, UnknownCallbackError
from reach_rpc.protocol import JSON

Callback: TypeAlias = Callable[..., Any]


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    if len(text) <= width:
        return text

    available = width - len(placeholder)
    if available <= 0:
        return placeholder

    return text[:available] + placeholder


def _render_args(args: Sequence[JSON]) -> str:
    rendered: list[str] = []
    for value in args:
        try:
            text = json.dumps(value, ensure_ascii=False)
        except TypeError:
            text = repr(value)
        rendered.append(_shorten_text(text))
    return ", ".join(rendered)


def is_invocable(value: Any) -> bool:
    return callable(value)


@dataclass(frozen=True)
class CallbackSplit:
    """Plain values and callback markers derived from one callback mapping."""

    values: dict[str, JSON] = field(default_factory=dict)
    methods: dict[str, bool] = field(default_factory=dict)


def split_callbacks(callbacks: Mapping[str, Any]) -> CallbackSplit:
    """Partition a mapping into JSON values and ``name -> True`` callback markers."""

    values: dict[str, JSON] = {}
    methods: dict[str, bool] = {}
    for name, value in callbacks.items():
        if is_invocable(value):
            methods[name] = True
        else:
            values[name] = value
    return CallbackSplit(values=values, methods=methods)


class CallbackTable:
    """Invocable callbacks owned by a single interactive call."""

    def __init__(self, callbacks: Mapping[str, Callback] | None = None) -> None:
        self._callbacks: dict[str, Callback] = dict(callbacks or {})

    @classmethod
    def from_mapping(cls, callbacks: Mapping[str, Any]) -> CallbackTable:
        return cls({name: value for name, value in callbacks.items() if is_invocable(value)})

    def has(self, name: str) -> bool:
        return name in self._callbacks

    def get(self, name: str) -> Callback | None:
        return self._callbacks.get(name)

    def names(self) -> list[str]:
        return sorted(self._callbacks)

    def __len__(self) -> int:
        return len(self._callbacks)

    async def invoke(self, name: str, args: Sequence[JSON] = ()) -> JSON:
        """Run callback ``name`` with positional ``args`` and return its (awaited) result.

        Awaitable results are shielded so cancelling the caller leaves the
        callback to finish on its own terms.
        """
        callback = self.get(name)
        if callback is None:
            raise UnknownCallbackError(name)

        logger.info("callback.call.start name={} {{ {} }}", name, _render_args(args))
        start = time.monotonic()
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                try:
                    result = await asyncio.shield(task)
                except asyncio.CancelledError:
                    task.add_done_callback(functools.partial(_finish_detached, name, start))
                    raise
        except Exception as exc:
            logger.opt(exception=True).warning("callback.call.error name={}", name)
            _log_end(name, start)
            raise CallbackError(name, exc) from exc
        _log_end(name, start)
        return result


def _log_end(name: str, start: float) -> None:
    duration = time.monotonic() - start
    logger.info("callback.call.end name={} duration={:.3f}ms", name, duration * 1000)


def _finish_detached(name: str, start: float, task: asyncio.Future[Any]) -> None:
    # caller was cancelled; retrieve the outcome here
    if task.cancelled():
        logger.info("callback.call.cancelled name={}", name)
        return
    error = task.exception()
    if error is not None:
        logger.opt(exception=error).warning("callback.call.error name={} detached=true", name)
    _log_end(name, start)
