from __future__ import annotations

import asyncio
import gc
from typing import Any

import pytest

from reach_rpc.errors import (
    CallbackError,
    InteractiveCallError,
    ProtocolViolationError,
    ServerError,
    TransportError,
    UnknownCallbackError,
)
from reach_rpc.interactive import CallState, InteractiveCall, invoke_interactive
from reach_rpc.rpc import RpcClient


def _kont(name: str, kid: Any, *args: Any) -> dict[str, Any]:
    return {"t": "Kont", "m": name, "kid": kid, "args": list(args)}


def _done(answer: Any) -> dict[str, Any]:
    return {"t": "Done", "ans": answer}


@pytest.mark.asyncio
async def test_immediate_done_sends_no_continuation(scripted_transport) -> None:
    transport = scripted_transport([_done(42)])

    result = await invoke_interactive(RpcClient(transport), "/m", [], {})

    assert result == 42
    assert transport.requests == [("/m", [{}, {}])]


@pytest.mark.asyncio
async def test_single_callback_round_trip(scripted_transport) -> None:
    transport = scripted_transport([_kont("getHand", "k1"), _done("ok")])
    calls: list[tuple[Any, ...]] = []

    def get_hand(*args: Any) -> int:
        calls.append(args)
        return 1

    result = await invoke_interactive(RpcClient(transport), "/m", [], {"getHand": get_hand})

    assert result == "ok"
    assert calls == [()]
    assert transport.requests == [
        ("/m", [{}, {"getHand": True}]),
        ("/kont", ["k1", 1]),
    ]


@pytest.mark.asyncio
async def test_unknown_tag_fails_without_further_requests(scripted_transport) -> None:
    transport = scripted_transport([{"t": "Weird"}])
    call = InteractiveCall(RpcClient(transport), "/m")

    with pytest.raises(ProtocolViolationError, match="Weird"):
        await call.run()

    assert call.state is CallState.FAILED
    assert transport.paths == ["/m"]


@pytest.mark.asyncio
async def test_descriptor_carries_args_values_and_methods(scripted_transport) -> None:
    transport = scripted_transport([_done(None)])
    call = InteractiveCall(
        RpcClient(transport),
        "backend/Alice",
        ["ctc-alice"],
        {"wager": "5000000", "deadline": 10, "getHand": lambda: 0},
    )

    await call.run()

    assert call.descriptor is not None
    assert call.descriptor.method == "/backend/Alice"
    assert transport.requests == [
        ("/backend/Alice", ["ctc-alice", {"wager": "5000000", "deadline": 10}, {"getHand": True}]),
    ]


@pytest.mark.asyncio
async def test_many_konts_echo_each_token_once(scripted_transport) -> None:
    hands = iter([0, 2, 1])
    outcomes: list[int] = []
    transport = scripted_transport(
        [
            _kont("getHand", "k1"),
            _kont("getHand", "k2"),
            _kont("seeOutcome", 3, 2),
            _kont("getHand", "k4"),
            _done("finished"),
        ]
    )
    call = InteractiveCall(
        RpcClient(transport),
        "/backend/Bob",
        ["ctc"],
        {"getHand": lambda: next(hands), "seeOutcome": outcomes.append},
    )

    result = await call.run()

    assert result == "finished"
    assert call.state is CallState.DONE
    assert call.continuations == 4
    assert transport.requests[1:] == [
        ("/kont", ["k1", 0]),
        ("/kont", ["k2", 2]),
        ("/kont", [3, None]),
        ("/kont", ["k4", 1]),
    ]
    assert outcomes == [2]


@pytest.mark.asyncio
async def test_async_callbacks_are_awaited(scripted_transport) -> None:
    async def accept_wager(amount: str) -> str:
        await asyncio.sleep(0)
        return f"accepted:{amount}"

    transport = scripted_transport([_kont("acceptWager", "k1", "5"), _done(True)])

    assert await invoke_interactive(RpcClient(transport), "/backend/Bob", [], {"acceptWager": accept_wager}) is True
    assert transport.requests[-1] == ("/kont", ["k1", "accepted:5"])


@pytest.mark.asyncio
async def test_unknown_callback_fails_without_further_requests(scripted_transport) -> None:
    transport = scripted_transport([_kont("informTimeout", "k1")])
    call = InteractiveCall(RpcClient(transport), "/m", [], {"getHand": lambda: 1})

    with pytest.raises(UnknownCallbackError) as exc_info:
        await call.run()

    assert exc_info.value.name == "informTimeout"
    assert isinstance(exc_info.value, ServerError)
    assert call.state is CallState.FAILED
    assert transport.paths == ["/m"]


@pytest.mark.asyncio
async def test_value_entry_is_not_a_callback(scripted_transport) -> None:
    transport = scripted_transport([_kont("deadline", "k1")])

    with pytest.raises(UnknownCallbackError):
        await invoke_interactive(RpcClient(transport), "/m", [], {"deadline": 10})

    assert transport.paths == ["/m"]


@pytest.mark.asyncio
async def test_callback_failure_sends_no_continuation(scripted_transport) -> None:
    boom = ValueError("bad hand")

    def get_hand() -> int:
        raise boom

    transport = scripted_transport([_kont("getHand", "k1")])
    call = InteractiveCall(RpcClient(transport), "/m", [], {"getHand": get_hand})

    with pytest.raises(CallbackError) as exc_info:
        await call.run()

    assert exc_info.value.error is boom
    assert not isinstance(exc_info.value, ServerError)
    assert call.state is CallState.FAILED
    assert transport.paths == ["/m"]


@pytest.mark.asyncio
async def test_transport_failure_propagates_unchanged(scripted_transport) -> None:
    error = TransportError("server answered 500", path="/kont", status_code=500)
    transport = scripted_transport([_kont("getHand", "k1"), error])
    call = InteractiveCall(RpcClient(transport), "/m", [], {"getHand": lambda: 1})

    with pytest.raises(TransportError) as exc_info:
        await call.run()

    assert exc_info.value is error
    assert call.state is CallState.FAILED


@pytest.mark.asyncio
async def test_reused_correlation_id_is_a_protocol_violation(scripted_transport) -> None:
    transport = scripted_transport([_kont("getHand", "k1"), _kont("getHand", "k1")])
    calls: list[int] = []

    def get_hand() -> int:
        calls.append(1)
        return 1

    with pytest.raises(ProtocolViolationError, match="already answered"):
        await invoke_interactive(RpcClient(transport), "/m", [], {"getHand": get_hand})

    assert calls == [1]
    assert transport.paths == ["/m", "/kont"]


@pytest.mark.asyncio
async def test_max_steps_bounds_callback_rounds(scripted_transport) -> None:
    transport = scripted_transport([_kont("getHand", "k1"), _kont("getHand", "k2")])

    with pytest.raises(ProtocolViolationError, match="max_steps=1"):
        await invoke_interactive(RpcClient(transport), "/m", [], {"getHand": lambda: 1}, max_steps=1)

    assert transport.paths == ["/m", "/kont"]


@pytest.mark.asyncio
async def test_finished_call_cannot_run_again(scripted_transport) -> None:
    transport = scripted_transport([_done(1)])
    call = InteractiveCall(RpcClient(transport), "/m")
    assert await call.run() == 1

    with pytest.raises(InteractiveCallError):
        await call.run()

    assert transport.paths == ["/m"]


@pytest.mark.asyncio
async def test_calls_do_not_share_state(scripted_transport) -> None:
    transport = scripted_transport([_kont("getHand", "k1"), _done("a"), _kont("getHand", "k1"), _done("b")])
    rpc = RpcClient(transport)

    first = await invoke_interactive(rpc, "/m", [], {"getHand": lambda: 1})
    second = await invoke_interactive(rpc, "/m", [], {"getHand": lambda: 2})

    assert (first, second) == ("a", "b")
    assert transport.requests[1] == ("/kont", ["k1", 1])
    assert transport.requests[3] == ("/kont", ["k1", 2])


class _GatedTransport:
    """Answers the opening request with a Kont and records later requests."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, Any]] = []

    async def post(self, path: str, body: Any) -> Any:
        self.requests.append((path, body))
        return _kont("getHand", "k1")


@pytest.mark.asyncio
async def test_cancel_during_callback_sends_no_continuation() -> None:
    transport = _GatedTransport()
    started = asyncio.Event()
    release = asyncio.Event()
    finished: list[int] = []

    async def get_hand() -> int:
        started.set()
        await release.wait()
        finished.append(1)
        return 1

    call = InteractiveCall(RpcClient(transport), "/m", [], {"getHand": get_hand})
    task = asyncio.create_task(call.run())
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    release.set()
    for _ in range(5):
        await asyncio.sleep(0)

    assert finished == [1]
    assert call.state is CallState.FAILED
    assert [path for path, _ in transport.requests] == ["/m"]


@pytest.mark.asyncio
async def test_float_correlation_id_is_echoed_verbatim(scripted_transport) -> None:
    transport = scripted_transport([_kont("getHand", 1.5), _done("ok")])

    assert await invoke_interactive(RpcClient(transport), "/m", [], {"getHand": lambda: 0}) == "ok"
    assert transport.requests[-1] == ("/kont", [1.5, 0])


@pytest.mark.asyncio
async def test_failure_after_cancel_is_collected() -> None:
    loop = asyncio.get_running_loop()
    reported: list[str] = []
    previous_handler = loop.get_exception_handler()
    loop.set_exception_handler(lambda _loop, context: reported.append(context["message"]))

    transport = _GatedTransport()
    started = asyncio.Event()
    release = asyncio.Event()

    async def get_hand() -> int:
        started.set()
        await release.wait()
        raise RuntimeError("hand lost")

    try:
        call = InteractiveCall(RpcClient(transport), "/m", [], {"getHand": get_hand})
        task = asyncio.create_task(call.run())
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        release.set()
        for _ in range(5):
            await asyncio.sleep(0)
        del task, call
        gc.collect()
    finally:
        loop.set_exception_handler(previous_handler)

    assert reported == []
    assert [path for path, _ in transport.requests] == ["/m"]
