from __future__ import annotations

import asyncio

import pytest

import netdiag.engine.runtime as runtime


def _value(value, delay=0.0):
    async def op():
        if delay:
            await asyncio.sleep(delay)
        return value

    return op


def _raises(exc):
    async def op():
        raise exc

    return op


def test_run_bounded_keeps_input_order():
    ops = [_value("slow", 0.05), _value("fast"), _value("middle", 0.01)]
    outcomes = asyncio.run(runtime.run_bounded(ops, timeout_ms=1000))
    assert [o.value for o in outcomes] == ["slow", "fast", "middle"]
    assert all(o.kind == runtime.SUCCESS for o in outcomes)
    assert all(o.elapsed_ms >= 0 for o in outcomes)


def test_run_bounded_timeout_does_not_abort_batch():
    outcomes = asyncio.run(runtime.run_bounded([_value("late", 1.0), _value("ok")], timeout_ms=50))
    assert outcomes[0].kind == runtime.TIMEOUT
    assert outcomes[0].detail == "Timeout"
    assert outcomes[0].elapsed_ms >= 40
    assert outcomes[1].ok and outcomes[1].value == "ok"


def test_run_bounded_exception_becomes_network_error():
    exc = ConnectionResetError("peer went away\nsecond line")
    outcomes = asyncio.run(runtime.run_bounded([_raises(exc)], timeout_ms=500))
    outcome = outcomes[0]
    assert outcome.kind == runtime.NETWORK_ERROR
    assert outcome.detail == "ConnectionResetError: peer went away"
    assert outcome.error is exc


def test_run_bounded_respects_concurrency_limit():
    state = {"active": 0, "peak": 0}

    def make():
        async def op():
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
            await asyncio.sleep(0.01)
            state["active"] -= 1
            return True

        return op

    outcomes = asyncio.run(runtime.run_bounded([make() for _ in range(6)], timeout_ms=1000, concurrency=2))
    assert len(outcomes) == 6
    assert state["peak"] <= 2


def test_run_bounded_empty_and_invalid_input():
    assert asyncio.run(runtime.run_bounded([], timeout_ms=10)) == []
    with pytest.raises(TypeError):
        asyncio.run(runtime.run_bounded(_value(1), timeout_ms=10))
    with pytest.raises(ValueError):
        asyncio.run(runtime.run_bounded([_value(1)], timeout_ms=-1))
    with pytest.raises(ValueError):
        asyncio.run(runtime.run_bounded([_value(1)], timeout_ms=10, concurrency=0))


def test_probe_outcome_invariants():
    with pytest.raises(ValueError):
        runtime.ProbeOutcome("bogus")
    with pytest.raises(ValueError):
        runtime.ProbeOutcome(runtime.SUCCESS, detail="nope")
    assert runtime.ProbeOutcome.refused(3.0).ok is False
    assert runtime.ProbeOutcome.success([1], 1.5).ok is True


def test_error_text_truncates_to_limit():
    text = runtime.error_text(ValueError("x" * 300))
    assert text.startswith("ValueError: ")
    assert len(text) == runtime.MAX_ERROR_LENGTH
    assert runtime.error_text(TimeoutError()) == "TimeoutError"


def test_now_iso_is_utc_zulu():
    assert runtime.now_iso().endswith("Z")


def test_run_coro_sync_inside_running_loop():
    async def inner():
        return 42

    async def outer():
        return runtime._run_coro_sync(inner())

    assert runtime._run_coro_sync(inner()) == 42
    assert asyncio.run(outer()) == 42


def test_in_executor_uses_given_pool():
    async def run():
        with runtime.io_pool(2) as executor:
            return await runtime.in_executor(lambda a, b: a + b, 2, 3, executor=executor)

    assert asyncio.run(run()) == 5


def test_run_bounded_keeps_self_classified_outcomes():
    operations = [
        _value(runtime.ProbeOutcome.refused(0.0, "Transfer refused", value={"ip": "192.0.2.1"}), delay=0.01),
        _value(runtime.ProbeOutcome.ambiguous_error("blocked")),
        _value("plain"),
    ]
    refused, ambiguous, plain = asyncio.run(runtime.run_bounded(operations, timeout_ms=1000))
    assert refused.kind == runtime.REFUSED
    assert refused.value == {"ip": "192.0.2.1"}
    assert refused.detail == "Transfer refused"
    assert refused.elapsed_ms > 0
    assert ambiguous.kind == runtime.AMBIGUOUS_ERROR and ambiguous.ok is False
    assert plain.ok and plain.value == "plain"
