from __future__ import annotations

import asyncio
from dataclasses import dataclass

from tradewatch.adapters.eventbus.in_process import InProcessEventBus


@dataclass(frozen=True)
class _Ping:
    value: int


@dataclass(frozen=True)
class _Pong:
    value: int


def test_publish_without_loop_dispatches_inline_by_type() -> None:
    bus = InProcessEventBus()
    pings: list[int] = []
    everything: list[object] = []
    bus.subscribe(_Ping, lambda event: pings.append(event.value))
    bus.subscribe(object, everything.append)

    bus.publish(_Ping(1))
    bus.publish(_Pong(2))

    assert pings == [1]
    assert everything == [_Ping(1), _Pong(2)]


def test_unsubscribe_stops_delivery() -> None:
    bus = InProcessEventBus()
    seen: list[object] = []
    unsubscribe = bus.subscribe(_Ping, seen.append)

    unsubscribe()
    unsubscribe()
    bus.publish(_Ping(1))

    assert seen == []


def test_failing_handler_does_not_reach_publisher_or_other_handlers() -> None:
    bus = InProcessEventBus()
    seen: list[object] = []

    def _broken(event: object) -> None:
        raise RuntimeError("boom")

    bus.subscribe(_Ping, _broken)
    bus.subscribe(_Ping, seen.append)

    bus.publish(_Ping(1))

    assert seen == [_Ping(1)]


def test_running_loop_defers_handlers_and_runs_coroutines() -> None:
    bus = InProcessEventBus()
    seen: list[int] = []

    async def _handler(event: _Ping) -> None:
        seen.append(event.value)

    bus.subscribe(_Ping, _handler)

    async def scenario() -> list[int]:
        bus.publish(_Ping(7))
        assert seen == []
        for _ in range(3):
            await asyncio.sleep(0)
        return list(seen)

    assert asyncio.run(scenario()) == [7]


def test_drain_waits_for_scheduled_and_chained_handlers() -> None:
    bus = InProcessEventBus()
    seen: list[object] = []

    async def _slow(event: _Ping) -> None:
        await asyncio.sleep(0.01)
        seen.append(event)
        bus.publish(_Pong(event.value))

    bus.subscribe(_Ping, _slow)
    bus.subscribe(_Pong, seen.append)

    async def scenario() -> int:
        bus.publish(_Ping(1))
        await bus.drain()
        return bus.pending

    assert asyncio.run(scenario()) == 0
    assert seen == [_Ping(1), _Pong(1)]


def test_failing_coroutine_handler_is_logged_and_released() -> None:
    bus = InProcessEventBus()
    seen: list[int] = []

    async def _broken(event: _Ping) -> None:
        raise RuntimeError("boom")

    async def _fine(event: _Ping) -> None:
        seen.append(event.value)

    bus.subscribe(_Ping, _broken)
    bus.subscribe(_Ping, _fine)

    async def scenario() -> int:
        bus.publish(_Ping(3))
        await bus.drain()
        return bus.pending

    assert asyncio.run(scenario()) == 0
    assert seen == [3]


def test_coroutine_handler_without_loop_runs_to_completion() -> None:
    bus = InProcessEventBus()
    seen: list[int] = []

    async def _handler(event: _Ping) -> None:
        seen.append(event.value)

    bus.subscribe(_Ping, _handler)
    bus.publish(_Ping(5))

    assert seen == [5]
