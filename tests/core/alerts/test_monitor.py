from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from tradewatch.adapters.broker.paper_order_port import PaperOrderPort
from tradewatch.core.alerts.monitor import AlertMonitor, AlertMonitorConfig
from tradewatch.core.market_data.models import Quote
from tradewatch.core.ops.events import TickCompleted, TickSkipped, TickStarted
from tradewatch.core.orders.models import OrderStatus
from tradewatch.core.orders.service import OrderPipeline
from tradewatch.core.plans.models import PendingFill, WatchPlan
from tradewatch.core.trade.states import AWAITING_CONFIRMATION

_T0 = datetime(2026, 3, 2, 14, 30, tzinfo=timezone.utc)


def _run(coro):
    return asyncio.run(coro)


class _FakeBus:
    def __init__(self) -> None:
        self.events: list[object] = []

    def publish(self, event: object) -> None:
        self.events.append(event)

    def subscribe(self, event_type, handler):
        return lambda: None


class _FakeQuotes:
    def __init__(self, prices: dict) -> None:
        self.prices = prices
        self.calls: list[str] = []

    async def fetch_quote(self, symbol: str) -> Quote:
        self.calls.append(symbol)
        return Quote(symbol=symbol, timestamp=_T0, price=self.prices[symbol])


class _SlowQuotes(_FakeQuotes):
    def __init__(self, prices: dict) -> None:
        super().__init__(prices)
        self.release = asyncio.Event()

    async def fetch_quote(self, symbol: str) -> Quote:
        await self.release.wait()
        return await super().fetch_quote(symbol)


class _FakeSink:
    def __init__(self) -> None:
        self.sent: list = []

    async def send(self, notification) -> None:
        self.sent.append(notification)


def _plan(symbol: str = "AAPL", user_id: str = "u1") -> WatchPlan:
    return WatchPlan(
        symbol=symbol,
        user_id=user_id,
        buy_low=170.0,
        buy_high=172.0,
        take_profit=185.0,
        stop_loss=165.0,
        budget=1000.0,
    )


def _monitor(quotes, *, sandbox: bool = False, broker: PaperOrderPort | None = None):
    broker = broker or PaperOrderPort()
    bus = _FakeBus()
    sink = _FakeSink()
    monitor = AlertMonitor(
        quotes,
        OrderPipeline(broker, bus),
        sink,
        config=AlertMonitorConfig(interval_seconds=60.0, sandbox=sandbox),
        event_bus=bus,
    )
    return monitor, broker, sink, bus


def _pending(monitor: AlertMonitor, order_id: str, symbol: str = "AAPL") -> PendingFill:
    fill = PendingFill(
        symbol=symbol,
        user_id="u1",
        buy_order_id=order_id,
        account_ref="paper-brokerage",
        qty=5,
        take_profit=185.0,
        stop_loss=165.0,
    )
    monitor.add_pending_fill(fill)
    return fill


def test_tick_with_nothing_watched_makes_no_calls() -> None:
    quotes = _FakeQuotes({})
    monitor, _broker, _sink, bus = _monitor(quotes)

    assert _run(monitor.tick()) is True

    assert quotes.calls == []
    assert bus.events == []


def test_tick_fires_plan_in_zone() -> None:
    quotes = _FakeQuotes({"AAPL": 171.0})
    monitor, _broker, sink, bus = _monitor(quotes)
    monitor.add_plan(_plan())

    _run(monitor.tick())

    assert monitor.list_plans("u1") == []
    assert monitor.sessions.get("u1").state == AWAITING_CONFIRMATION
    assert len(sink.sent) == 1
    (started,) = [event for event in bus.events if isinstance(event, TickStarted)]
    assert started.symbols == ("AAPL",)
    (completed,) = [event for event in bus.events if isinstance(event, TickCompleted)]
    assert completed.triggered == 1
    assert completed.prices == 1


def test_tick_polls_symbols_shared_by_users_once() -> None:
    quotes = _FakeQuotes({"AAPL": 180.0})
    monitor, _broker, _sink, _bus = _monitor(quotes)
    monitor.add_plan(_plan(user_id="u1"))
    monitor.add_plan(_plan(user_id="u2"))

    _run(monitor.tick())

    assert quotes.calls == ["AAPL"]
    assert len(monitor.history.observations("AAPL")) == 1


def test_pending_fill_symbol_is_still_polled() -> None:
    quotes = _FakeQuotes({"AAPL": 180.0})
    monitor, broker, _sink, _bus = _monitor(quotes)
    placement = _run(monitor.pipeline.place_buy("AAPL", 5, 171.0))
    _pending(monitor, placement.order_id)

    _run(monitor.tick())

    assert quotes.calls == ["AAPL"]
    assert monitor.get_pending_fill("AAPL", "u1") is not None

    broker.set_status(placement.order_id, OrderStatus.EXECUTED)
    _run(monitor.tick())

    assert monitor.get_pending_fill("AAPL", "u1") is None
    assert monitor.history.symbols() == set()


def test_overlapping_tick_is_skipped() -> None:
    quotes = _SlowQuotes({"AAPL": 180.0})
    monitor, _broker, _sink, bus = _monitor(quotes)
    monitor.add_plan(_plan())

    async def scenario():
        first = asyncio.create_task(monitor.tick())
        await asyncio.sleep(0)
        assert monitor.tick_in_progress is True
        skipped = await monitor.tick()
        quotes.release.set()
        return await first, skipped

    first, skipped = _run(scenario())

    assert first is True
    assert skipped is False
    assert quotes.calls == ["AAPL"]
    assert monitor.tick_in_progress is False
    assert [event.reason for event in bus.events if isinstance(event, TickSkipped)] == ["tick_in_progress"]


def test_remove_pending_fill_stops_monitoring() -> None:
    monitor, _broker, _sink, _bus = _monitor(_FakeQuotes({}))
    _pending(monitor, "1001")
    monitor.history.record("AAPL", 171.0)

    assert monitor.remove_pending_fill("aapl", "u1") is True
    assert monitor.remove_pending_fill("AAPL", "u1") is False
    assert monitor.history.symbols() == set()


def test_force_trigger_fill_places_exits_in_sandbox() -> None:
    monitor, broker, sink, _bus = _monitor(_FakeQuotes({}), sandbox=True)
    _pending(monitor, "1001")

    assert _run(monitor.force_trigger_fill("AAPL", "u1")) is True

    assert monitor.list_pending_fills("u1") == []
    assert len([order for order in broker.all_orders() if order.action == "SELL"]) == 2
    assert "[🧪 SANDBOX]" in sink.sent[0].text
    assert _run(monitor.force_trigger_fill("AAPL", "u1")) is False


def test_force_trigger_fill_refused_outside_sandbox() -> None:
    monitor, _broker, _sink, _bus = _monitor(_FakeQuotes({}))
    _pending(monitor, "1001")

    with pytest.raises(RuntimeError, match="sandbox"):
        _run(monitor.force_trigger_fill("AAPL", "u1"))

    assert monitor.get_pending_fill("AAPL", "u1") is not None


def test_start_and_stop_timer() -> None:
    quotes = _FakeQuotes({"AAPL": 180.0})
    broker = PaperOrderPort()
    monitor = AlertMonitor(
        quotes,
        OrderPipeline(broker),
        config=AlertMonitorConfig(interval_seconds=0.01),
    )
    monitor.add_plan(_plan())

    async def scenario():
        monitor.start()
        assert monitor.is_running
        await asyncio.sleep(0.05)
        await monitor.stop()
        return monitor.is_running

    assert _run(scenario()) is False
    assert quotes.calls


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRADEWATCH_POLL_SECS", "15")
    monkeypatch.setenv("TRADEWATCH_HISTORY_MAX", "10")
    monkeypatch.setenv("ETRADE_SANDBOX", "0")

    config = AlertMonitorConfig.from_env()

    assert config.interval_seconds == 15.0
    assert config.history_max == 10
    assert config.sandbox is False
