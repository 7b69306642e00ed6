from __future__ import annotations

import json
from datetime import datetime, timezone

from tradewatch.adapters.eventbus.in_process import InProcessEventBus
from tradewatch.adapters.logging.jsonl_logger import JsonlEventLogger
from tradewatch.core.alerts.events import PlanTriggered
from tradewatch.core.ops.events import TickStarted
from tradewatch.core.orders.events import OrderPlaced
from tradewatch.core.orders.models import EquityOrder, LimitPrice, OrderSide


def _lines(path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_events_are_appended_as_json_lines(tmp_path) -> None:
    path = tmp_path / "journal" / "events.jsonl"
    logger = JsonlEventLogger(path)
    bus = InProcessEventBus()
    logger.attach(bus)

    bus.publish(TickStarted.now(symbols=("AAPL", "MSFT"), plans=2, pending_fills=0))
    bus.publish(
        OrderPlaced(
            account_ref="acct",
            order=EquityOrder(symbol="AAPL", side=OrderSide.BUY, qty=5, pricing=LimitPrice(171.0)),
            client_order_id="cid",
            order_id="1001",
            timestamp=datetime(2026, 3, 2, 14, 30, tzinfo=timezone.utc),
        )
    )

    first, second = _lines(path)
    assert first["event_type"] == "TickStarted"
    assert first["event"]["symbols"] == ["AAPL", "MSFT"]
    assert second["event_type"] == "OrderPlaced"
    assert second["event"]["order"]["side"] == "BUY"
    assert second["event"]["order"]["pricing"] == {"price": 171.0, "price_type": "LIMIT"}
    assert second["event"]["timestamp"] == "2026-03-02T14:30:00.000000+00:00"


def test_handle_keeps_appending(tmp_path) -> None:
    path = tmp_path / "events.jsonl"
    logger = JsonlEventLogger(path)
    event = PlanTriggered.now(
        symbol="AAPL",
        user_id="u1",
        trigger_price=171.0,
        qty=5,
        buy_low=170.0,
        buy_high=172.0,
        take_profit=185.0,
        stop_loss=165.0,
        confirmation_requested=True,
    )

    logger.handle(event)
    logger.handle(event)

    assert [line["event"]["symbol"] for line in _lines(path)] == ["AAPL", "AAPL"]
    assert logger.path == path
