from __future__ import annotations

from tradewatch.cli import event_printer
from tradewatch.cli.event_printer import print_event
from tradewatch.core.alerts.events import ExitOrdersFailed, FillExecuted, PlanTriggered
from tradewatch.core.ops.events import TickCompleted


def test_plan_triggered_line(capsys) -> None:
    event = PlanTriggered.now(
        symbol="AAPL",
        user_id="u1",
        trigger_price=171.0,
        qty=5,
        buy_low=170.0,
        buy_high=172.0,
        take_profit=185.0,
        stop_loss=165.0,
        confirmation_requested=False,
    )

    assert print_event(event) is True

    out = capsys.readouterr().out
    assert "PlanTriggered: AAPL @ 171.00 zone=170.00-172.00 qty=5 (no confirmation, user busy)" in out


def test_forced_fill_and_exit_failure_lines(capsys) -> None:
    print_event(FillExecuted.now(symbol="AAPL", user_id="u1", buy_order_id="1001", qty=5, forced=True))
    print_event(
        ExitOrdersFailed.now(
            symbol="AAPL",
            user_id="u1",
            qty=5,
            take_profit=185.0,
            stop_loss=165.0,
            error="[400] bad",
        )
    )

    out = capsys.readouterr().out
    assert "BuyFilled: AAPL #1001 qty=5 (forced)" in out
    assert "ExitsFailed: AAPL qty=5 error=[400] bad" in out


def test_tick_events_hidden_by_default(capsys) -> None:
    event = TickCompleted.now(prices=1, triggered=0, fills_resolved=0, duration_ms=3.0)

    assert print_event(event) is False
    assert capsys.readouterr().out == ""


def test_unknown_events_are_ignored() -> None:
    assert print_event(object()) is False


def test_partial_exit_failure_names_live_take_profit(capsys) -> None:
    print_event(
        ExitOrdersFailed.now(
            symbol="AAPL",
            user_id="u1",
            qty=5,
            take_profit=185.0,
            stop_loss=165.0,
            error="[400] stop rejected",
            take_profit_order_id="1002",
        )
    )

    assert "ExitsFailed: AAPL qty=5 tp=#1002 error=[400] stop rejected" in capsys.readouterr().out


def test_prompting_printer_lines_start_with_timestamp(capsys, monkeypatch) -> None:
    monkeypatch.setattr(event_printer, "readline", None)
    handler = event_printer.make_prompting_event_printer("tradewatch> ")

    handler(FillExecuted.now(symbol="AAPL", user_id="u1", buy_order_id="1001", qty=5))
    handler(object())

    out = capsys.readouterr().out
    line, prompt = out.split("\n")
    assert line.startswith("[")
    assert line.endswith("] BuyFilled: AAPL #1001 qty=5")
    assert prompt == "tradewatch> "
