from __future__ import annotations

import os
import sys

try:
    import readline
except ImportError:
    readline = None

from tradewatch.core.alerts.events import (
    ExitOrdersFailed,
    ExitOrdersPlaced,
    FillAborted,
    FillCheckFailed,
    FillExecuted,
    PlanTriggered,
    QuoteUnavailable,
)
from tradewatch.core.ops.events import TickCompleted, TickSkipped, TickStarted
from tradewatch.core.orders.events import OrderPlaced, OrderVerificationMismatch

_SHOW_TICKS = os.getenv("TRADEWATCH_CLI_SHOW_TICKS", "").strip().lower() in {
    "1",
    "true",
    "yes",
    "y",
    "on",
}


def print_event(event: object) -> bool:
    if isinstance(event, PlanTriggered):
        suffix = "" if event.confirmation_requested else " (no confirmation, user busy)"
        _print_line(
            event.timestamp,
            "PlanTriggered",
            (
                f"{event.symbol} @ {event.trigger_price:.2f} "
                f"zone={event.buy_low:.2f}-{event.buy_high:.2f} qty={event.qty}{suffix}"
            ),
        )
        return True
    if isinstance(event, OrderPlaced):
        _print_line(event.timestamp, "OrderPlaced", f"#{event.order_id} {event.order.describe()}")
        return True
    if isinstance(event, OrderVerificationMismatch):
        status = f" status={event.status}" if event.status else ""
        _print_line(event.timestamp, "OrderUnverified", f"#{event.order_id} {event.reason}{status}")
        return True
    if isinstance(event, FillExecuted):
        forced = " (forced)" if event.forced else ""
        _print_line(
            event.timestamp,
            "BuyFilled",
            f"{event.symbol} #{event.buy_order_id} qty={event.qty}{forced}",
        )
        return True
    if isinstance(event, FillAborted):
        _print_line(event.timestamp, "BuyAborted", f"{event.symbol} #{event.buy_order_id} {event.status}")
        return True
    if isinstance(event, FillCheckFailed):
        _print_line(event.timestamp, "FillCheckFailed", f"{event.symbol} #{event.buy_order_id} {event.reason}")
        return True
    if isinstance(event, ExitOrdersPlaced):
        _print_line(
            event.timestamp,
            "ExitsPlaced",
            (
                f"{event.symbol} qty={event.qty} tp={event.take_profit:.2f} #{event.take_profit_order_id} "
                f"sl={event.stop_loss:.2f} #{event.stop_loss_order_id}"
            ),
        )
        return True
    if isinstance(event, ExitOrdersFailed):
        live = f" tp=#{event.take_profit_order_id}" if event.take_profit_order_id else ""
        _print_line(event.timestamp, "ExitsFailed", f"{event.symbol} qty={event.qty}{live} error={event.error}")
        return True
    if isinstance(event, QuoteUnavailable):
        _print_line(event.timestamp, "QuoteUnavailable", f"{event.symbol} {event.reason}")
        return True
    if isinstance(event, TickSkipped):
        _print_line(event.timestamp, "TickSkipped", event.reason)
        return True
    if isinstance(event, TickStarted):
        if not _SHOW_TICKS:
            return False
        _print_line(event.timestamp, "Tick", f"symbols={','.join(event.symbols)} fills={event.pending_fills}")
        return True
    if isinstance(event, TickCompleted):
        if not _SHOW_TICKS:
            return False
        _print_line(
            event.timestamp,
            "TickDone",
            f"prices={event.prices} triggered={event.triggered} fills={event.fills_resolved} "
            f"{event.duration_ms:.0f}ms",
        )
        return True
    return False


def make_prompting_event_printer(prompt: str):
    def _handler(event: object) -> None:
        buffer = ""
        if readline is not None:
            try:
                buffer = readline.get_line_buffer()
            except Exception:
                buffer = ""
            sys.stdout.write("\r\x1b[2K")
            sys.stdout.flush()
        printed = print_event(event)
        if readline is not None:
            sys.stdout.write(prompt + buffer)
            sys.stdout.flush()
            return
        if printed:
            print(prompt, end="", flush=True)

    return _handler


def _print_line(timestamp, label: str, message: str) -> None:
    if timestamp:
        print(f"[{_format_time(timestamp)}] {label}: {message}")
    else:
        print(f"{label}: {message}")


def _format_time(timestamp) -> str:
    return timestamp.strftime("%H:%M:%S.%f")[:-4]
