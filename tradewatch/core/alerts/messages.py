from __future__ import annotations

from collections.abc import Sequence
from typing import Optional

from tradewatch.core.market_data.history import TREND_DOWN, TREND_UP, TrendSummary
from tradewatch.core.orders.models import BuyPlacement, ExitPlacement, OrderVerification
from tradewatch.core.plans.models import PendingFill, PlanParams, WatchPlan
from tradewatch.core.plans.parser import PLAN_SYNTAX, PLAN_SYNTAX_QTY

_DIRECTION_LABELS = {
    TREND_DOWN: "↘ trending down",
    TREND_UP: "↗ trending up",
}


def sandbox_tag(sandbox: bool) -> str:
    return " [🧪 SANDBOX]" if sandbox else ""


def money(value: float) -> str:
    return f"${value:.2f}"


def signed_pct(start: float, end: float) -> str:
    value = ((end - start) / start) * 100.0
    return f"{'+' if value >= 0 else ''}{value:.1f}%"


def format_trend(trend: TrendSummary) -> str:
    sign = "+" if trend.change_pct >= 0 else ""
    direction = _DIRECTION_LABELS.get(trend.direction, "↔ ranging")
    return "\n".join(
        [
            f"📊 *Price trend* (last {trend.duration_minutes} min, {trend.observations} polls)",
            f"{trend.sparkline}  {direction}",
            f"Range: {money(trend.low)} – {money(trend.high)}  |  Change: {sign}{trend.change_pct:.2f}%",
        ]
    )


def format_buy_alert(
    plan: WatchPlan,
    trigger_price: float,
    qty: int,
    *,
    trend: Optional[TrendSummary] = None,
    sandbox: bool = False,
) -> str:
    total = qty * trigger_price
    parts = [
        f"🟢 *{plan.symbol} BUY ALERT*{sandbox_tag(sandbox)}",
        f"Price {money(trigger_price)} is in your buy zone ({money(plan.buy_low)}–{money(plan.buy_high)})",
    ]
    if trend is not None:
        parts.extend(["", format_trend(trend)])
    budget_note = f", from {money(plan.budget)} budget" if plan.budget is not None else ""
    parts.extend(
        [
            "",
            f"Order to place: BUY {qty} shares {plan.symbol} @ {money(trigger_price)} (LIMIT, GTC)",
            f"Total: {money(total)} ({qty} × {money(trigger_price)}{budget_note})",
            f"Take profit: {money(plan.take_profit)} | Stop loss: {money(plan.stop_loss)}",
        ]
    )
    if qty <= 0:
        parts.extend(["", "⚠️ Budget is below the current price; no shares can be bought."])
    parts.extend(["", "Reply *confirm* to place orders, *cancel* to dismiss."])
    return "\n".join(parts)


def _verification_suffix(verification: Optional[OrderVerification]) -> str:
    if verification is not None and verification.found:
        return f" ✓ {verification.status}"
    return ""


def format_exit_success(fill: PendingFill, placement: ExitPlacement, *, sandbox: bool = False) -> str:
    tag = sandbox_tag(sandbox)
    tp_verification = placement.verification.get(placement.take_profit_order_id)
    sl_verification = placement.verification.get(placement.stop_loss_order_id)
    tp_line = (
        f"✅ SELL {fill.qty} {fill.symbol} @ {money(fill.take_profit)} (LIMIT, take profit)"
        f" — #{placement.take_profit_order_id}{_verification_suffix(tp_verification)}{tag}"
    )
    sl_line = (
        f"✅ SELL {fill.qty} {fill.symbol} @ {money(fill.stop_loss)} (STOP, stop loss)"
        f" — #{placement.stop_loss_order_id}{_verification_suffix(sl_verification)}{tag}"
    )
    return "\n".join(
        [
            f"🎯 *{fill.symbol} BUY FILLED!*{tag}",
            f"{fill.qty} shares bought (order #{fill.buy_order_id}).",
            "",
            "Exit orders placed:",
            tp_line,
            sl_line,
            "",
            "Good luck! 🤞",
        ]
    )


def format_exit_failure(fill: PendingFill, error: BaseException) -> str:
    take_profit_order_id = getattr(error, "take_profit_order_id", None)
    lines = [f"⚠️ *{fill.symbol} BUY FILLED* — but exit orders failed: {error}", ""]
    if take_profit_order_id:
        lines.append(f"✅ Take profit is live: SELL @ {money(fill.take_profit)} (Order #{take_profit_order_id})")
        lines.append("")
    lines.append("Please manually place:")
    if not take_profit_order_id:
        lines.append(f"• SELL {fill.qty} {fill.symbol} @ {money(fill.take_profit)} (LIMIT, GTC, take profit)")
    lines.append(f"• SELL {fill.qty} {fill.symbol} @ {money(fill.stop_loss)} (STOP, GTC, stop loss)")
    return "\n".join(lines)


def format_fill_aborted(fill: PendingFill, status: str) -> str:
    return (
        f"⚠️ Your BUY order for *{fill.symbol}* (#{fill.buy_order_id}) was {status}.\n"
        "No exit orders were placed."
    )


def format_buy_placed(
    symbol: str,
    qty: int,
    limit_price: float,
    take_profit: float,
    stop_loss: float,
    placement: BuyPlacement,
    *,
    sandbox: bool = False,
) -> str:
    verification = placement.verified
    status = f" ✓ {verification.status}" if verification and verification.found else " ⚠️ unverified"
    return (
        f"✅ BUY {qty} {symbol} @ {money(limit_price)} (LIMIT, GTC) — #{placement.order_id}{status}"
        f"{sandbox_tag(sandbox)}\n\n"
        f"Monitoring for fill — TP ({money(take_profit)}) and SL ({money(stop_loss)}) "
        "will be placed automatically once the buy executes."
    )


def format_plan_added(
    symbol: str,
    params: PlanParams,
    *,
    estimated_qty: int,
    poll_seconds: float = 60,
    sandbox: bool = False,
) -> str:
    midpoint = params.midpoint
    if params.budget is not None:
        size_line = f"💰 Budget: {money(params.budget)} (~{estimated_qty} shares at midpoint {money(midpoint)})"
    else:
        size_line = f"💰 Quantity: {estimated_qty} shares"
    tag = sandbox_tag(sandbox)
    return "\n".join(
        [
            f"✅ Trade plan set for *{symbol}*",
            f"📈 Buy zone: {money(params.buy_low)} – {money(params.buy_high)}",
            f"🎯 Take profit: {money(params.take_profit)} ({signed_pct(midpoint, params.take_profit)} from midpoint)",
            f"🛑 Stop loss: {money(params.stop_loss)} ({signed_pct(midpoint, params.stop_loss)} from midpoint)",
            size_line,
            f"{tag.strip() + ' ' if tag else ''}Monitoring price every {poll_seconds:g}s...",
        ]
    )


def format_plan_list(plans: Sequence[WatchPlan], fills: Sequence[PendingFill]) -> str:
    lines: list[str] = []
    if plans:
        lines.append("*Price Alerts (watching):*")
        for plan in sorted(plans, key=lambda item: item.symbol):
            size = f"{plan.fixed_qty} shares" if plan.fixed_qty is not None else f"{money(plan.budget or 0.0)} budget"
            lines.append(
                f"• *{plan.symbol}*: buy {money(plan.buy_low)}–{money(plan.buy_high)} | "
                f"TP {money(plan.take_profit)} | SL {money(plan.stop_loss)} | {size}"
            )
    if fills:
        if lines:
            lines.append("")
        lines.append("*Awaiting Fill (BUY placed, exits pending):*")
        for fill in sorted(fills, key=lambda item: item.symbol):
            lines.append(
                f"• *{fill.symbol}*: BUY {fill.qty} shares #{fill.buy_order_id} | "
                f"TP {money(fill.take_profit)} | SL {money(fill.stop_loss)}"
            )
    if not lines:
        return "No active trade alerts or pending fills.\nUse /trade TICKER to set one."
    return "\n".join(lines)


def format_plan_prompt(current_price: float) -> str:
    example = (
        f"buy {current_price * 0.96:.2f} {current_price * 0.98:.2f} "
        f"tp {current_price * 1.10:.2f} sl {current_price * 0.94:.2f} budget 1000"
    )
    return (
        f"Current price: *{money(current_price)}*\n\n"
        "Enter your trade plan:\n"
        f"`{PLAN_SYNTAX}`\n"
        "or\n"
        f"`{PLAN_SYNTAX_QTY}`\n\n"
        "Example:\n"
        f"`{example}`"
    )


def format_parse_failure() -> str:
    return (
        "Could not parse trade plan. Expected format:\n"
        f"`{PLAN_SYNTAX}`\n"
        "or\n"
        f"`{PLAN_SYNTAX_QTY}`\n\n"
        "Example: `buy 70 72.50 tp 81.30 sl 68 budget 1000`"
    )
