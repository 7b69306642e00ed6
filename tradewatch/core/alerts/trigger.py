from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from tradewatch.core.alerts.events import PlanTriggered, QuoteUnavailable
from tradewatch.core.alerts.messages import format_buy_alert
from tradewatch.core.market_data.history import PriceHistoryStore
from tradewatch.core.market_data.ports import QuotePort
from tradewatch.core.notifications.ports import NotificationSink
from tradewatch.core.notifications.service import deliver
from tradewatch.core.orders.ports import EventBus
from tradewatch.core.plans.models import WatchPlan
from tradewatch.core.plans.registry import AlertRegistry
from tradewatch.core.sessions.store import SessionStore
from tradewatch.core.trade.states import AWAITING_CONFIRMATION, TRADE_TASK


async def poll_prices(
    symbols: Iterable[str],
    quote_port: QuotePort,
    history: PriceHistoryStore,
    *,
    event_bus: Optional[EventBus] = None,
    now: Optional[datetime] = None,
) -> dict[str, float]:
    """
    Fetch one quote per distinct symbol and record it in the shared history.

    Returns the tick's price snapshot. Symbols whose fetch fails are logged
    and left out of the snapshot; they do not affect other symbols.
    """
    timestamp = now or datetime.now(timezone.utc)
    snapshot: dict[str, float] = {}
    for symbol in sorted({item.strip().upper() for item in symbols if item and item.strip()}):
        try:
            quote = await quote_port.fetch_quote(symbol)
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
        else:
            if quote.ok:
                snapshot[symbol] = float(quote.price)
                history.record(symbol, quote.price, timestamp)
                continue
            reason = quote.error or "no price"
        logger.warning(f"Alert monitor: no price for {symbol}: {reason}")
        if event_bus:
            event_bus.publish(QuoteUnavailable.now(symbol, reason))
    return snapshot


class TriggerEvaluator:
    def __init__(
        self,
        alerts: AlertRegistry,
        history: PriceHistoryStore,
        sessions: SessionStore,
        sink: Optional[NotificationSink],
        *,
        event_bus: Optional[EventBus] = None,
        sandbox: bool = False,
    ) -> None:
        self._alerts = alerts
        self._history = history
        self._sessions = sessions
        self._sink = sink
        self._event_bus = event_bus
        self._sandbox = sandbox

    async def evaluate(self, prices: Mapping[str, float]) -> list[PlanTriggered]:
        fired: list[PlanTriggered] = []
        for plan in self._alerts.snapshot():
            price = prices.get(plan.symbol)
            if price is None or not plan.in_buy_zone(price):
                continue
            if self._alerts.get_plan(plan.symbol, plan.user_id) is not plan:
                # replaced or cancelled while an earlier alert was being delivered
                continue
            logger.info(f"Alert triggered: {plan.symbol} @ ${price} (zone ${plan.buy_low}-${plan.buy_high})")
            fired.append(await self._fire(plan, price))
        return fired

    async def _fire(self, plan: WatchPlan, trigger_price: float) -> PlanTriggered:
        # trend first: removing the plan may prune the symbol's history
        trend = self._history.trend(plan.symbol)
        self._alerts.remove_plan(plan.symbol, plan.user_id)

        qty = plan.order_qty(trigger_price)
        text = format_buy_alert(plan, trigger_price, qty, trend=trend, sandbox=self._sandbox)

        confirmation_requested = False
        if self._sessions.has_active_task(plan.user_id):
            logger.warning(
                f"Alert for {plan.symbol}: user {plan.user_id} has an active task, skipping state setup"
            )
        else:
            self._sessions.start_task(
                plan.user_id,
                TRADE_TASK,
                {
                    "symbol": plan.symbol,
                    "buy_low": plan.buy_low,
                    "buy_high": plan.buy_high,
                    "take_profit": plan.take_profit,
                    "stop_loss": plan.stop_loss,
                    "budget": plan.budget,
                    "fixed_qty": plan.fixed_qty,
                    "trigger_price": trigger_price,
                    "calc_qty": qty,
                },
            )
            self._sessions.update_task(plan.user_id, AWAITING_CONFIRMATION)
            confirmation_requested = True

        await deliver(self._sink, plan.user_id, text)

        event = PlanTriggered.now(
            symbol=plan.symbol,
            user_id=plan.user_id,
            trigger_price=trigger_price,
            qty=qty,
            buy_low=plan.buy_low,
            buy_high=plan.buy_high,
            take_profit=plan.take_profit,
            stop_loss=plan.stop_loss,
            confirmation_requested=confirmation_requested,
        )
        if self._event_bus:
            self._event_bus.publish(event)
        return event
