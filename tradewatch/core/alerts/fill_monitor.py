from __future__ import annotations

from typing import Optional

from loguru import logger

from tradewatch.core.alerts.events import (
    ExitOrdersFailed,
    ExitOrdersPlaced,
    FillAborted,
    FillCheckFailed,
    FillExecuted,
)
from tradewatch.core.alerts.messages import format_exit_failure, format_exit_success, format_fill_aborted
from tradewatch.core.notifications.ports import NotificationSink
from tradewatch.core.notifications.service import deliver
from tradewatch.core.orders.models import OrderStatus
from tradewatch.core.orders.ports import EventBus
from tradewatch.core.orders.service import OrderPipeline
from tradewatch.core.plans.models import PendingFill
from tradewatch.core.plans.registry import AlertRegistry, PendingFillRegistry

TERMINAL_ABORT_STATUSES = frozenset(
    {
        OrderStatus.CANCELLED.value,
        OrderStatus.EXPIRED.value,
        OrderStatus.REJECTED.value,
    }
)


class FillMonitor:
    """
    Polls the broker for each pending BUY and reacts to terminal states.

    EXECUTED places the exit pair; CANCELLED/EXPIRED/REJECTED drop the entry
    with a notice. Anything else (OPEN, PARTIAL, not listed) leaves the entry
    for the next tick. A failure on one entry never stops the others.
    """

    def __init__(
        self,
        pending_fills: PendingFillRegistry,
        alerts: AlertRegistry,
        pipeline: OrderPipeline,
        sink: Optional[NotificationSink],
        *,
        event_bus: Optional[EventBus] = None,
        sandbox: bool = False,
    ) -> None:
        self._pending_fills = pending_fills
        self._alerts = alerts
        self._pipeline = pipeline
        self._sink = sink
        self._event_bus = event_bus
        self._sandbox = sandbox

    async def check_fills(self) -> int:
        """Check every pending fill once; returns how many entries were resolved."""
        resolved = 0
        for fill in self._pending_fills.snapshot():
            try:
                if await self._check_one(fill):
                    resolved += 1
            except Exception as exc:
                logger.warning(f"Fill check failed for {fill.symbol} #{fill.buy_order_id}: {exc}")
                self._publish(
                    FillCheckFailed.now(
                        symbol=fill.symbol,
                        user_id=fill.user_id,
                        buy_order_id=fill.buy_order_id,
                        reason=str(exc) or type(exc).__name__,
                    )
                )
        return resolved

    async def _check_one(self, fill: PendingFill) -> bool:
        status = await self._pipeline.get_order_status(fill.account_ref, fill.buy_order_id)
        if status is None:
            logger.warning(f"BUY {fill.symbol} #{fill.buy_order_id} not found in recent orders")
            return False

        normalized = str(status).strip().upper()
        if normalized == OrderStatus.EXECUTED.value:
            if not self._remove(fill):
                return False
            logger.info(f"BUY filled: {fill.symbol} #{fill.buy_order_id}")
            await self.place_fill_exits(fill)
            return True

        if normalized in TERMINAL_ABORT_STATUSES:
            if not self._remove(fill):
                return False
            logger.info(f"BUY {fill.symbol} #{fill.buy_order_id} was {normalized}, dropping")
            await deliver(self._sink, fill.user_id, format_fill_aborted(fill, normalized))
            self._publish(
                FillAborted.now(
                    symbol=fill.symbol,
                    user_id=fill.user_id,
                    buy_order_id=fill.buy_order_id,
                    status=normalized,
                )
            )
            return True

        logger.debug(f"BUY {fill.symbol} #{fill.buy_order_id} still {normalized}")
        return False

    async def place_fill_exits(self, fill: PendingFill, *, forced: bool = False) -> bool:
        """
        Place the take-profit/stop-loss pair for a filled BUY and notify the user.

        The fill must already be out of the registry. Returns True when both
        exit orders were accepted; on failure the user gets manual instructions.
        """
        self._publish(
            FillExecuted.now(
                symbol=fill.symbol,
                user_id=fill.user_id,
                buy_order_id=fill.buy_order_id,
                qty=fill.qty,
                forced=forced,
            )
        )
        try:
            placement = await self._pipeline.place_exit_orders(
                fill.account_ref,
                fill.symbol,
                fill.qty,
                fill.take_profit,
                fill.stop_loss,
            )
        except Exception as exc:
            logger.error(f"Exit orders failed for {fill.symbol}: {exc}")
            await deliver(self._sink, fill.user_id, format_exit_failure(fill, exc))
            self._publish(
                ExitOrdersFailed.now(
                    symbol=fill.symbol,
                    user_id=fill.user_id,
                    qty=fill.qty,
                    take_profit=fill.take_profit,
                    stop_loss=fill.stop_loss,
                    error=str(exc),
                    error_type=type(exc).__name__,
                    take_profit_order_id=getattr(exc, "take_profit_order_id", None),
                )
            )
            return False

        await deliver(
            self._sink,
            fill.user_id,
            format_exit_success(fill, placement, sandbox=self._sandbox),
        )
        self._publish(
            ExitOrdersPlaced.now(
                symbol=fill.symbol,
                user_id=fill.user_id,
                qty=fill.qty,
                take_profit=fill.take_profit,
                stop_loss=fill.stop_loss,
                take_profit_order_id=placement.take_profit_order_id,
                stop_loss_order_id=placement.stop_loss_order_id,
            )
        )
        return True

    def _remove(self, fill: PendingFill) -> bool:
        if not self._pending_fills.discard(fill):
            # cancelled or replaced by the user while the status call was in flight
            return False
        self._alerts.prune_history(fill.symbol)
        return True

    def _publish(self, event: object) -> None:
        if self._event_bus:
            self._event_bus.publish(event)
