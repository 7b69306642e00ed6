from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from tradewatch.core.alerts.fill_monitor import FillMonitor
from tradewatch.core.alerts.trigger import TriggerEvaluator, poll_prices
from tradewatch.core.market_data.history import DEFAULT_HISTORY_MAX, PriceHistoryStore
from tradewatch.core.market_data.ports import QuotePort
from tradewatch.core.notifications.ports import NotificationSink
from tradewatch.core.ops.events import TickCompleted, TickSkipped, TickStarted
from tradewatch.core.orders.ports import EventBus
from tradewatch.core.orders.service import OrderPipeline
from tradewatch.core.plans.models import PendingFill, WatchPlan
from tradewatch.core.plans.registry import AlertRegistry, PendingFillRegistry
from tradewatch.core.sessions.store import SessionStore

DEFAULT_POLL_SECONDS = 60.0


@dataclass
class AlertMonitorConfig:
    interval_seconds: float = DEFAULT_POLL_SECONDS
    history_max: int = DEFAULT_HISTORY_MAX
    sandbox: bool = False

    @classmethod
    def from_env(cls) -> "AlertMonitorConfig":
        return cls(
            interval_seconds=float(os.getenv("TRADEWATCH_POLL_SECS", str(DEFAULT_POLL_SECONDS))),
            history_max=int(os.getenv("TRADEWATCH_HISTORY_MAX", str(DEFAULT_HISTORY_MAX))),
            sandbox=os.getenv("ETRADE_SANDBOX", "1") == "1",
        )


class AlertMonitor:
    """
    Owns the watch-plan and pending-fill state and runs the recurring tick.

    A tick polls one quote per watched symbol, fires plans whose buy zone
    contains the fresh price, then checks every pending BUY for a fill. Ticks
    never overlap: one requested while another is in flight is skipped.
    """

    def __init__(
        self,
        quote_port: QuotePort,
        pipeline: OrderPipeline,
        sink: Optional[NotificationSink] = None,
        *,
        sessions: Optional[SessionStore] = None,
        config: Optional[AlertMonitorConfig] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._config = config or AlertMonitorConfig()
        self._quote_port = quote_port
        self._pipeline = pipeline
        self._event_bus = event_bus
        self._sessions = sessions or SessionStore()
        self._history = PriceHistoryStore(self._config.history_max)
        self._pending_fills = PendingFillRegistry()
        self._alerts = AlertRegistry(self._history, self._pending_fills)
        self._trigger = TriggerEvaluator(
            self._alerts,
            self._history,
            self._sessions,
            sink,
            event_bus=event_bus,
            sandbox=self._config.sandbox,
        )
        self._fill_monitor = FillMonitor(
            self._pending_fills,
            self._alerts,
            pipeline,
            sink,
            event_bus=event_bus,
            sandbox=self._config.sandbox,
        )
        self._tick_running = False
        self._timer: Optional[asyncio.Task] = None
        self._tick_tasks: set[asyncio.Task] = set()

    @property
    def config(self) -> AlertMonitorConfig:
        return self._config

    @property
    def sandbox(self) -> bool:
        return self._config.sandbox

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    @property
    def history(self) -> PriceHistoryStore:
        return self._history

    @property
    def pipeline(self) -> OrderPipeline:
        return self._pipeline

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def tick_in_progress(self) -> bool:
        return self._tick_running

    def add_plan(self, plan: WatchPlan) -> None:
        self._alerts.add_plan(plan)

    def remove_plan(self, symbol: str, user_id: str) -> bool:
        return self._alerts.remove_plan(symbol, user_id)

    def get_plan(self, symbol: str, user_id: str) -> Optional[WatchPlan]:
        return self._alerts.get_plan(symbol, user_id)

    def list_plans(self, user_id: str) -> list[WatchPlan]:
        return self._alerts.list_plans(user_id)

    def add_pending_fill(self, fill: PendingFill) -> None:
        self._pending_fills.add(fill)

    def remove_pending_fill(self, symbol: str, user_id: str) -> bool:
        fill = self._pending_fills.pop(symbol, user_id)
        if fill is None:
            return False
        logger.info(f"Stopped monitoring fill for {fill.symbol} #{fill.buy_order_id}")
        self._alerts.prune_history(fill.symbol)
        return True

    def get_pending_fill(self, symbol: str, user_id: str) -> Optional[PendingFill]:
        return self._pending_fills.get(symbol, user_id)

    def list_pending_fills(self, user_id: str) -> list[PendingFill]:
        return self._pending_fills.list_for_user(user_id)

    async def force_trigger_fill(self, symbol: str, user_id: str) -> bool:
        """Treat a pending BUY as filled without asking the broker (sandbox only)."""
        if not self._config.sandbox:
            raise RuntimeError("Forcing a fill is only available in sandbox mode.")
        fill = self._pending_fills.pop(symbol, user_id)
        if fill is None:
            return False
        logger.info(f"Force-triggering fill for {fill.symbol} #{fill.buy_order_id}")
        self._alerts.prune_history(fill.symbol)
        await self._fill_monitor.place_fill_exits(fill, forced=True)
        return True

    async def tick(self) -> bool:
        """Run one poll/trigger/fill pass. Returns False when skipped for overlap."""
        if self._tick_running:
            logger.warning("Alert monitor tick still running, skipping this one")
            self._publish(TickSkipped.now("tick_in_progress"))
            return False

        self._tick_running = True
        started = time.monotonic()
        try:
            symbols = self._alerts.watched_symbols()
            if not symbols:
                return True
            self._publish(
                TickStarted.now(
                    symbols=tuple(symbols),
                    plans=len(self._alerts),
                    pending_fills=len(self._pending_fills),
                )
            )
            prices = await poll_prices(symbols, self._quote_port, self._history, event_bus=self._event_bus)
            triggered = await self._trigger.evaluate(prices)
            resolved = await self._fill_monitor.check_fills()
            self._publish(
                TickCompleted.now(
                    prices=len(prices),
                    triggered=len(triggered),
                    fills_resolved=resolved,
                    duration_ms=(time.monotonic() - started) * 1000.0,
                )
            )
        finally:
            self._tick_running = False
        return True

    def start(self) -> None:
        if self.is_running:
            return
        logger.info(f"Alert monitor started, polling every {self._config.interval_seconds:g}s")
        self._timer = asyncio.create_task(self._run_timer())

    async def stop(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
        if self._tick_tasks:
            await asyncio.gather(*list(self._tick_tasks), return_exceptions=True)
        logger.info("Alert monitor stopped")

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self._config.interval_seconds)
            task = asyncio.create_task(self._safe_tick())
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)

    async def _safe_tick(self) -> None:
        try:
            await self.tick()
        except Exception as exc:
            logger.error(f"Alert monitor tick failed: {exc}")

    def _publish(self, event: object) -> None:
        if self._event_bus:
            self._event_bus.publish(event)
