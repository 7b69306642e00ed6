from __future__ import annotations

from typing import Optional

from loguru import logger

from tradewatch.core.market_data.history import PriceHistoryStore
from tradewatch.core.plans.models import PendingFill, WatchPlan, validate_plan

PlanKey = tuple[str, str]


def _key(symbol: str, user_id: str) -> PlanKey:
    return (symbol.strip().upper(), user_id)


class PendingFillRegistry:
    """BUY orders that were accepted by the broker and are waiting for a fill."""

    def __init__(self) -> None:
        self._fills: dict[PlanKey, PendingFill] = {}

    def __len__(self) -> int:
        return len(self._fills)

    def add(self, fill: PendingFill) -> None:
        self._fills[fill.key] = fill
        logger.info(f"Monitoring fill for BUY {fill.symbol} #{fill.buy_order_id} ({fill.qty} shares)")

    def get(self, symbol: str, user_id: str) -> Optional[PendingFill]:
        return self._fills.get(_key(symbol, user_id))

    def pop(self, symbol: str, user_id: str) -> Optional[PendingFill]:
        return self._fills.pop(_key(symbol, user_id), None)

    def discard(self, fill: PendingFill) -> bool:
        """Remove the entry only if it is still this exact fill."""
        current = self._fills.get(fill.key)
        if current is not fill:
            return False
        del self._fills[fill.key]
        return True

    def list_for_user(self, user_id: str) -> list[PendingFill]:
        return [fill for fill in self._fills.values() if fill.user_id == user_id]

    def snapshot(self) -> list[PendingFill]:
        return list(self._fills.values())

    def symbols(self) -> set[str]:
        return {fill.symbol for fill in self._fills.values()}


class AlertRegistry:
    """Active watch plans keyed by (symbol, user_id), last write wins."""

    def __init__(self, history: PriceHistoryStore, pending_fills: PendingFillRegistry) -> None:
        self._plans: dict[PlanKey, WatchPlan] = {}
        self._history = history
        self._pending_fills = pending_fills

    def __len__(self) -> int:
        return len(self._plans)

    def add_plan(self, plan: WatchPlan) -> None:
        validate_plan(plan)
        replaced = plan.key in self._plans
        self._plans[plan.key] = plan
        logger.info(
            f"Trade alert {'replaced' if replaced else 'added'}: {plan.symbol} "
            f"buy ${plan.buy_low}-${plan.buy_high} for user {plan.user_id}"
        )

    def get_plan(self, symbol: str, user_id: str) -> Optional[WatchPlan]:
        return self._plans.get(_key(symbol, user_id))

    def remove_plan(self, symbol: str, user_id: str) -> bool:
        key = _key(symbol, user_id)
        if self._plans.pop(key, None) is None:
            return False
        logger.info(f"Trade alert removed: {key[0]} for user {user_id}")
        self.prune_history(key[0])
        return True

    def list_plans(self, user_id: str) -> list[WatchPlan]:
        return [plan for plan in self._plans.values() if plan.user_id == user_id]

    def snapshot(self) -> list[WatchPlan]:
        return list(self._plans.values())

    def symbols(self) -> set[str]:
        return {plan.symbol for plan in self._plans.values()}

    def watched_symbols(self) -> list[str]:
        return sorted(self.symbols() | self._pending_fills.symbols())

    def is_referenced(self, symbol: str) -> bool:
        normalized = symbol.strip().upper()
        return normalized in self.symbols() or normalized in self._pending_fills.symbols()

    def prune_history(self, symbol: str) -> bool:
        if self.is_referenced(symbol):
            return False
        pruned = self._history.prune(symbol)
        if pruned:
            logger.debug(f"Price history pruned for {symbol.strip().upper()}")
        return pruned
