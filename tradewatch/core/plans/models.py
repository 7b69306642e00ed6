from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PlanValidationError(ValueError):
    """Raised when a plan's buy zone or exit levels are inconsistent."""


@dataclass(frozen=True)
class PlanParams:
    buy_low: float
    buy_high: float
    take_profit: float
    stop_loss: float
    budget: Optional[float] = None
    fixed_qty: Optional[int] = None

    @property
    def midpoint(self) -> float:
        return (self.buy_low + self.buy_high) / 2.0

    def to_plan(self, symbol: str, user_id: str) -> "WatchPlan":
        return WatchPlan(
            symbol=symbol,
            user_id=user_id,
            buy_low=self.buy_low,
            buy_high=self.buy_high,
            take_profit=self.take_profit,
            stop_loss=self.stop_loss,
            budget=self.budget,
            fixed_qty=self.fixed_qty,
        )


@dataclass(frozen=True)
class WatchPlan:
    symbol: str
    user_id: str
    buy_low: float
    buy_high: float
    take_profit: float
    stop_loss: float
    budget: Optional[float] = None
    fixed_qty: Optional[int] = None
    added_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "symbol", self.symbol.strip().upper())

    @property
    def key(self) -> tuple[str, str]:
        return (self.symbol, self.user_id)

    def in_buy_zone(self, price: float) -> bool:
        return self.buy_low <= price <= self.buy_high

    def order_qty(self, price: float) -> int:
        if self.fixed_qty is not None:
            return self.fixed_qty
        return calc_qty(self.budget or 0.0, price)


@dataclass(frozen=True)
class PendingFill:
    symbol: str
    user_id: str
    buy_order_id: str
    account_ref: str
    qty: int
    take_profit: float
    stop_loss: float
    placed_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "symbol", self.symbol.strip().upper())
        object.__setattr__(self, "buy_order_id", str(self.buy_order_id))

    @property
    def key(self) -> tuple[str, str]:
        return (self.symbol, self.user_id)


def calc_qty(budget: float, price: float) -> int:
    if price <= 0:
        return 0
    return int(math.floor(budget / price))


def validate_plan(plan: WatchPlan | PlanParams) -> None:
    if not isinstance(plan, PlanParams) and not plan.symbol:
        raise PlanValidationError("symbol is required")
    if plan.buy_low <= 0:
        raise PlanValidationError("Buy low must be greater than 0.")
    if plan.buy_low >= plan.buy_high:
        raise PlanValidationError("Buy low must be less than buy high.")
    if plan.take_profit <= plan.buy_high:
        raise PlanValidationError("Take profit must be above the buy high.")
    if plan.stop_loss >= plan.buy_low:
        raise PlanValidationError("Stop loss must be below buy low.")
    if plan.stop_loss <= 0:
        raise PlanValidationError("Stop loss must be greater than 0.")
    if (plan.budget is None) == (plan.fixed_qty is None):
        raise PlanValidationError("Exactly one of budget or qty is required.")
    if plan.budget is not None and plan.budget <= 0:
        raise PlanValidationError("Budget must be greater than 0.")
    if plan.fixed_qty is not None and plan.fixed_qty <= 0:
        raise PlanValidationError("Quantity must be greater than 0.")
