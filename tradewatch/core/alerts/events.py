from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class QuoteUnavailable:
    symbol: str
    reason: str
    timestamp: datetime

    @classmethod
    def now(cls, symbol: str, reason: str) -> "QuoteUnavailable":
        return cls(symbol=symbol, reason=reason, timestamp=_now())


@dataclass(frozen=True)
class PlanTriggered:
    symbol: str
    user_id: str
    trigger_price: float
    qty: int
    buy_low: float
    buy_high: float
    take_profit: float
    stop_loss: float
    confirmation_requested: bool
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        symbol: str,
        user_id: str,
        trigger_price: float,
        qty: int,
        buy_low: float,
        buy_high: float,
        take_profit: float,
        stop_loss: float,
        confirmation_requested: bool,
    ) -> "PlanTriggered":
        return cls(
            symbol=symbol,
            user_id=user_id,
            trigger_price=trigger_price,
            qty=qty,
            buy_low=buy_low,
            buy_high=buy_high,
            take_profit=take_profit,
            stop_loss=stop_loss,
            confirmation_requested=confirmation_requested,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class FillExecuted:
    symbol: str
    user_id: str
    buy_order_id: str
    qty: int
    forced: bool
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        symbol: str,
        user_id: str,
        buy_order_id: str,
        qty: int,
        forced: bool = False,
    ) -> "FillExecuted":
        return cls(
            symbol=symbol,
            user_id=user_id,
            buy_order_id=buy_order_id,
            qty=qty,
            forced=forced,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class FillAborted:
    symbol: str
    user_id: str
    buy_order_id: str
    status: str
    timestamp: datetime

    @classmethod
    def now(cls, *, symbol: str, user_id: str, buy_order_id: str, status: str) -> "FillAborted":
        return cls(
            symbol=symbol,
            user_id=user_id,
            buy_order_id=buy_order_id,
            status=status,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class FillCheckFailed:
    symbol: str
    user_id: str
    buy_order_id: str
    reason: str
    timestamp: datetime

    @classmethod
    def now(cls, *, symbol: str, user_id: str, buy_order_id: str, reason: str) -> "FillCheckFailed":
        return cls(
            symbol=symbol,
            user_id=user_id,
            buy_order_id=buy_order_id,
            reason=reason,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class ExitOrdersPlaced:
    symbol: str
    user_id: str
    qty: int
    take_profit: float
    stop_loss: float
    take_profit_order_id: str
    stop_loss_order_id: str
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        symbol: str,
        user_id: str,
        qty: int,
        take_profit: float,
        stop_loss: float,
        take_profit_order_id: str,
        stop_loss_order_id: str,
    ) -> "ExitOrdersPlaced":
        return cls(
            symbol=symbol,
            user_id=user_id,
            qty=qty,
            take_profit=take_profit,
            stop_loss=stop_loss,
            take_profit_order_id=take_profit_order_id,
            stop_loss_order_id=stop_loss_order_id,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class ExitOrdersFailed:
    symbol: str
    user_id: str
    qty: int
    take_profit: float
    stop_loss: float
    error: str
    timestamp: datetime
    error_type: Optional[str] = None
    take_profit_order_id: Optional[str] = None

    @classmethod
    def now(
        cls,
        *,
        symbol: str,
        user_id: str,
        qty: int,
        take_profit: float,
        stop_loss: float,
        error: str,
        error_type: Optional[str] = None,
        take_profit_order_id: Optional[str] = None,
    ) -> "ExitOrdersFailed":
        return cls(
            symbol=symbol,
            user_id=user_id,
            qty=qty,
            take_profit=take_profit,
            stop_loss=stop_loss,
            error=error,
            timestamp=_now(),
            error_type=error_type,
            take_profit_order_id=take_profit_order_id,
        )
