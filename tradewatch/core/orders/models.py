from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class OrderValidationError(ValueError):
    """Raised when an EquityOrder fails validation."""


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class PriceType(str, Enum):
    LIMIT = "LIMIT"
    STOP = "STOP"


class OrderStatus(str, Enum):
    OPEN = "OPEN"
    EXECUTED = "EXECUTED"
    PARTIAL = "PARTIAL"
    INDIVIDUAL_FILLS = "INDIVIDUAL_FILLS"
    CANCEL_REQUESTED = "CANCEL_REQUESTED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    REJECTED = "REJECTED"


ORDER_TERM_GTC = "GOOD_UNTIL_CANCEL"
MARKET_SESSION_REGULAR = "REGULAR"


@dataclass(frozen=True)
class LimitPrice:
    price: float
    price_type: PriceType = field(default=PriceType.LIMIT, init=False)

    def __post_init__(self) -> None:
        _validate_price(self.price, "limit price")


@dataclass(frozen=True)
class StopPrice:
    price: float
    price_type: PriceType = field(default=PriceType.STOP, init=False)

    def __post_init__(self) -> None:
        _validate_price(self.price, "stop price")


OrderPricing = Union[LimitPrice, StopPrice]


@dataclass(frozen=True)
class EquityOrder:
    symbol: str
    side: OrderSide
    qty: int
    pricing: OrderPricing
    order_term: str = ORDER_TERM_GTC
    market_session: str = MARKET_SESSION_REGULAR
    all_or_none: bool = False

    def __post_init__(self) -> None:
        symbol = (self.symbol or "").strip().upper()
        if not symbol:
            raise OrderValidationError("symbol is required")
        object.__setattr__(self, "symbol", symbol)
        if not isinstance(self.side, OrderSide):
            try:
                object.__setattr__(self, "side", OrderSide(str(self.side).strip().upper()))
            except ValueError as exc:
                raise OrderValidationError(f"invalid side: {self.side}") from exc
        if isinstance(self.qty, bool) or not isinstance(self.qty, int) or self.qty <= 0:
            raise OrderValidationError("qty must be a positive whole number of shares")
        if not isinstance(self.pricing, (LimitPrice, StopPrice)):
            raise OrderValidationError("pricing must be LimitPrice or StopPrice")

    @property
    def price_type(self) -> PriceType:
        return self.pricing.price_type

    @property
    def price(self) -> float:
        return self.pricing.price

    def describe(self) -> str:
        return f"{self.side.value} {self.qty} {self.symbol} @ ${self.price:.2f} ({self.price_type.value})"


@dataclass(frozen=True)
class BrokerAccount:
    account_ref: str
    account_id: Optional[str] = None
    institution_type: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class BrokerOrder:
    order_id: str
    status: Optional[str]
    symbol: Optional[str] = None
    action: Optional[str] = None
    qty: Optional[float] = None
    price_type: Optional[str] = None
    limit_price: Optional[float] = None
    stop_price: Optional[float] = None


@dataclass(frozen=True)
class OrderVerification:
    order_id: str
    found: bool
    status: Optional[str] = None
    action: Optional[str] = None
    qty: Optional[float] = None
    price_type: Optional[str] = None
    limit_price: Optional[float] = None
    stop_price: Optional[float] = None


@dataclass(frozen=True)
class BuyPlacement:
    account_ref: str
    order_id: str
    verification: dict[str, OrderVerification] = field(default_factory=dict)

    @property
    def verified(self) -> Optional[OrderVerification]:
        return self.verification.get(self.order_id)


@dataclass(frozen=True)
class ExitPlacement:
    take_profit_order_id: str
    stop_loss_order_id: str
    verification: dict[str, OrderVerification] = field(default_factory=dict)


def _validate_price(price: float, name: str) -> None:
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise OrderValidationError(f"{name} must be a number")
    if price != price or price <= 0:
        raise OrderValidationError(f"{name} must be greater than zero")
