from tradewatch.core.orders.errors import (
    BrokerError,
    CredentialExpired,
    ExitOrdersIncomplete,
    PlacementFailed,
    PreviewRejected,
)
from tradewatch.core.orders.events import (
    OrderPlaced,
    OrderPreviewed,
    OrderVerificationMismatch,
    OrderVerified,
)
from tradewatch.core.orders.models import (
    BrokerAccount,
    BrokerOrder,
    BuyPlacement,
    EquityOrder,
    ExitPlacement,
    LimitPrice,
    OrderSide,
    OrderStatus,
    OrderValidationError,
    OrderVerification,
    PriceType,
    StopPrice,
)
from tradewatch.core.orders.ports import BrokerOrderPort, EventBus
from tradewatch.core.orders.service import OrderPipeline

__all__ = [
    "BrokerAccount",
    "BrokerError",
    "BrokerOrder",
    "BrokerOrderPort",
    "BuyPlacement",
    "CredentialExpired",
    "EquityOrder",
    "EventBus",
    "ExitOrdersIncomplete",
    "ExitPlacement",
    "LimitPrice",
    "OrderPipeline",
    "OrderPlaced",
    "OrderPreviewed",
    "OrderSide",
    "OrderStatus",
    "OrderValidationError",
    "OrderVerification",
    "OrderVerificationMismatch",
    "OrderVerified",
    "PlacementFailed",
    "PreviewRejected",
    "PriceType",
    "StopPrice",
]
