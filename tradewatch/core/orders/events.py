from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from tradewatch.core.orders.models import EquityOrder


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OrderPreviewed:
    account_ref: str
    order: EquityOrder
    client_order_id: str
    preview_id: str
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        account_ref: str,
        order: EquityOrder,
        client_order_id: str,
        preview_id: str,
    ) -> "OrderPreviewed":
        return cls(
            account_ref=account_ref,
            order=order,
            client_order_id=client_order_id,
            preview_id=preview_id,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class OrderPlaced:
    account_ref: str
    order: EquityOrder
    client_order_id: str
    order_id: str
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        account_ref: str,
        order: EquityOrder,
        client_order_id: str,
        order_id: str,
    ) -> "OrderPlaced":
        return cls(
            account_ref=account_ref,
            order=order,
            client_order_id=client_order_id,
            order_id=order_id,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class OrderVerified:
    account_ref: str
    order_id: str
    status: Optional[str]
    timestamp: datetime

    @classmethod
    def now(cls, *, account_ref: str, order_id: str, status: Optional[str]) -> "OrderVerified":
        return cls(account_ref=account_ref, order_id=order_id, status=status, timestamp=_now())


@dataclass(frozen=True)
class OrderVerificationMismatch:
    account_ref: str
    order_id: str
    reason: str
    status: Optional[str]
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        account_ref: str,
        order_id: str,
        reason: str,
        status: Optional[str] = None,
    ) -> "OrderVerificationMismatch":
        return cls(
            account_ref=account_ref,
            order_id=order_id,
            reason=reason,
            status=status,
            timestamp=_now(),
        )
