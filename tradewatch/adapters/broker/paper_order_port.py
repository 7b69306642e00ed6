from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from typing import Optional

from loguru import logger

from tradewatch.core.orders.errors import BrokerError
from tradewatch.core.orders.models import BrokerAccount, BrokerOrder, EquityOrder, OrderStatus, PriceType
from tradewatch.core.orders.ports import BrokerOrderPort

PAPER_ACCOUNT_REF = "paper-brokerage"


@dataclass(frozen=True)
class _Preview:
    account_ref: str
    client_order_id: str
    order: EquityOrder


class PaperOrderPort(BrokerOrderPort):
    """
    In-memory broker that honours the preview-then-place protocol.

    Every placed order starts OPEN; `set_status` moves it along so sandbox
    sessions and tests can simulate fills, cancels and expiries.
    """

    def __init__(self, accounts: Optional[list[BrokerAccount]] = None) -> None:
        self._accounts = list(
            accounts
            if accounts is not None
            else [
                BrokerAccount(
                    account_ref=PAPER_ACCOUNT_REF,
                    account_id="00000000",
                    institution_type="BROKERAGE",
                    description="Paper",
                    status="ACTIVE",
                )
            ]
        )
        self._previews: dict[str, _Preview] = {}
        self._orders: dict[str, list[BrokerOrder]] = {}
        self._preview_ids = itertools.count(1)
        self._order_ids = itertools.count(1001)

    async def get_accounts(self) -> list[BrokerAccount]:
        return list(self._accounts)

    async def preview_order(
        self,
        account_ref: str,
        order: EquityOrder,
        *,
        client_order_id: str,
    ) -> Optional[str]:
        self._require_account(account_ref)
        preview_id = str(next(self._preview_ids))
        self._previews[preview_id] = _Preview(account_ref, client_order_id, order)
        return preview_id

    async def place_order(
        self,
        account_ref: str,
        order: EquityOrder,
        *,
        client_order_id: str,
        preview_id: str,
    ) -> Optional[str]:
        preview = self._previews.pop(str(preview_id), None)
        if preview is None or preview.account_ref != account_ref or preview.client_order_id != client_order_id:
            raise BrokerError(f"Unknown preview {preview_id}", status=400)
        order_id = str(next(self._order_ids))
        placed = BrokerOrder(
            order_id=order_id,
            status=OrderStatus.OPEN.value,
            symbol=order.symbol,
            action=order.side.value,
            qty=float(order.qty),
            price_type=order.price_type.value,
            limit_price=order.price if order.price_type is PriceType.LIMIT else None,
            stop_price=order.price if order.price_type is PriceType.STOP else None,
        )
        self._orders.setdefault(account_ref, []).insert(0, placed)
        logger.info(f"Paper order #{order_id}: {order.describe()}")
        return order_id

    async def get_orders(self, account_ref: str, *, count: int = 25) -> list[BrokerOrder]:
        self._require_account(account_ref)
        return list(self._orders.get(account_ref, [])[:count])

    def set_status(self, order_id: str, status: OrderStatus | str) -> BrokerOrder:
        value = status.value if isinstance(status, OrderStatus) else str(status).upper()
        for orders in self._orders.values():
            for index, order in enumerate(orders):
                if order.order_id == str(order_id):
                    orders[index] = replace(order, status=value)
                    logger.info(f"Paper order #{order_id} -> {value}")
                    return orders[index]
        raise KeyError(f"Unknown paper order {order_id}")

    def all_orders(self) -> list[BrokerOrder]:
        return [order for orders in self._orders.values() for order in orders]

    def _require_account(self, account_ref: str) -> None:
        if not any(account.account_ref == account_ref for account in self._accounts):
            raise BrokerError(f"Unknown account {account_ref}", status=404)
