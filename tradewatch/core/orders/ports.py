from __future__ import annotations

from typing import Awaitable, Callable, Optional, Protocol, TypeVar

from tradewatch.core.orders.models import BrokerAccount, BrokerOrder, EquityOrder

EventT = TypeVar("EventT")
EventHandler = Callable[[EventT], Awaitable[None] | None]


class BrokerOrderPort(Protocol):
    async def get_accounts(self) -> list[BrokerAccount]:
        """Return the accounts visible to the current credentials."""
        raise NotImplementedError

    async def preview_order(
        self,
        account_ref: str,
        order: EquityOrder,
        *,
        client_order_id: str,
    ) -> Optional[str]:
        """Submit a preview request and return the broker's preview id, if any."""
        raise NotImplementedError

    async def place_order(
        self,
        account_ref: str,
        order: EquityOrder,
        *,
        client_order_id: str,
        preview_id: str,
    ) -> Optional[str]:
        """Place a previously previewed order and return the broker order id, if any."""
        raise NotImplementedError

    async def get_orders(self, account_ref: str, *, count: int = 25) -> list[BrokerOrder]:
        """Return the account's most recent orders, newest first."""
        raise NotImplementedError


class EventBus(Protocol):
    def publish(self, event: object) -> None:
        """Publish an event to subscribers."""
        raise NotImplementedError

    def subscribe(self, event_type: type[EventT], handler: EventHandler[EventT]) -> Callable[[], None]:
        """Subscribe a handler to events of a given type."""
        raise NotImplementedError
