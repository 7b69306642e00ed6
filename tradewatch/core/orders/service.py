from __future__ import annotations

import secrets
from collections.abc import Callable, Iterable
from typing import Optional

from loguru import logger

from tradewatch.core.orders.errors import BrokerError, ExitOrdersIncomplete, PlacementFailed, PreviewRejected
from tradewatch.core.orders.events import (
    OrderPlaced,
    OrderPreviewed,
    OrderVerificationMismatch,
    OrderVerified,
)
from tradewatch.core.orders.models import (
    BuyPlacement,
    EquityOrder,
    ExitPlacement,
    LimitPrice,
    OrderSide,
    OrderStatus,
    OrderVerification,
    StopPrice,
)
from tradewatch.core.orders.ports import BrokerOrderPort, EventBus

RECENT_ORDER_COUNT = 25
_IMPLAUSIBLE_STATUSES = {
    OrderStatus.REJECTED.value,
    OrderStatus.CANCELLED.value,
    OrderStatus.EXPIRED.value,
}


def new_client_order_id() -> str:
    # the broker caps clientOrderId at 20 characters
    return secrets.token_hex(10)


class OrderPipeline:
    """
    Submits equity orders with the broker's preview-then-place protocol.

    Orders go out in two stages: `place_buy` sends the GTC limit BUY, and
    `place_exit_orders` sends the take-profit and stop-loss SELLs. The
    pipeline keeps no memory of prior orders; callers only invoke the second
    stage once the BUY has been observed EXECUTED.
    """

    def __init__(
        self,
        broker: BrokerOrderPort,
        event_bus: Optional[EventBus] = None,
        *,
        client_order_id_factory: Callable[[], str] = new_client_order_id,
        recent_order_count: int = RECENT_ORDER_COUNT,
    ) -> None:
        self._broker = broker
        self._event_bus = event_bus
        self._client_order_id_factory = client_order_id_factory
        self._recent_order_count = recent_order_count

    async def resolve_account(self) -> str:
        accounts = await self._broker.get_accounts()
        if not accounts:
            raise BrokerError("No brokerage accounts found.")
        for account in accounts:
            if (account.institution_type or "").upper() == "BROKERAGE":
                return account.account_ref
        return accounts[0].account_ref

    async def place_buy(self, symbol: str, qty: int, limit_price: float) -> BuyPlacement:
        order = EquityOrder(symbol=symbol, side=OrderSide.BUY, qty=qty, pricing=LimitPrice(limit_price))
        account_ref = await self.resolve_account()

        logger.info(f"Placing BUY order: {qty} {order.symbol} @ ${limit_price}")
        order_id = await self._preview_then_place(account_ref, order)
        logger.info(f"BUY order placed: {order.symbol} #{order_id}")

        verification = await self.verify_orders(account_ref, [order_id])
        return BuyPlacement(account_ref=account_ref, order_id=order_id, verification=verification)

    async def place_exit_orders(
        self,
        account_ref: str,
        symbol: str,
        qty: int,
        take_profit: float,
        stop_loss: float,
    ) -> ExitPlacement:
        take_profit_order = EquityOrder(
            symbol=symbol,
            side=OrderSide.SELL,
            qty=qty,
            pricing=LimitPrice(take_profit),
        )
        stop_loss_order = EquityOrder(
            symbol=symbol,
            side=OrderSide.SELL,
            qty=qty,
            pricing=StopPrice(stop_loss),
        )

        logger.info(f"Placing exit orders: {qty} {take_profit_order.symbol} | TP ${take_profit} | SL ${stop_loss}")
        tp_order_id = await self._preview_then_place(account_ref, take_profit_order)
        logger.info(f"TP SELL order placed: {take_profit_order.symbol} #{tp_order_id}")
        try:
            sl_order_id = await self._preview_then_place(account_ref, stop_loss_order)
        except Exception as exc:
            logger.error(f"SL STOP order failed for {stop_loss_order.symbol}, TP #{tp_order_id} is live: {exc}")
            raise ExitOrdersIncomplete(
                getattr(exc, "message", str(exc)),
                take_profit_order_id=tp_order_id,
                status=getattr(exc, "status", None),
                payload=getattr(exc, "payload", None),
            ) from exc
        logger.info(f"SL STOP order placed: {stop_loss_order.symbol} #{sl_order_id}")

        verification = await self.verify_orders(account_ref, [tp_order_id, sl_order_id])
        return ExitPlacement(
            take_profit_order_id=tp_order_id,
            stop_loss_order_id=sl_order_id,
            verification=verification,
        )

    async def get_order_status(self, account_ref: str, order_id: str) -> Optional[str]:
        """Return the broker status string for the order, or None when it is not listed."""
        orders = await self._broker.get_orders(account_ref, count=self._recent_order_count)
        wanted = str(order_id)
        for order in orders:
            if str(order.order_id) == wanted:
                return order.status
        return None

    async def verify_orders(
        self,
        account_ref: str,
        order_ids: Iterable[str],
    ) -> dict[str, OrderVerification]:
        """Best-effort check that freshly placed orders show up in the recent order list."""
        results = {
            str(order_id): OrderVerification(order_id=str(order_id), found=False)
            for order_id in order_ids
            if order_id
        }
        if not results:
            return results
        try:
            orders = await self._broker.get_orders(account_ref, count=self._recent_order_count)
        except Exception as exc:
            logger.warning(f"Could not verify orders: {exc}")
            return results

        for order in orders:
            order_id = str(order.order_id)
            if order_id not in results:
                continue
            results[order_id] = OrderVerification(
                order_id=order_id,
                found=True,
                status=order.status,
                action=order.action,
                qty=order.qty,
                price_type=order.price_type,
                limit_price=order.limit_price,
                stop_price=order.stop_price,
            )
            price = order.limit_price if order.limit_price is not None else order.stop_price
            logger.info(
                f"Verified order #{order_id}: {order.status} | {order.action} {order.qty} @ {price} ({order.price_type})"
            )

        for order_id, result in results.items():
            if not result.found:
                logger.warning(f"Order #{order_id} not found in recent order list")
                self._publish(
                    OrderVerificationMismatch.now(
                        account_ref=account_ref,
                        order_id=order_id,
                        reason="not_listed",
                    )
                )
            elif not _is_plausible_status(result.status):
                logger.warning(f"Order #{order_id} listed with unexpected status {result.status}")
                self._publish(
                    OrderVerificationMismatch.now(
                        account_ref=account_ref,
                        order_id=order_id,
                        reason="unexpected_status",
                        status=result.status,
                    )
                )
            else:
                self._publish(OrderVerified.now(account_ref=account_ref, order_id=order_id, status=result.status))
        return results

    async def _preview_then_place(self, account_ref: str, order: EquityOrder) -> str:
        client_order_id = self._client_order_id_factory()
        preview_id = await self._broker.preview_order(account_ref, order, client_order_id=client_order_id)
        if preview_id is None or str(preview_id) == "":
            raise PreviewRejected(f"Preview returned no previewId for {order.describe()}")
        preview_id = str(preview_id)
        self._publish(
            OrderPreviewed.now(
                account_ref=account_ref,
                order=order,
                client_order_id=client_order_id,
                preview_id=preview_id,
            )
        )

        order_id = await self._broker.place_order(
            account_ref,
            order,
            client_order_id=client_order_id,
            preview_id=preview_id,
        )
        if order_id is None or str(order_id) == "":
            raise PlacementFailed(f"Place returned no orderId for {order.describe()}")
        order_id = str(order_id)
        self._publish(
            OrderPlaced.now(
                account_ref=account_ref,
                order=order,
                client_order_id=client_order_id,
                order_id=order_id,
            )
        )
        return order_id

    def _publish(self, event: object) -> None:
        if self._event_bus:
            self._event_bus.publish(event)


def _is_plausible_status(status: Optional[str]) -> bool:
    if not status:
        return False
    return str(status).strip().upper() not in _IMPLAUSIBLE_STATUSES
