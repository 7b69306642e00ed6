from __future__ import annotations

from collections.abc import Callable
from typing import Any, Optional

import httpx
from loguru import logger

from tradewatch.adapters.broker.etrade_auth import ETradeSession
from tradewatch.core.orders.errors import BrokerError, CredentialExpired
from tradewatch.core.orders.models import BrokerAccount, BrokerOrder, EquityOrder, PriceType
from tradewatch.core.orders.ports import BrokerOrderPort

AuthProvider = Callable[[], Optional[httpx.Auth]]


class ETradeOrderPort(BrokerOrderPort):
    """E*TRADE accounts/orders REST endpoints over httpx, JSON in and out."""

    def __init__(
        self,
        base_url: str,
        auth_provider: AuthProvider,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth_provider = auth_provider
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_session(
        cls,
        session: ETradeSession,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ETradeOrderPort":
        return cls(
            session.config.base_url,
            session.auth,
            timeout=session.config.timeout,
            transport=transport,
        )

    async def get_accounts(self) -> list[BrokerAccount]:
        payload = await self._request("GET", "/v1/accounts/list")
        accounts = _as_list(_dig(payload, "AccountListResponse", "Accounts", "Account"))
        return [_parse_account(item) for item in accounts if item.get("accountIdKey")]

    async def preview_order(
        self,
        account_ref: str,
        order: EquityOrder,
        *,
        client_order_id: str,
    ) -> Optional[str]:
        payload = await self._request(
            "POST",
            f"/v1/accounts/{account_ref}/orders/preview",
            json=build_preview_request(order, client_order_id),
        )
        body = _unwrap(payload, "PreviewOrderResponse")
        preview_ids = _as_list(body.get("PreviewIds"))
        preview_id = preview_ids[0].get("previewId") if preview_ids else None
        if preview_id is None:
            logger.warning(f"E*TRADE preview returned no previewId for {order.describe()}: {payload}")
            return None
        return str(preview_id)

    async def place_order(
        self,
        account_ref: str,
        order: EquityOrder,
        *,
        client_order_id: str,
        preview_id: str,
    ) -> Optional[str]:
        payload = await self._request(
            "POST",
            f"/v1/accounts/{account_ref}/orders/place",
            json=build_place_request(order, client_order_id, preview_id),
        )
        body = _unwrap(payload, "PlaceOrderResponse")
        order_ids = _as_list(body.get("OrderIds"))
        order_id = order_ids[0].get("orderId") if order_ids else None
        return str(order_id) if order_id is not None else None

    async def get_orders(self, account_ref: str, *, count: int = 25) -> list[BrokerOrder]:
        payload = await self._request("GET", f"/v1/accounts/{account_ref}/orders", params={"count": count})
        orders = _as_list(_dig(payload, "OrdersResponse", "Order"))
        return [_parse_order(item) for item in orders if item.get("orderId") is not None]

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        auth = self._auth_provider()
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.request(
                    method,
                    path,
                    params=params,
                    json=json,
                    headers={"Accept": "application/json"},
                    auth=auth,
                )
            except httpx.HTTPError as exc:
                raise BrokerError(f"E*TRADE request failed: {exc}") from exc

        payload = _parse_body(response)
        if response.is_success:
            return payload

        message = _error_message(payload) or response.reason_phrase or "E*TRADE request failed"
        if response.status_code == 401:
            raise CredentialExpired(message, payload=payload)
        raise BrokerError(message, status=response.status_code, payload=payload)


def build_order_detail(order: EquityOrder) -> dict[str, Any]:
    detail: dict[str, Any] = {
        "allOrNone": "true" if order.all_or_none else "false",
        "priceType": order.price_type.value,
        "orderTerm": order.order_term,
        "marketSession": order.market_session,
        "Instrument": [
            {
                "Product": {"securityType": "EQ", "symbol": order.symbol},
                "orderAction": order.side.value,
                "quantityType": "QUANTITY",
                "quantity": str(order.qty),
            }
        ],
    }
    if order.price_type is PriceType.LIMIT:
        detail["limitPrice"] = f"{order.price:.2f}"
    else:
        detail["stopPrice"] = f"{order.price:.2f}"
    return detail


def build_preview_request(order: EquityOrder, client_order_id: str) -> dict[str, Any]:
    return {
        "PreviewOrderRequest": {
            "orderType": "EQ",
            "clientOrderId": client_order_id,
            "Order": [build_order_detail(order)],
        }
    }


def build_place_request(order: EquityOrder, client_order_id: str, preview_id: str) -> dict[str, Any]:
    return {
        "PlaceOrderRequest": {
            "orderType": "EQ",
            "clientOrderId": client_order_id,
            "PreviewIds": [{"previewId": preview_id}],
            "Order": [build_order_detail(order)],
        }
    }


def _parse_account(item: dict[str, Any]) -> BrokerAccount:
    return BrokerAccount(
        account_ref=str(item["accountIdKey"]),
        account_id=_maybe_str(item.get("accountId")),
        institution_type=_maybe_str(item.get("institutionType")),
        description=_maybe_str(item.get("accountDesc") or item.get("accountName")),
        status=_maybe_str(item.get("accountStatus")),
    )


def _parse_order(item: dict[str, Any]) -> BrokerOrder:
    details = _as_list(item.get("OrderDetail"))
    detail = details[0] if details else {}
    instruments = _as_list(detail.get("Instrument"))
    instrument = instruments[0] if instruments else {}
    product = instrument.get("Product") or {}
    return BrokerOrder(
        order_id=str(item["orderId"]),
        status=_maybe_str(item.get("orderStatus") or detail.get("status")),
        symbol=_maybe_str(product.get("symbol")),
        action=_maybe_str(instrument.get("orderAction")),
        qty=_maybe_float(instrument.get("orderedQuantity")),
        price_type=_maybe_str(detail.get("priceType")),
        limit_price=_maybe_float(detail.get("limitPrice")),
        stop_price=_maybe_float(detail.get("stopPrice")),
    )


def _parse_body(response: httpx.Response) -> Any:
    if response.status_code == 204 or not response.content:
        return None
    if "json" not in response.headers.get("content-type", ""):
        return {"raw": response.text}
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text}


def _error_message(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    if payload.get("message"):
        return str(payload["message"])
    error = payload.get("Error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return None


def _unwrap(payload: Any, key: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        return {}
    inner = payload.get(key)
    return inner if isinstance(inner, dict) else payload


def _dig(payload: Any, *keys: str) -> Any:
    current = payload
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _as_list(value: Any) -> list[dict[str, Any]]:
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return [item for item in value if isinstance(item, dict)]


def _maybe_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _maybe_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
