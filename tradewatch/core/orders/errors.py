from __future__ import annotations

from typing import Any, Optional


class BrokerError(Exception):
    """An error reported by (or while talking to) the brokerage."""

    def __init__(self, message: str, status: Optional[int] = None, payload: Any = None) -> None:
        super().__init__(f"[{status}] {message}" if status is not None else message)
        self.message = message
        self.status = status
        self.payload = payload


class CredentialExpired(BrokerError):
    """The broker rejected our credentials (HTTP 401); a re-authentication is required."""

    def __init__(self, message: str = "Broker credentials expired", payload: Any = None) -> None:
        super().__init__(message, status=401, payload=payload)


class PreviewRejected(BrokerError):
    """The preview step returned no preview id."""


class PlacementFailed(BrokerError):
    """The place step returned no order id."""


class ExitOrdersIncomplete(BrokerError):
    """The take-profit SELL is live at the broker but the stop-loss SELL was not placed."""

    def __init__(
        self,
        message: str,
        *,
        take_profit_order_id: str,
        status: Optional[int] = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message, status=status, payload=payload)
        self.take_profit_order_id = take_profit_order_id
