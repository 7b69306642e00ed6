"""Broker adapters for tradewatch."""

from tradewatch.adapters.broker.etrade_auth import ETradeConfig, ETradeSession
from tradewatch.adapters.broker.etrade_order_port import ETradeOrderPort
from tradewatch.adapters.broker.paper_order_port import PaperOrderPort

__all__ = [
    "ETradeConfig",
    "ETradeOrderPort",
    "ETradeSession",
    "PaperOrderPort",
]
