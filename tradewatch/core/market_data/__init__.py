from tradewatch.core.market_data.history import (
    PriceHistoryStore,
    TrendSummary,
    build_trend_summary,
    sparkline,
    trend_direction,
)
from tradewatch.core.market_data.models import PriceObservation, Quote
from tradewatch.core.market_data.ports import QuotePort

__all__ = [
    "PriceHistoryStore",
    "PriceObservation",
    "Quote",
    "QuotePort",
    "TrendSummary",
    "build_trend_summary",
    "sparkline",
    "trend_direction",
]
