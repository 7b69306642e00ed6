from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from loguru import logger

from tradewatch.core.market_data.models import Quote
from tradewatch.core.market_data.ports import QuotePort

YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart"
USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7)"
CACHE_TTL_SECONDS = 60.0


class YahooQuotes(QuotePort):
    """Yahoo Finance chart-endpoint quotes with a short per-symbol cache. Never raises."""

    def __init__(
        self,
        *,
        base_url: str = YAHOO_CHART_URL,
        cache_ttl: float = CACHE_TTL_SECONDS,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._cache_ttl = cache_ttl
        self._timeout = timeout
        self._transport = transport
        self._clock = clock
        self._cache: dict[str, tuple[float, Quote]] = {}

    async def fetch_quote(self, symbol: str) -> Quote:
        sym = symbol.strip().upper()
        cached = self._cached(sym)
        if cached is not None:
            logger.debug(f"Yahoo cache hit: {sym}")
            return cached

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(
                    f"{self._base_url}/{sym}",
                    params={"interval": "1d", "range": "5d"},
                    headers={"User-Agent": USER_AGENT},
                )
            if not response.is_success:
                raise ValueError(f"HTTP {response.status_code}")
            quote = _parse_chart(sym, response.json())
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.warning(f"Yahoo Finance: failed to fetch {sym}: {exc}")
            return Quote(symbol=sym, timestamp=_now(), error=str(exc) or type(exc).__name__)

        self._cache[sym] = (self._clock() + self._cache_ttl, quote)
        return quote

    def clear_cache(self) -> None:
        self._cache.clear()

    def _cached(self, symbol: str) -> Optional[Quote]:
        entry = self._cache.get(symbol)
        if entry is None:
            return None
        expires_at, quote = entry
        if self._clock() > expires_at:
            del self._cache[symbol]
            return None
        return quote


def _parse_chart(symbol: str, data: dict[str, Any]) -> Quote:
    results = (data.get("chart") or {}).get("result") or []
    if not results:
        raise ValueError("Symbol not found")
    result = results[0]
    meta = result.get("meta") or {}

    price = _maybe_float(meta.get("regularMarketPrice"))
    if price is None:
        raise ValueError("No market price")

    quotes = (result.get("indicators") or {}).get("quote") or [{}]
    closes = quotes[0].get("close") or []
    previous_close = _maybe_float(closes[-2]) if len(closes) >= 2 else None
    if previous_close is None:
        previous_close = _maybe_float(meta.get("chartPreviousClose"))

    change = round(price - previous_close, 2) if previous_close is not None else None
    change_percent = (
        round((price - previous_close) / previous_close * 100.0, 4) if previous_close else None
    )
    return Quote(
        symbol=symbol,
        timestamp=_now(),
        price=price,
        previous_close=previous_close,
        change=change,
        change_percent=change_percent,
        day_high=_maybe_float(meta.get("regularMarketDayHigh")),
        day_low=_maybe_float(meta.get("regularMarketDayLow")),
        volume=_maybe_float(meta.get("regularMarketVolume")),
        currency=meta.get("currency"),
        exchange=meta.get("exchangeName"),
        name=meta.get("shortName") or meta.get("longName") or symbol,
    )


def _maybe_float(value: object) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _now() -> datetime:
    return datetime.now(timezone.utc)
