from __future__ import annotations

from typing import Protocol

from tradewatch.core.market_data.models import Quote


class QuotePort(Protocol):
    async def fetch_quote(self, symbol: str) -> Quote:
        """
        Return a snapshot quote for the symbol.

        Implementations never raise: failures come back as a Quote with
        `error` set so callers can branch on it.
        """
        raise NotImplementedError
