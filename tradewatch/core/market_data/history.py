from __future__ import annotations

import math
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from tradewatch.core.market_data.models import PriceObservation

DEFAULT_HISTORY_MAX = 30
SPARKLINE_WINDOW = 10
SPARKLINE_GLYPHS = ("▁", "▂", "▃", "▄", "▅", "▆", "▇", "█")
TREND_THRESHOLD_PCT = 0.5

TREND_UP = "up"
TREND_DOWN = "down"
TREND_RANGING = "ranging"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TrendSummary:
    change_pct: float
    low: float
    high: float
    duration: timedelta
    direction: str
    sparkline: str
    observations: int

    @property
    def duration_minutes(self) -> int:
        return int(math.floor(self.duration.total_seconds() / 60.0 + 0.5))


class PriceHistoryStore:
    """Per-symbol rolling price buffers shared by every plan and fill on a symbol."""

    def __init__(self, max_observations: int = DEFAULT_HISTORY_MAX) -> None:
        if max_observations < 2:
            raise ValueError("max_observations must be at least 2")
        self._max = max_observations
        self._buffers: dict[str, deque[PriceObservation]] = {}

    @property
    def max_observations(self) -> int:
        return self._max

    def record(self, symbol: str, price: float, timestamp: Optional[datetime] = None) -> PriceObservation:
        key = symbol.strip().upper()
        observation = PriceObservation(price=float(price), timestamp=timestamp or _now())
        buffer = self._buffers.get(key)
        if buffer is None:
            buffer = deque(maxlen=self._max)
            self._buffers[key] = buffer
        buffer.append(observation)
        return observation

    def observations(self, symbol: str) -> list[PriceObservation]:
        return list(self._buffers.get(symbol.strip().upper(), ()))

    def symbols(self) -> set[str]:
        return set(self._buffers)

    def prune(self, symbol: str) -> bool:
        return self._buffers.pop(symbol.strip().upper(), None) is not None

    def trend(self, symbol: str, *, now: Optional[datetime] = None) -> Optional[TrendSummary]:
        return build_trend_summary(self.observations(symbol), now=now)


def build_trend_summary(
    observations: Sequence[PriceObservation],
    *,
    now: Optional[datetime] = None,
) -> Optional[TrendSummary]:
    if len(observations) < 2:
        return None
    prices = [item.price for item in observations]
    oldest = prices[0]
    newest = prices[-1]
    change_pct = ((newest - oldest) / oldest) * 100.0 if oldest else 0.0
    reference = now or _now()
    return TrendSummary(
        change_pct=change_pct,
        low=min(prices),
        high=max(prices),
        duration=max(reference - observations[0].timestamp, timedelta(0)),
        direction=trend_direction(change_pct),
        sparkline=sparkline(prices[-SPARKLINE_WINDOW:]),
        observations=len(observations),
    )


def trend_direction(change_pct: float) -> str:
    if change_pct <= -TREND_THRESHOLD_PCT:
        return TREND_DOWN
    if change_pct >= TREND_THRESHOLD_PCT:
        return TREND_UP
    return TREND_RANGING


def sparkline(prices: Sequence[float]) -> str:
    if not prices:
        return ""
    lo = min(prices)
    hi = max(prices)
    if hi == lo:
        return SPARKLINE_GLYPHS[3] * len(prices)
    top = len(SPARKLINE_GLYPHS) - 1
    glyphs = []
    for price in prices:
        # round half up
        index = int(math.floor(((price - lo) / (hi - lo)) * top + 0.5))
        glyphs.append(SPARKLINE_GLYPHS[min(max(index, 0), top)])
    return "".join(glyphs)
