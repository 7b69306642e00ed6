from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from tradewatch.core.market_data.history import (
    TREND_DOWN,
    TREND_RANGING,
    TREND_UP,
    PriceHistoryStore,
    build_trend_summary,
    sparkline,
    trend_direction,
)

_T0 = datetime(2026, 3, 2, 14, 30, tzinfo=timezone.utc)


def _store_with(symbol: str, prices: list[float], *, max_observations: int = 30) -> PriceHistoryStore:
    store = PriceHistoryStore(max_observations)
    for index, price in enumerate(prices):
        store.record(symbol, price, _T0 + timedelta(minutes=index))
    return store


def test_five_polls_drifting_lower_summarize_as_down_trend() -> None:
    store = _store_with("AAPL", [100, 101, 99, 98, 97])

    trend = store.trend("AAPL", now=_T0 + timedelta(minutes=4))

    assert trend is not None
    assert trend.change_pct == pytest.approx(-3.0)
    assert trend.direction == TREND_DOWN
    assert trend.low == 97
    assert trend.high == 101
    assert trend.observations == 5
    assert trend.duration_minutes == 4
    assert trend.sparkline == "▆█▅▃▁"


def test_trend_needs_at_least_two_observations() -> None:
    store = _store_with("AAPL", [100])

    assert store.trend("AAPL") is None
    assert store.trend("MSFT") is None


@pytest.mark.parametrize(
    ("change_pct", "expected"),
    [
        (-0.5, TREND_DOWN),
        (-0.49, TREND_RANGING),
        (0.0, TREND_RANGING),
        (0.49, TREND_RANGING),
        (0.5, TREND_UP),
    ],
)
def test_trend_direction_thresholds_are_inclusive(change_pct: float, expected: str) -> None:
    assert trend_direction(change_pct) == expected


def test_buffer_keeps_only_the_newest_observations() -> None:
    store = _store_with("AAPL", [float(price) for price in range(1, 36)])

    prices = [item.price for item in store.observations("aapl")]

    assert len(prices) == 30
    assert prices[0] == 6.0
    assert prices[-1] == 35.0


def test_sparkline_uses_only_the_last_ten_prices() -> None:
    prices = [500.0] + [10.0 + index for index in range(10)]

    trend = build_trend_summary(
        [obs for obs in _store_with("X", prices).observations("X")],
        now=_T0 + timedelta(minutes=10),
    )

    assert trend is not None
    assert len(trend.sparkline) == 10
    assert trend.sparkline[0] == "▁"
    assert trend.sparkline[-1] == "█"
    assert trend.high == 500.0


def test_flat_sample_renders_middle_glyph() -> None:
    assert sparkline([5.0, 5.0, 5.0]) == "▄▄▄"


def test_prune_drops_symbol_buffer() -> None:
    store = _store_with("AAPL", [1.0, 2.0])

    assert store.prune("aapl") is True
    assert store.prune("AAPL") is False
    assert store.symbols() == set()


def test_store_rejects_tiny_capacity() -> None:
    with pytest.raises(ValueError, match="at least 2"):
        PriceHistoryStore(1)
