from __future__ import annotations

import asyncio

import httpx

from tradewatch.adapters.market_data.yahoo_quotes import YahooQuotes


def _run(coro):
    return asyncio.run(coro)


def _chart(price, closes=None, **meta) -> dict:
    return {
        "chart": {
            "result": [
                {
                    "meta": {"regularMarketPrice": price, "currency": "USD", "shortName": "Apple Inc.", **meta},
                    "indicators": {"quote": [{"close": closes or []}]},
                }
            ]
        }
    }


class _Clock:
    def __init__(self) -> None:
        self.value = 0.0

    def __call__(self) -> float:
        return self.value


def _quotes(handler, clock=None) -> tuple[YahooQuotes, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    quotes = YahooQuotes(
        base_url="https://chart.test/v8/finance/chart",
        transport=httpx.MockTransport(_record),
        clock=clock or _Clock(),
    )
    return quotes, seen


def test_quote_parses_price_and_previous_close() -> None:
    quotes, seen = _quotes(lambda request: httpx.Response(200, json=_chart(171.0, [168.0, 170.0, 171.0])))

    quote = _run(quotes.fetch_quote("aapl"))

    assert quote.ok
    assert quote.symbol == "AAPL"
    assert quote.price == 171.0
    assert quote.previous_close == 170.0
    assert quote.change == 1.0
    assert quote.name == "Apple Inc."
    assert seen[0].url.path == "/v8/finance/chart/AAPL"
    assert seen[0].url.params["range"] == "5d"


def test_previous_close_falls_back_to_chart_meta() -> None:
    quotes, _seen = _quotes(lambda request: httpx.Response(200, json=_chart(171.0, chartPreviousClose=169.0)))

    quote = _run(quotes.fetch_quote("AAPL"))

    assert quote.previous_close == 169.0


def test_quotes_are_cached_until_ttl_expires() -> None:
    clock = _Clock()
    quotes, seen = _quotes(lambda request: httpx.Response(200, json=_chart(171.0)), clock)

    _run(quotes.fetch_quote("AAPL"))
    clock.value = 59.0
    _run(quotes.fetch_quote("aapl"))
    assert len(seen) == 1

    clock.value = 61.0
    _run(quotes.fetch_quote("AAPL"))
    assert len(seen) == 2


def test_unknown_symbol_returns_error_quote() -> None:
    quotes, _seen = _quotes(lambda request: httpx.Response(200, json={"chart": {"result": None}}))

    quote = _run(quotes.fetch_quote("ZZZZ"))

    assert not quote.ok
    assert quote.error == "Symbol not found"


def test_missing_price_returns_error_quote() -> None:
    quotes, _seen = _quotes(lambda request: httpx.Response(200, json=_chart(None)))

    quote = _run(quotes.fetch_quote("AAPL"))

    assert quote.error == "No market price"


def test_http_failures_never_raise_and_are_not_cached() -> None:
    quotes, seen = _quotes(lambda request: httpx.Response(503))

    first = _run(quotes.fetch_quote("AAPL"))
    _run(quotes.fetch_quote("AAPL"))

    assert first.error == "HTTP 503"
    assert len(seen) == 2


def test_transport_errors_never_raise() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    quotes, _seen = _quotes(handler)

    quote = _run(quotes.fetch_quote("AAPL"))

    assert not quote.ok
    assert "timed out" in quote.error
