from __future__ import annotations

import asyncio

from tradewatch.adapters.notifications.console import ConsoleNotificationSink
from tradewatch.core.notifications.service import deliver


def test_console_sink_prefixes_user() -> None:
    lines: list[str] = []
    sink = ConsoleNotificationSink(write=lines.append)

    assert asyncio.run(deliver(sink, "u1", "hello")) is True

    assert lines == ["[u1] hello"]


def test_deliver_swallows_sink_failures() -> None:
    def _broken(text: str) -> None:
        raise OSError("closed")

    assert asyncio.run(deliver(ConsoleNotificationSink(write=_broken), "u1", "hello")) is False
    assert asyncio.run(deliver(None, "u1", "hello")) is False
