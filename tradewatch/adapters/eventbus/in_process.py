from __future__ import annotations

import asyncio
import inspect
from typing import Callable, Optional

from loguru import logger

from tradewatch.core.orders.ports import EventHandler, EventT


class InProcessEventBus:
    """
    Fan-out of domain events to subscribers matched by isinstance.

    Inside a running loop each delivery is scheduled with `call_soon`, so the
    publisher (a monitor tick, an order placement) finishes its own step before
    any subscriber runs. Coroutine handlers become tasks that `drain` can wait
    on at shutdown. Handler failures are logged and never reach the publisher.
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[type, EventHandler]] = []
        self._pending: set[asyncio.Future] = set()

    def publish(self, event: object) -> None:
        handlers = [handler for event_type, handler in list(self._subscribers) if isinstance(event, event_type)]
        if not handlers:
            return
        loop = _running_loop()
        for handler in handlers:
            if loop is None:
                self._deliver(handler, event)
            else:
                loop.call_soon(self._deliver, handler, event)

    def subscribe(self, event_type: type[EventT], handler: EventHandler[EventT]) -> Callable[[], None]:
        entry = (event_type, handler)
        self._subscribers.append(entry)

        def _unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return _unsubscribe

    async def drain(self) -> None:
        """Wait until every delivery scheduled so far, and the tasks it spawned, has finished."""
        await asyncio.sleep(0)
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
            await asyncio.sleep(0)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _deliver(self, handler: EventHandler, event: object) -> None:
        label = f"event={type(event).__name__}, handler={_handler_name(handler)}"
        try:
            result = handler(event)
            if not inspect.isawaitable(result):
                return
            if _running_loop() is None:
                asyncio.run(result)
                return
        except Exception as exc:
            logger.opt(exception=exc).error(f"Event handler error ({label})")
            return

        task = asyncio.ensure_future(result)
        self._pending.add(task)
        task.add_done_callback(lambda done: self._finish(done, label))

    def _finish(self, task: asyncio.Future, label: str) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"Event handler task error ({label})")


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__name__", None) or type(handler).__name__
