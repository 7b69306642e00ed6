from __future__ import annotations

from typing import Callable

from tradewatch.core.notifications.models import Notification
from tradewatch.core.notifications.ports import NotificationSink


class ConsoleNotificationSink(NotificationSink):
    """Writes chat messages to the terminal, one `[user] text` block per message."""

    def __init__(self, write: Callable[[str], None] = print) -> None:
        self._write = write

    async def send(self, notification: Notification) -> None:
        self._write(f"[{notification.user_id}] {notification.text}")
