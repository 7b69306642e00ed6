from __future__ import annotations

from typing import Protocol

from tradewatch.core.notifications.models import Notification


class NotificationSink(Protocol):
    async def send(self, notification: Notification) -> None:
        """Deliver a text message to the user over whichever chat channel is active."""
        raise NotImplementedError
