from __future__ import annotations

from typing import Optional

from loguru import logger

from tradewatch.core.notifications.models import Notification
from tradewatch.core.notifications.ports import NotificationSink


async def deliver(sink: Optional[NotificationSink], user_id: str, text: str) -> bool:
    """Send a message, logging (never raising) delivery failures."""
    if sink is None:
        logger.debug(f"No notification sink configured; dropping message for {user_id}")
        return False
    try:
        await sink.send(Notification(user_id=user_id, text=text))
    except Exception as exc:
        logger.error(f"Failed to send notification to {user_id}: {exc}")
        return False
    return True
