from tradewatch.core.notifications.models import Notification
from tradewatch.core.notifications.ports import NotificationSink
from tradewatch.core.notifications.service import deliver

__all__ = ["Notification", "NotificationSink", "deliver"]
