from tradewatch.core.alerts.events import (
    ExitOrdersFailed,
    ExitOrdersPlaced,
    FillAborted,
    FillCheckFailed,
    FillExecuted,
    PlanTriggered,
    QuoteUnavailable,
)
from tradewatch.core.alerts.fill_monitor import FillMonitor
from tradewatch.core.alerts.monitor import AlertMonitor, AlertMonitorConfig
from tradewatch.core.alerts.trigger import TriggerEvaluator, poll_prices

__all__ = [
    "AlertMonitor",
    "AlertMonitorConfig",
    "ExitOrdersFailed",
    "ExitOrdersPlaced",
    "FillAborted",
    "FillCheckFailed",
    "FillExecuted",
    "FillMonitor",
    "PlanTriggered",
    "QuoteUnavailable",
    "TriggerEvaluator",
    "poll_prices",
]
