from fastapi import HTTPException, Request

from tradewatch.core.alerts.monitor import AlertMonitor


def get_monitor(request: Request) -> AlertMonitor:
    monitor = getattr(request.app.state, "monitor", None)
    if monitor is None:
        raise HTTPException(status_code=503, detail="Alert monitor is not running")
    return monitor
