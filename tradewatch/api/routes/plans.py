from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from tradewatch.api.deps import get_monitor
from tradewatch.core.alerts.monitor import AlertMonitor
from tradewatch.core.plans.models import PendingFill, WatchPlan

router = APIRouter(tags=["plans"])


def _plan_to_dict(plan: WatchPlan) -> dict:
    payload = asdict(plan)
    payload["added_at"] = plan.added_at.isoformat()
    return payload


def _fill_to_dict(fill: PendingFill) -> dict:
    payload = asdict(fill)
    payload["placed_at"] = fill.placed_at.isoformat()
    return payload


@router.get("/plans/{user_id}")
def list_plans(user_id: str, monitor: AlertMonitor = Depends(get_monitor)) -> list[dict]:
    return [_plan_to_dict(plan) for plan in sorted(monitor.list_plans(user_id), key=lambda p: p.symbol)]


@router.delete("/plans/{user_id}/{symbol}")
def delete_plan(user_id: str, symbol: str, monitor: AlertMonitor = Depends(get_monitor)) -> dict:
    if not monitor.remove_plan(symbol, user_id):
        raise HTTPException(status_code=404, detail=f"No active alert found for {symbol.upper()}")
    logger.info(f"API removed plan {symbol.upper()} for {user_id}")
    return {"removed": True, "symbol": symbol.upper()}


@router.get("/fills/{user_id}")
def list_fills(user_id: str, monitor: AlertMonitor = Depends(get_monitor)) -> list[dict]:
    return [_fill_to_dict(fill) for fill in sorted(monitor.list_pending_fills(user_id), key=lambda f: f.symbol)]


@router.delete("/fills/{user_id}/{symbol}")
def delete_fill(user_id: str, symbol: str, monitor: AlertMonitor = Depends(get_monitor)) -> dict:
    """Stop monitoring a pending BUY. The broker order itself is left untouched."""
    if not monitor.remove_pending_fill(symbol, user_id):
        raise HTTPException(status_code=404, detail=f"No pending fill found for {symbol.upper()}")
    logger.info(f"API stopped fill monitoring for {symbol.upper()} ({user_id})")
    return {"removed": True, "symbol": symbol.upper()}


@router.post("/ticks")
async def run_tick(monitor: AlertMonitor = Depends(get_monitor)) -> dict:
    ran = await monitor.tick()
    return {"ran": ran}
