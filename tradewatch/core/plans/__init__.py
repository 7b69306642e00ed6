from tradewatch.core.plans.models import (
    PendingFill,
    PlanParams,
    PlanValidationError,
    WatchPlan,
    calc_qty,
    validate_plan,
)
from tradewatch.core.plans.parser import PLAN_SYNTAX, PLAN_SYNTAX_QTY, parse_plan
from tradewatch.core.plans.registry import AlertRegistry, PendingFillRegistry

__all__ = [
    "AlertRegistry",
    "PLAN_SYNTAX",
    "PLAN_SYNTAX_QTY",
    "PendingFill",
    "PendingFillRegistry",
    "PlanParams",
    "PlanValidationError",
    "WatchPlan",
    "calc_qty",
    "parse_plan",
    "validate_plan",
]
