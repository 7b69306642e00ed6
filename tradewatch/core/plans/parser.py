from __future__ import annotations

import re
from typing import Optional

from tradewatch.core.plans.models import PlanParams

PLAN_SYNTAX = "buy <low> <high> tp <target> sl <stop> budget <amount>"
PLAN_SYNTAX_QTY = "buy <low> <high> tp <target> sl <stop> qty <shares>"

_NUMBER = r"(\d+(?:\.\d+)?|\.\d+)"
_PLAN_PATTERN = re.compile(
    rf"^\s*buy\s+{_NUMBER}\s+{_NUMBER}\s+tp\s+{_NUMBER}\s+sl\s+{_NUMBER}\s+"
    rf"(?:budget\s+{_NUMBER}|qty\s+(\d+))\s*$",
    re.IGNORECASE,
)


def parse_plan(text: str) -> Optional[PlanParams]:
    """Parse the chat plan syntax; returns None for any other shape."""
    match = _PLAN_PATTERN.match(text or "")
    if not match:
        return None
    low, high, target, stop, budget, qty = match.groups()
    return PlanParams(
        buy_low=float(low),
        buy_high=float(high),
        take_profit=float(target),
        stop_loss=float(stop),
        budget=float(budget) if budget is not None else None,
        fixed_qty=int(qty) if qty is not None else None,
    )
