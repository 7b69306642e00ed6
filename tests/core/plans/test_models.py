from __future__ import annotations

import pytest

from tradewatch.core.plans.models import (
    PendingFill,
    PlanParams,
    PlanValidationError,
    WatchPlan,
    calc_qty,
    validate_plan,
)


def _plan(**overrides) -> WatchPlan:
    values = dict(
        symbol="aapl",
        user_id="u1",
        buy_low=170.0,
        buy_high=172.0,
        take_profit=185.0,
        stop_loss=165.0,
        budget=1000.0,
    )
    values.update(overrides)
    return WatchPlan(**values)


def test_symbol_is_upper_cased_and_keyed_by_user() -> None:
    plan = _plan(symbol=" aapl ")

    assert plan.symbol == "AAPL"
    assert plan.key == ("AAPL", "u1")


def test_valid_plan_passes() -> None:
    validate_plan(_plan())
    validate_plan(_plan(budget=None, fixed_qty=3))


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"buy_low": 172.0}, "Buy low must be less than buy high"),
        ({"buy_low": 173.0}, "Buy low must be less than buy high"),
        ({"take_profit": 172.0}, "Take profit must be above the buy high"),
        ({"stop_loss": 170.0}, "Stop loss must be below buy low"),
        ({"buy_low": 0.0, "stop_loss": -1.0}, "Buy low must be greater than 0"),
        ({"stop_loss": 0.0}, "Stop loss must be greater than 0"),
        ({"budget": 0.0}, "Budget must be greater than 0"),
        ({"budget": None, "fixed_qty": 0}, "Quantity must be greater than 0"),
        ({"budget": None}, "Exactly one of budget or qty"),
        ({"fixed_qty": 5}, "Exactly one of budget or qty"),
    ],
)
def test_inconsistent_plans_are_rejected(overrides: dict, message: str) -> None:
    with pytest.raises(PlanValidationError, match=message):
        validate_plan(_plan(**overrides))


def test_plan_validation_error_is_a_value_error() -> None:
    assert issubclass(PlanValidationError, ValueError)


def test_buy_zone_is_inclusive() -> None:
    plan = _plan()

    assert plan.in_buy_zone(170.0)
    assert plan.in_buy_zone(172.0)
    assert not plan.in_buy_zone(169.99)
    assert not plan.in_buy_zone(172.01)


def test_order_qty_uses_budget_floor_or_fixed_qty() -> None:
    assert _plan().order_qty(171.0) == 5
    assert _plan(budget=100.0).order_qty(171.0) == 0
    assert _plan(budget=None, fixed_qty=7).order_qty(171.0) == 7


def test_calc_qty_guards_non_positive_price() -> None:
    assert calc_qty(1000.0, 0.0) == 0
    assert calc_qty(1000.0, 250.0) == 4


def test_params_midpoint_and_conversion() -> None:
    params = PlanParams(buy_low=70.0, buy_high=72.5, take_profit=81.3, stop_loss=68.0, budget=1000.0)

    plan = params.to_plan("uber", "u2")

    assert params.midpoint == pytest.approx(71.25)
    assert plan.symbol == "UBER"
    assert plan.user_id == "u2"
    assert plan.budget == 1000.0
    assert plan.fixed_qty is None


def test_pending_fill_normalizes_order_id_and_symbol() -> None:
    fill = PendingFill(
        symbol="aapl",
        user_id="u1",
        buy_order_id=1234,
        account_ref="acct",
        qty=5,
        take_profit=185.0,
        stop_loss=165.0,
    )

    assert fill.symbol == "AAPL"
    assert fill.buy_order_id == "1234"
    assert fill.key == ("AAPL", "u1")
