"""
Shared builders for markdown and simulation tests.
"""
from datetime import date, timedelta

from otb_engine.models import (
    ForecastConfig, ForecastMethod, MarkdownPhase, MarkdownPlan, MarkdownSKUInput,
    Observation, PlanType
)

PLAN_START = date(2024, 3, 4)
PLAN_END = date(2024, 4, 29)
HISTORY_START = date(2023, 12, 11)
UNIT_PRICE = 20.0

def flat_history(sku_id, units=10.0, weeks=12, start=HISTORY_START):
    """Weekly observations ending the week before PLAN_START."""
    return tuple(
        Observation(sku_id, start + timedelta(weeks=i), units, 0)
        for i in range(weeks)
    )

def make_plan(**overrides):
    """Eight-week clearance plan with three escalating phases (20%, 30%, 50%)."""
    values = dict(
        plan_name='Spring Clearance',
        plan_type=PlanType.CLEARANCE,
        season_id='SS24',
        brand_id='BR1',
        category_id='DRESSES',
        plan_start_date=PLAN_START,
        plan_end_date=PLAN_END,
        target_sell_through_pct=0.8,
        max_markdown_pct=0.5,
        phases=[
            MarkdownPhase(1, date(2024, 3, 4), date(2024, 3, 25), 0.2, 'Phase 1'),
            MarkdownPhase(2, date(2024, 3, 25), date(2024, 4, 15), 0.3, 'Phase 2'),
            MarkdownPhase(3, date(2024, 4, 15), date(2024, 4, 29), 0.5, 'Phase 3'),
        ]
    )
    values.update(overrides)
    return MarkdownPlan(**values)

def make_sku(sku_id, current_stock, current_woc=10.0, history=None, existing_plan=None):
    return MarkdownSKUInput(
        sku_id=sku_id,
        current_stock=current_stock,
        current_woc=current_woc,
        current_sell_through=0.2,
        unit_price=UNIT_PRICE,
        history=flat_history(sku_id) if history is None else history,
        existing_plan=existing_plan
    )

def moving_average_config():
    """Flat history of 10/week forecasts 10/week with perfect held-out accuracy."""
    return ForecastConfig(primary_method=ForecastMethod.MOVING_AVERAGE, lookback_weeks=8, forecast_weeks=4)
