# otb_engine/core/markdown.py
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

from otb_engine.models import MarkdownAction, MarkdownPhase, UrgencyLevel
from otb_engine.utils.date_utils import weeks_between
from otb_engine.utils.math_utils import clamp, extend_flat

URGENCY_WEIGHTS = {
    'weeks_of_cover': 0.35,
    'sell_through': 0.25,
    'time_to_end': 0.25,
    'stock_value': 0.15,
}
URGENCY_WEEKS_SCALE = 12.0
URGENCY_STOCK_VALUE_SCALE = 50000.0
MAX_DAYS_TO_SELL = 365.0

@dataclass(frozen=True)
class MarkdownDecision:
    action: MarkdownAction
    markdown_pct: float
    projected_units: float
    predicted_sell_through: float
    predicted_revenue: float
    reasoning: str
    weekly_units: Tuple[float, ...] = ()
    projected_margin_loss: float = 0.0
    projected_days_to_sell: Optional[float] = None

def weekly_baseline(weekly_forecast: Sequence[float], horizon_weeks: int) -> List[float]:
    """Full-price units per week over the horizon.

    The forecast is extended flat with its last value when the horizon is
    longer than the forecast.
    """
    if horizon_weeks <= 0:
        return []
    return [float(units) for units in extend_flat(list(weekly_forecast), horizon_weeks)]

def markdown_schedule(
    phases: Sequence[MarkdownPhase],
    as_of: date,
    horizon_weeks: int,
    max_markdown_pct: float
) -> List[float]:
    """Markdown in force for each week of the horizon.

    Week t starts at as_of + t weeks. Depth is cumulative: the deepest
    markdown of the phases started by then, capped at the plan ceiling.
    Before the first phase starts the price is full.
    """
    schedule = []
    for week in range(horizon_weeks):
        week_start = as_of + timedelta(weeks=week)
        started = [phase.markdown_pct for phase in phases if phase.start_date <= week_start]
        schedule.append(min(max(started), max_markdown_pct) if started else 0.0)
    return schedule

def project_units(
    baseline: float,
    markdown_pct: float,
    max_markdown_pct: float,
    elasticity: float
) -> float:
    """Linear sell-through acceleration: baseline * (1 + elasticity * markdown).

    The markdown is capped at the plan ceiling before it is applied.
    """
    effective_markdown = clamp(markdown_pct, 0.0, max_markdown_pct)
    return baseline * (1.0 + elasticity * effective_markdown)

def project_weekly_units(
    baseline_by_week: Sequence[float],
    markdowns: Sequence[float],
    max_markdown_pct: float,
    elasticity: float
) -> List[float]:
    """Apply each week's markdown to that week's full-price units."""
    return [
        project_units(units, markdown_pct, max_markdown_pct, elasticity)
        for units, markdown_pct in zip(baseline_by_week, markdowns)
    ]

def sell_through(units: float, current_stock: float) -> float:
    """Fraction of current stock sold by the projected units (1.0 with no stock)."""
    if current_stock <= 0:
        return 1.0
    return clamp(units / current_stock)

def expected_revenue(
    predicted_sell_through: float,
    current_stock: float,
    unit_price: float,
    markdown_pct: float
) -> float:
    return predicted_sell_through * current_stock * unit_price * (1.0 - markdown_pct)

def margin_loss(current_stock: float, unit_price: float, revenue: float) -> float:
    """Full-price value of current stock not recovered as revenue."""
    return current_stock * unit_price - revenue

def days_to_sell(current_stock: float, projected_units: float, horizon_weeks: int) -> float:
    """Days to sell current stock at the projected weekly rate, capped at a year."""
    if current_stock <= 0:
        return 0.0
    if horizon_weeks <= 0 or projected_units <= 0:
        return MAX_DAYS_TO_SELL
    weekly_rate = projected_units / horizon_weeks
    return float(min(round(current_stock / weekly_rate * 7), MAX_DAYS_TO_SELL))

def urgency_score(
    current_woc: float,
    current_sell_through: float,
    horizon_weeks: int,
    stock_value: float
) -> float:
    """Clearance urgency in [0, 1], higher is more urgent.

    Weighs high weeks of cover, low sell-through, little time left and high
    stock value.
    """
    woc_score = min(current_woc / URGENCY_WEEKS_SCALE, 1.0)
    sell_through_score = max(0.0, 1.0 - current_sell_through)
    time_score = max(0.0, 1.0 - horizon_weeks / URGENCY_WEEKS_SCALE)
    value_score = min(stock_value / URGENCY_STOCK_VALUE_SCALE, 1.0)

    score = (
        URGENCY_WEIGHTS['weeks_of_cover'] * woc_score +
        URGENCY_WEIGHTS['sell_through'] * sell_through_score +
        URGENCY_WEIGHTS['time_to_end'] * time_score +
        URGENCY_WEIGHTS['stock_value'] * value_score
    )
    return round(clamp(score), 2)

def urgency_level(score: float) -> UrgencyLevel:
    if score >= 0.8:
        return UrgencyLevel.CRITICAL
    elif score >= 0.6:
        return UrgencyLevel.HIGH
    elif score >= 0.4:
        return UrgencyLevel.MEDIUM
    return UrgencyLevel.LOW

def recency_factor(latest_week: Optional[date], as_of: date, lookback_weeks: int) -> float:
    """1.0 for current data, falling linearly to 0 when data is lookback_weeks old."""
    if latest_week is None or lookback_weeks <= 0:
        return 0.0
    staleness = weeks_between(latest_week, as_of)
    return clamp(1.0 - staleness / lookback_weeks)

def confidence_score(accuracy: Optional[float], recency: float, default_confidence: float) -> float:
    base = accuracy if accuracy is not None else default_confidence
    return clamp(base * recency)

def _decision(action, markdown_pct, weekly_units, current_stock, unit_price, reasoning):
    units = sum(weekly_units)
    st = sell_through(units, current_stock)
    revenue = expected_revenue(st, current_stock, unit_price, markdown_pct)
    return MarkdownDecision(
        action=action,
        markdown_pct=markdown_pct,
        projected_units=units,
        predicted_sell_through=st,
        predicted_revenue=revenue,
        reasoning=reasoning,
        weekly_units=tuple(weekly_units),
        projected_margin_loss=margin_loss(current_stock, unit_price, revenue),
        projected_days_to_sell=days_to_sell(current_stock, units, len(weekly_units))
    )

def decide_markdown(
    current_stock: float,
    current_woc: float,
    unit_price: float,
    baseline_by_week: Sequence[float],
    phases: Sequence[MarkdownPhase],
    as_of: date,
    target_sell_through: float,
    max_markdown_pct: float,
    elasticity: float = 1.5,
    staleness_multiplier: float = 2.0,
    removal_ratio: float = 0.5
) -> MarkdownDecision:
    """Pick the markdown action for one SKU.

    Escalates through the phases in order and stops at the first one that
    closes the sell-through gap by the end of the horizon. Each week is
    projected at the markdown actually in force that week, so a phase only
    lifts sales from its start date on. Stale SKUs, and SKUs no phase can
    clear, go to IMMEDIATE_CLEAR at the plan ceiling from this week on; if
    even that leaves sell-through below removal_ratio * target the SKU is
    removed from the floor. Revenue is priced at the chosen depth.

    Args:
        current_stock: Units on hand
        current_woc: Current weeks of cover
        unit_price: Full selling price
        baseline_by_week: Full-price units for each week until the plan ends
        phases: Plan phases in phase order
        as_of: Start of the first projected week
        target_sell_through: Target fraction of current stock to sell
        max_markdown_pct: Plan markdown ceiling
        elasticity: Uplift in sell-through rate per unit of markdown
        staleness_multiplier: Weeks of cover beyond this multiple of the
            horizon skip phase escalation
        removal_ratio: Fraction of target below which a cleared SKU is removed

    Returns:
        MarkdownDecision
    """
    horizon_weeks = len(baseline_by_week)
    baseline_by_week = list(baseline_by_week)

    if current_stock <= 0:
        return _decision(MarkdownAction.NO_ACTION, 0.0, [0.0] * horizon_weeks, current_stock,
                         unit_price, "No stock on hand")

    base_st = sell_through(sum(baseline_by_week), current_stock)
    if base_st >= target_sell_through:
        return _decision(
            MarkdownAction.NO_ACTION, 0.0, baseline_by_week, current_stock, unit_price,
            f"Projected sell-through {base_st:.0%} meets target {target_sell_through:.0%} at full price"
        )

    stale = current_woc > staleness_multiplier * horizon_weeks
    if not stale:
        for index, phase in enumerate(phases):
            markdown_pct = min(phase.markdown_pct, max_markdown_pct)
            schedule = markdown_schedule(phases[:index + 1], as_of, horizon_weeks, max_markdown_pct)
            weekly_units = project_weekly_units(baseline_by_week, schedule, max_markdown_pct, elasticity)
            if sell_through(sum(weekly_units), current_stock) >= target_sell_through:
                return _decision(
                    MarkdownAction.for_phase(index), markdown_pct, weekly_units, current_stock, unit_price,
                    f"Phase {phase.phase_order} markdown of {markdown_pct:.0%} from {phase.start_date} "
                    f"closes the gap from {base_st:.0%} to target {target_sell_through:.0%}"
                )
        reason = "No phase closes the sell-through gap before plan end"
    else:
        reason = (
            f"{current_woc:.1f} weeks of cover exceeds {staleness_multiplier:g}x "
            f"the {horizon_weeks} weeks left in the plan"
        )

    weekly_units = project_weekly_units(
        baseline_by_week, [max_markdown_pct] * horizon_weeks, max_markdown_pct, elasticity
    )
    clear_st = sell_through(sum(weekly_units), current_stock)
    if clear_st < removal_ratio * target_sell_through:
        return _decision(
            MarkdownAction.REMOVE_FROM_FLOOR, max_markdown_pct, weekly_units, current_stock, unit_price,
            f"{reason}; even at {max_markdown_pct:.0%} off only {clear_st:.0%} would sell"
        )

    return _decision(
        MarkdownAction.IMMEDIATE_CLEAR, max_markdown_pct, weekly_units, current_stock, unit_price,
        f"{reason}; clear now at {max_markdown_pct:.0%} off"
    )
