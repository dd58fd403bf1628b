# otb_engine/services/simulation_service.py
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

from otb_engine.core.markdown import expected_revenue, project_weekly_units, sell_through
from otb_engine.exceptions import InvalidConfigError, PlanStateError, SimulationError, ValidationError
from otb_engine.logging_setup import get_logger
from otb_engine.models import (
    MarkdownPlan, MarkdownSKUInput, RiskAssessment, RiskLevel, SimulationResult,
    SimulationScenario, WeeklyProjection
)
from otb_engine.services.markdown_service import MarkdownOptimizer, SKUEvaluation
from otb_engine.utils.date_utils import whole_weeks_between

# Set up logging
logger = get_logger(__name__)

LOW_SELL_THROUGH_WARNING = 0.5
HIGH_SELL_THROUGH_WARNING = 0.95
HIGH_MARGIN_EROSION = 0.5
MEDIUM_MARGIN_EROSION = 0.3

@dataclass(frozen=True)
class _SKUProjection:
    stock: float
    unit_price: float
    markdown_pct: float
    units: float
    revenue: float
    sell_through: float
    weekly_units: Tuple[float, ...]

    @property
    def net_price(self) -> float:
        """Realized price per unit sold, or the marked-down price if nothing sells."""
        if self.units > 0:
            return self.revenue / self.units
        return self.unit_price * (1.0 - self.markdown_pct)

class SimulationRunner:
    """Replays the markdown projection for what-if scenarios.

    Nothing passed in is modified. A scenario without markdown changes yields
    exactly the totals of a real optimization run on the same inputs.
    """

    def __init__(self, optimizer: Optional[MarkdownOptimizer] = None):
        self.optimizer = optimizer or MarkdownOptimizer()

    def _targets(self, scenario: SimulationScenario, evaluation: SKUEvaluation) -> Optional[float]:
        sku_id = evaluation.sku.sku_id
        if sku_id in scenario.sku_overrides:
            return scenario.sku_overrides[sku_id]
        if scenario.markdown_pct is None:
            return None
        if not scenario.sku_ids or sku_id in scenario.sku_ids:
            return scenario.markdown_pct
        return None

    def _project(
        self,
        plan: MarkdownPlan,
        scenario: SimulationScenario,
        evaluation: SKUEvaluation,
        horizon: int
    ) -> _SKUProjection:
        sku_plan = evaluation.plan
        stock = sku_plan.current_stock
        markdown_pct = self._targets(scenario, evaluation)

        if markdown_pct is None or sku_plan.is_overridden or evaluation.baseline_by_week is None:
            markdown_pct = sku_plan.recommended_markdown_pct
            st = sku_plan.predicted_sell_through
            revenue = sku_plan.predicted_revenue
            weekly_units = evaluation.weekly_units
            if not weekly_units and horizon > 0:
                # Frozen decisions carry no weekly projection; spread their units evenly
                weekly_units = (st * stock / horizon,) * horizon
        else:
            markdown_pct = min(markdown_pct, plan.max_markdown_pct)
            weekly_units = tuple(project_weekly_units(
                evaluation.baseline_by_week,
                [markdown_pct] * len(evaluation.baseline_by_week),
                plan.max_markdown_pct,
                self.optimizer.settings['elasticity']
            ))
            st = sell_through(sum(weekly_units), stock)
            revenue = expected_revenue(st, stock, sku_plan.unit_price, markdown_pct)

        return _SKUProjection(
            stock=stock,
            unit_price=sku_plan.unit_price,
            markdown_pct=markdown_pct,
            units=st * stock,
            revenue=revenue,
            sell_through=st,
            weekly_units=tuple(weekly_units)
        )

    @staticmethod
    def weekly_projections(
        projections: Sequence[_SKUProjection],
        start: date,
        horizon: int
    ) -> List[WeeklyProjection]:
        """Run stock down week by week; no SKU sells more than it has left."""
        remaining = [p.stock for p in projections]
        total_stock = sum(remaining)
        cumulative_units = 0.0
        cumulative_revenue = 0.0

        weeks = []
        for week in range(horizon):
            opening_stock = sum(remaining)
            opening_value = sum(r * p.net_price for r, p in zip(remaining, projections))

            week_units = 0.0
            week_revenue = 0.0
            for index, projection in enumerate(projections):
                demand = projection.weekly_units[week] if week < len(projection.weekly_units) else 0.0
                sold = min(remaining[index], demand)
                remaining[index] -= sold
                week_units += sold
                week_revenue += sold * projection.net_price

            cumulative_units += week_units
            cumulative_revenue += week_revenue

            weeks.append(WeeklyProjection(
                week_number=week + 1,
                week_start=start + timedelta(weeks=week),
                opening_stock=opening_stock,
                opening_value=opening_value,
                projected_units=week_units,
                projected_revenue=week_revenue,
                closing_stock=sum(remaining),
                closing_value=sum(r * p.net_price for r, p in zip(remaining, projections)),
                cumulative_sell_through=cumulative_units / total_stock if total_stock > 0 else 0.0,
                cumulative_revenue=cumulative_revenue
            ))
        return weeks

    @staticmethod
    def assess_risk(
        sku_count: int,
        avg_sell_through: float,
        starting_value: float,
        margin_loss: float
    ) -> Tuple[RiskAssessment, List[str]]:
        """Grade stockout and margin erosion risk and collect warnings."""
        warnings = []

        stockout_risk = RiskLevel.LOW
        if sku_count and avg_sell_through < LOW_SELL_THROUGH_WARNING:
            warnings.append("Sell-through below 50% - consider more aggressive markdowns")
        elif avg_sell_through > HIGH_SELL_THROUGH_WARNING:
            warnings.append("May sell out too quickly - consider a phased approach")
            stockout_risk = RiskLevel.HIGH

        margin_risk = RiskLevel.LOW
        if margin_loss > starting_value * HIGH_MARGIN_EROSION:
            warnings.append("Significant margin erosion expected (>50%)")
            margin_risk = RiskLevel.HIGH
        elif margin_loss > starting_value * MEDIUM_MARGIN_EROSION:
            margin_risk = RiskLevel.MEDIUM

        risk = RiskAssessment(
            stockout_risk=stockout_risk,
            margin_erosion_risk=margin_risk,
            overall_risk=max(stockout_risk, margin_risk, key=lambda level: level.rank)
        )
        return risk, warnings

    def simulate(
        self,
        plan: MarkdownPlan,
        skus: Sequence[MarkdownSKUInput],
        scenario: SimulationScenario,
        as_of: Optional[date] = None
    ) -> SimulationResult:
        """Project a scenario's revenue, units, sell-through and risk.

        Overridden SKUs and SKUs without a forecast keep their recommendation;
        other targeted SKUs are re-projected at the scenario markdown, capped
        at the plan ceiling, for every remaining week of the plan.

        Args:
            plan: Markdown plan
            skus: SKU snapshots in scope
            scenario: Hypothetical markdown scenario
            as_of: Recommendation date (defaults to the plan start date)

        Returns:
            SimulationResult with a week-by-week projection
        """
        as_of = as_of or plan.plan_start_date
        try:
            evaluations = self.optimizer.evaluate_all(plan, skus, as_of)
        except (ValidationError, InvalidConfigError, PlanStateError):
            raise
        except Exception as e:
            raise SimulationError(f"Scenario '{scenario.scenario_name}' failed: {e}") from e

        horizon = whole_weeks_between(as_of, plan.plan_end_date)
        projections = [self._project(plan, scenario, evaluation, horizon) for evaluation in evaluations]

        sku_count = len(projections)
        total_revenue = sum(p.revenue for p in projections)
        total_units = sum(p.units for p in projections)
        avg_sell_through = sum(p.sell_through for p in projections) / sku_count if sku_count else 0.0
        starting_value = sum(p.stock * p.unit_price for p in projections)
        margin_loss = starting_value - total_revenue

        risk, warnings = self.assess_risk(sku_count, avg_sell_through, starting_value, margin_loss)

        result = SimulationResult(
            scenario_name=scenario.scenario_name,
            total_revenue=total_revenue,
            total_units=total_units,
            avg_sell_through=avg_sell_through,
            sku_count=sku_count,
            warnings=tuple(warnings),
            starting_inventory_value=starting_value,
            projected_margin_loss=margin_loss,
            remaining_stock=sum(max(0.0, p.stock - p.units) for p in projections),
            remaining_value=sum(max(0.0, p.stock - p.units) * p.net_price for p in projections),
            weekly_projections=tuple(self.weekly_projections(projections, as_of, horizon)),
            risk=risk
        )

        logger.info(
            f"Scenario '{scenario.scenario_name}' on plan '{plan.plan_name}': "
            f"revenue={result.total_revenue:.2f}, sell-through={result.avg_sell_through:.2%}, "
            f"risk={risk.overall_risk}"
        )
        return result
