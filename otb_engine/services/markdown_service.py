# otb_engine/services/markdown_service.py
import concurrent.futures
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from otb_engine.config import config
from otb_engine.core.markdown import (
    confidence_score, decide_markdown, recency_factor, urgency_level, urgency_score,
    weekly_baseline
)
from otb_engine.exceptions import (
    InvalidConfigError, OptimizationError, PlanStateError, ValidationError
)
from otb_engine.logging_setup import get_logger, logger as log_manager
from otb_engine.models import (
    ForecastConfig, ForecastRun, ForecastScope, ForecastStatus, MarkdownAction,
    MarkdownPlan, MarkdownSKUInput, MarkdownSKUPlan, OptimizationResult,
    OptimizationSummary
)
from otb_engine.services.forecast_service import ForecastService
from otb_engine.utils.date_utils import whole_weeks_between

# Set up logging
logger = get_logger(__name__)

@dataclass(frozen=True)
class SKUEvaluation:
    """Recommendation for one SKU plus the inputs needed to re-project it.

    baseline_by_week is None for overridden SKUs and SKUs whose forecast
    failed. weekly_units is the projection behind the recommendation.
    """
    sku: MarkdownSKUInput
    plan: MarkdownSKUPlan
    baseline_by_week: Optional[Tuple[float, ...]] = None
    weekly_units: Tuple[float, ...] = ()
    forecast_run: Optional[ForecastRun] = None

class MarkdownOptimizer:
    """Assigns a markdown action and depth to every SKU in a plan's scope."""

    def __init__(
        self,
        forecast_service: Optional[ForecastService] = None,
        forecast_config: Optional[ForecastConfig] = None,
        settings: Optional[Dict[str, Any]] = None
    ):
        """Initialize the optimizer.

        Args:
            forecast_service: Service used to forecast each SKU
            forecast_config: Forecast config applied to every SKU
            settings: Optional overrides for Config.markdown_config
        """
        self.forecast_service = forecast_service or ForecastService()
        self.forecast_config = forecast_config or self.forecast_service.build_config()
        self.settings = dict(config.markdown_config)
        if settings:
            self.settings.update(settings)

    def _check_inputs(self, plan: MarkdownPlan, skus: Sequence[MarkdownSKUInput]):
        plan.validate()

        if plan.is_terminal:
            raise PlanStateError(
                f"Plan '{plan.plan_name}' is {plan.status} and cannot be optimized",
                details={'status': plan.status.value}
            )

        seen = set()
        duplicates = set()
        for sku in skus:
            if sku.sku_id in seen:
                duplicates.add(sku.sku_id)
            seen.add(sku.sku_id)

        if duplicates:
            raise ValidationError(
                f"Duplicate SKUs in optimization scope: {', '.join(sorted(duplicates))}",
                details={'sku_ids': sorted(duplicates)}
            )

    def _frozen_plan(self, plan: MarkdownPlan, sku: MarkdownSKUInput) -> Optional[MarkdownSKUPlan]:
        if sku.is_overridden:
            return sku.existing_plan
        for sku_plan in plan.sku_plans:
            if sku_plan.sku_id == sku.sku_id and sku_plan.is_overridden:
                return sku_plan
        return None

    def evaluate_sku(self, plan: MarkdownPlan, sku: MarkdownSKUInput, as_of: date) -> SKUEvaluation:
        """Compute the recommendation for one SKU from a consistent snapshot.

        Overridden SKUs are returned unchanged.

        Args:
            plan: Validated markdown plan
            sku: SKU snapshot
            as_of: Date the recommendation is made

        Returns:
            SKUEvaluation
        """
        frozen = self._frozen_plan(plan, sku)
        if frozen is not None:
            logger.warning(f"SKU {sku.sku_id} is overridden; keeping {frozen.recommended_action}")
            return SKUEvaluation(sku=sku, plan=frozen)

        horizon = whole_weeks_between(as_of, plan.plan_end_date)
        urgency = urgency_score(
            sku.current_woc, sku.current_sell_through, horizon, sku.current_stock * sku.unit_price
        )

        scope = ForecastScope(
            brand_id=plan.brand_id,
            category_id=plan.category_id,
            season_id=plan.season_id,
            entity_id=sku.sku_id
        )
        run = self.forecast_service.run_forecast(sku.history, self.forecast_config, scope)

        if run.status is not ForecastStatus.COMPLETED:
            logger.warning(f"No forecast for SKU {sku.sku_id}: {run.failure_reason}")
            return SKUEvaluation(
                sku=sku,
                plan=MarkdownSKUPlan(
                    sku_id=sku.sku_id,
                    current_stock=sku.current_stock,
                    current_woc=sku.current_woc,
                    current_sell_through=sku.current_sell_through,
                    unit_price=sku.unit_price,
                    recommended_action=MarkdownAction.NO_ACTION,
                    confidence_score=0.0,
                    urgency_score=urgency,
                    urgency_level=urgency_level(urgency),
                    reasoning=f"Forecast unavailable: {run.failure_reason}"
                ),
                forecast_run=run
            )

        baseline_by_week = weekly_baseline(run.weekly_forecast, horizon)

        decision = decide_markdown(
            current_stock=sku.current_stock,
            current_woc=sku.current_woc,
            unit_price=sku.unit_price,
            baseline_by_week=baseline_by_week,
            phases=plan.ordered_phases(),
            as_of=as_of,
            target_sell_through=plan.target_sell_through_pct,
            max_markdown_pct=plan.max_markdown_pct,
            elasticity=self.settings['elasticity'],
            staleness_multiplier=self.settings['staleness_woc_multiplier'],
            removal_ratio=self.settings['removal_ratio']
        )

        recency = recency_factor(run.latest_week, as_of, self.forecast_config.lookback_weeks)
        confidence = confidence_score(run.accuracy, recency, self.settings['default_confidence'])

        logger.debug(
            f"SKU {sku.sku_id}: {decision.action} at {decision.markdown_pct:.0%}, "
            f"sell-through {decision.predicted_sell_through:.2f}, confidence {confidence:.2f}"
        )

        sku_plan = MarkdownSKUPlan(
            sku_id=sku.sku_id,
            current_stock=sku.current_stock,
            current_woc=sku.current_woc,
            current_sell_through=sku.current_sell_through,
            recommended_action=decision.action,
            recommended_markdown_pct=decision.markdown_pct,
            predicted_sell_through=decision.predicted_sell_through,
            predicted_revenue=decision.predicted_revenue,
            confidence_score=confidence,
            unit_price=sku.unit_price,
            projected_units=decision.projected_units,
            urgency_score=urgency,
            urgency_level=urgency_level(urgency),
            projected_margin_loss=decision.projected_margin_loss,
            projected_days_to_sell=decision.projected_days_to_sell,
            reasoning=decision.reasoning
        )
        return SKUEvaluation(
            sku=sku,
            plan=sku_plan,
            baseline_by_week=tuple(baseline_by_week),
            weekly_units=decision.weekly_units,
            forecast_run=run
        )

    def evaluate_all(
        self,
        plan: MarkdownPlan,
        skus: Sequence[MarkdownSKUInput],
        as_of: Optional[date] = None
    ) -> List[SKUEvaluation]:
        """Evaluate every SKU, concurrently when max_workers > 1.

        Results keep the input order.
        """
        skus = list(skus)
        self._check_inputs(plan, skus)
        as_of = as_of or plan.plan_start_date

        max_workers = self.settings['max_workers'] or 1
        if max_workers <= 1 or len(skus) <= 1:
            return [self.evaluate_sku(plan, sku, as_of) for sku in skus]

        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(lambda sku: self.evaluate_sku(plan, sku, as_of), skus))

    def optimize(
        self,
        plan: MarkdownPlan,
        skus: Sequence[MarkdownSKUInput],
        as_of: Optional[date] = None
    ) -> OptimizationResult:
        """Run one optimization pass over a plan's SKUs.

        The plan is not modified; the result is a new record every time.

        Args:
            plan: Markdown plan
            skus: SKU snapshots in scope
            as_of: Recommendation date (defaults to the plan start date)

        Returns:
            OptimizationResult

        Raises:
            ValidationError, InvalidConfigError or PlanStateError before any SKU is evaluated
        """
        log_info = log_manager.batch_start_log(
            'markdown_optimization',
            {'plan': plan.plan_name, 'skus': len(skus)}
        )

        try:
            evaluations = self.evaluate_all(plan, skus, as_of)
        except (ValidationError, InvalidConfigError, PlanStateError):
            log_manager.batch_end_log(log_info, success=False)
            raise
        except Exception as e:
            log_manager.batch_end_log(log_info, success=False)
            raise OptimizationError(f"Optimization of plan '{plan.plan_name}' failed: {e}") from e

        recommendations = [evaluation.plan for evaluation in evaluations]
        summary = self.summarize(recommendations)

        log_manager.batch_end_log(log_info, success=True, result_info=summary.counts_by_action)

        return OptimizationResult(
            plan_name=plan.plan_name,
            total_skus=len(recommendations),
            recommendations=recommendations,
            summary=summary
        )

    @staticmethod
    def summarize(recommendations: Sequence[MarkdownSKUPlan]) -> OptimizationSummary:
        """Aggregate recommendations; every SKU counts toward the totals."""
        counts_by_action = {action.value: 0 for action in MarkdownAction}
        for recommendation in recommendations:
            counts_by_action[recommendation.recommended_action.value] += 1

        count = len(recommendations)
        total_revenue = sum(r.predicted_revenue for r in recommendations)
        avg_confidence = sum(r.confidence_score for r in recommendations) / count if count else 0.0
        avg_sell_through = sum(r.predicted_sell_through for r in recommendations) / count if count else 0.0

        return OptimizationSummary(
            counts_by_action=counts_by_action,
            total_expected_revenue=total_revenue,
            avg_confidence=avg_confidence,
            avg_predicted_sell_through=avg_sell_through,
            overridden_skus=sum(1 for r in recommendations if r.is_overridden),
            total_margin_loss=sum(r.projected_margin_loss for r in recommendations)
        )
