"""
Unit tests for markdown decisions and the markdown optimizer.

With a flat history of 10 units/week over an eight-week plan the full-price
baseline is 80 units. Phases start in weeks 0, 3 and 6, so each phase only
lifts the weeks from its start date on:

    phase 1 (20% from week 0)      13.0 * 8                    = 104.0
    phase 2 (30% from week 3)      13.0 * 3 + 14.5 * 5         = 111.5
    phase 3 (50% from week 6)      13.0 * 3 + 14.5 * 3 + 17.5 * 2 = 117.5
    clear now (50% every week)     17.5 * 8                    = 140.0
"""
import unittest
from datetime import date
from unittest.mock import patch

from otb_engine.core.markdown import (
    days_to_sell,
    decide_markdown,
    margin_loss,
    markdown_schedule,
    project_units,
    project_weekly_units,
    recency_factor,
    sell_through,
    urgency_level,
    urgency_score,
    weekly_baseline
)
from otb_engine.exceptions import OptimizationError, PlanStateError, ValidationError
from otb_engine.models import MarkdownAction, MarkdownSKUPlan, PlanStatus, UrgencyLevel
from otb_engine.services.markdown_service import MarkdownOptimizer
from otb_engine.tests.fixtures import (
    PLAN_START, UNIT_PRICE, flat_history, make_plan, make_sku, moving_average_config
)

def decide(stock, current_woc=10, as_of=PLAN_START, weeks=8):
    return decide_markdown(
        current_stock=stock, current_woc=current_woc, unit_price=UNIT_PRICE,
        baseline_by_week=[10.0] * weeks, phases=make_plan().ordered_phases(), as_of=as_of,
        target_sell_through=0.8, max_markdown_pct=0.5
    )

class TestMarkdownCalculations(unittest.TestCase):
    """Test cases for the pure markdown calculations."""

    def test_baseline_extends_forecast_flat(self):
        self.assertEqual(weekly_baseline([1.0, 2.0], 4), [1.0, 2.0, 2.0, 2.0])
        self.assertEqual(weekly_baseline([1.0, 2.0, 3.0], 2), [1.0, 2.0])
        self.assertEqual(weekly_baseline([5.0], 0), [])

    def test_projection_caps_markdown_at_ceiling(self):
        self.assertAlmostEqual(project_units(100, 0.9, 0.5, 1.5), 175.0)
        self.assertAlmostEqual(project_units(100, 0.0, 0.5, 1.5), 100.0)

    def test_schedule_follows_phase_start_dates(self):
        phases = make_plan().ordered_phases()

        self.assertEqual(
            markdown_schedule(phases, PLAN_START, 8, 0.5),
            [0.2, 0.2, 0.2, 0.3, 0.3, 0.3, 0.5, 0.5]
        )
        self.assertEqual(markdown_schedule(phases[:1], PLAN_START, 3, 0.5), [0.2, 0.2, 0.2])
        self.assertEqual(markdown_schedule(phases, PLAN_START, 8, 0.25)[-1], 0.25)

    def test_schedule_is_full_price_before_first_phase(self):
        phases = make_plan().ordered_phases()[1:]

        self.assertEqual(markdown_schedule(phases, PLAN_START, 4, 0.5), [0.0, 0.0, 0.0, 0.3])

    def test_weekly_projection_uses_each_weeks_markdown(self):
        weekly = project_weekly_units([10.0, 10.0, 10.0], [0.0, 0.2, 0.5], 0.5, 1.5)

        self.assertAlmostEqual(weekly[0], 10.0)
        self.assertAlmostEqual(weekly[1], 13.0)
        self.assertAlmostEqual(weekly[2], 17.5)

    def test_sell_through(self):
        self.assertEqual(sell_through(50, 100), 0.5)
        self.assertEqual(sell_through(150, 100), 1.0)
        self.assertEqual(sell_through(10, 0), 1.0)

    def test_margin_loss(self):
        self.assertAlmostEqual(margin_loss(110, UNIT_PRICE, 1664.0), 536.0)
        self.assertEqual(margin_loss(0, UNIT_PRICE, 0.0), 0.0)

    def test_days_to_sell(self):
        # 104 units over 8 weeks is 13/week; 110 units take 59.2 days
        self.assertEqual(days_to_sell(110, 104.0, 8), 59.0)
        self.assertEqual(days_to_sell(0, 0.0, 8), 0.0)
        self.assertEqual(days_to_sell(110, 0.0, 8), 365.0)
        self.assertEqual(days_to_sell(110, 10.0, 0), 365.0)
        self.assertEqual(days_to_sell(10000, 1.0, 8), 365.0)

    def test_urgency_score_weights_four_factors(self):
        # 0.35 * 10/12 + 0.25 * 0.8 + 0.25 * (1 - 8/12) + 0.15 * 2200/50000
        self.assertEqual(urgency_score(10, 0.2, 8, 2200.0), 0.58)
        self.assertEqual(urgency_score(24, 0.0, 0, 100000.0), 1.0)
        self.assertEqual(urgency_score(0, 1.0, 20, 0.0), 0.0)

    def test_urgency_levels(self):
        self.assertEqual(urgency_level(0.8), UrgencyLevel.CRITICAL)
        self.assertEqual(urgency_level(0.6), UrgencyLevel.HIGH)
        self.assertEqual(urgency_level(0.58), UrgencyLevel.MEDIUM)
        self.assertEqual(urgency_level(0.39), UrgencyLevel.LOW)

    def test_recency(self):
        self.assertEqual(recency_factor(date(2024, 3, 4), date(2024, 3, 4), 8), 1.0)
        self.assertAlmostEqual(recency_factor(date(2024, 2, 26), date(2024, 3, 4), 8), 0.875)
        self.assertEqual(recency_factor(date(2023, 1, 2), date(2024, 3, 4), 8), 0.0)
        self.assertEqual(recency_factor(None, date(2024, 3, 4), 8), 0.0)

    def test_decision_escalates_through_phases(self):
        expected = {
            80: MarkdownAction.NO_ACTION,
            110: MarkdownAction.INCLUDE_PHASE_1,
            135: MarkdownAction.INCLUDE_PHASE_2,
            145: MarkdownAction.INCLUDE_PHASE_3,
            200: MarkdownAction.IMMEDIATE_CLEAR,
            400: MarkdownAction.REMOVE_FROM_FLOOR,
        }

        for stock, action in expected.items():
            self.assertEqual(decide(stock).action, action, f"stock={stock}")

    def test_late_phase_only_lifts_its_own_weeks(self):
        # Phase 3 at 50% for all eight weeks would sell 140 of 170; starting
        # in week 6 it sells 117.5, short of the 80% target
        decision = decide(170)

        self.assertEqual(decision.action, MarkdownAction.IMMEDIATE_CLEAR)
        self.assertAlmostEqual(decision.projected_units, 140.0)

    def test_phase_decision_projects_by_week(self):
        decision = decide(135)

        self.assertEqual(decision.markdown_pct, 0.3)
        self.assertAlmostEqual(decision.projected_units, 111.5)
        self.assertEqual(len(decision.weekly_units), 8)
        self.assertAlmostEqual(decision.weekly_units[0], 13.0)
        self.assertAlmostEqual(decision.weekly_units[7], 14.5)
        self.assertAlmostEqual(decision.predicted_revenue, 111.5 * UNIT_PRICE * 0.7)
        self.assertAlmostEqual(decision.projected_margin_loss, 135 * UNIT_PRICE - 111.5 * UNIT_PRICE * 0.7)

    def test_phases_started_before_as_of_apply_from_week_zero(self):
        # From 2024-03-25 five weeks remain and phase 1 is in force for all of them
        decision = decide(80, as_of=date(2024, 3, 25), weeks=5)

        self.assertEqual(decision.action, MarkdownAction.INCLUDE_PHASE_1)
        self.assertAlmostEqual(decision.projected_units, 65.0)
        self.assertAlmostEqual(decision.markdown_pct, 0.2)

    def test_stale_stock_skips_phases(self):
        decision = decide(110, current_woc=20)

        self.assertEqual(decision.action, MarkdownAction.IMMEDIATE_CLEAR)
        self.assertEqual(decision.markdown_pct, 0.5)
        self.assertEqual(decision.predicted_sell_through, 1.0)

    def test_no_stock_needs_no_action(self):
        decision = decide_markdown(
            current_stock=0, current_woc=0, unit_price=UNIT_PRICE, baseline_by_week=[10.0] * 8,
            phases=[], as_of=PLAN_START, target_sell_through=0.8, max_markdown_pct=0.5
        )

        self.assertEqual(decision.action, MarkdownAction.NO_ACTION)
        self.assertEqual(decision.predicted_revenue, 0.0)
        self.assertEqual(decision.projected_days_to_sell, 0.0)

class TestMarkdownOptimizer(unittest.TestCase):
    """Test cases for MarkdownOptimizer."""

    def setUp(self):
        self.plan = make_plan()
        self.optimizer = MarkdownOptimizer(
            forecast_config=moving_average_config(),
            settings={'max_workers': 1}
        )

    def test_recommendation_for_phase_one_sku(self):
        result = self.optimizer.optimize(self.plan, [make_sku('SKU-B', 110)])

        recommendation = result.recommendations[0]
        self.assertEqual(recommendation.recommended_action, MarkdownAction.INCLUDE_PHASE_1)
        self.assertAlmostEqual(recommendation.recommended_markdown_pct, 0.2)
        self.assertAlmostEqual(recommendation.projected_units, 104.0)
        self.assertAlmostEqual(recommendation.predicted_sell_through, 104.0 / 110.0)
        self.assertAlmostEqual(recommendation.predicted_revenue, 104.0 * UNIT_PRICE * 0.8)
        # accuracy 1.0, data one week old against an eight-week lookback
        self.assertAlmostEqual(recommendation.confidence_score, 0.875)

    def test_recommendation_carries_urgency_and_margin(self):
        result = self.optimizer.optimize(self.plan, [make_sku('SKU-B', 110)])

        recommendation = result.recommendations[0]
        self.assertEqual(recommendation.urgency_score, 0.58)
        self.assertEqual(recommendation.urgency_level, UrgencyLevel.MEDIUM)
        self.assertAlmostEqual(recommendation.projected_margin_loss, 110 * UNIT_PRICE - 104.0 * UNIT_PRICE * 0.8)
        self.assertEqual(recommendation.projected_days_to_sell, 59.0)
        self.assertAlmostEqual(result.summary.total_margin_loss, recommendation.projected_margin_loss)

    def test_summary_counts_every_action(self):
        skus = [
            make_sku('SKU-A', 80),
            make_sku('SKU-B', 110),
            make_sku('SKU-C', 135),
            make_sku('SKU-D', 145),
            make_sku('SKU-E', 200),
            make_sku('SKU-F', 400),
        ]

        result = self.optimizer.optimize(self.plan, skus)

        self.assertEqual(result.total_skus, 6)
        self.assertEqual(set(result.summary.counts_by_action.values()), {1})
        self.assertEqual(set(result.summary.counts_by_action), {a.value for a in MarkdownAction})
        self.assertAlmostEqual(result.summary.avg_confidence, 0.875)
        self.assertAlmostEqual(
            result.summary.total_expected_revenue,
            sum(r.predicted_revenue for r in result.recommendations)
        )

    def test_failed_forecast_is_reported_not_raised(self):
        sku = make_sku('SKU-NEW', 110, history=flat_history('SKU-NEW', weeks=3))

        result = self.optimizer.optimize(self.plan, [sku, make_sku('SKU-B', 110)])

        failed = result.recommendations[0]
        self.assertEqual(failed.recommended_action, MarkdownAction.NO_ACTION)
        self.assertEqual(failed.confidence_score, 0.0)
        self.assertTrue(failed.reasoning.startswith('Forecast unavailable'))
        self.assertEqual(result.recommendations[1].recommended_action, MarkdownAction.INCLUDE_PHASE_1)

    def test_later_as_of_shortens_horizon(self):
        result = self.optimizer.optimize(self.plan, [make_sku('SKU-B', 110)], as_of=date(2024, 4, 15))

        recommendation = result.recommendations[0]
        # Two weeks left: 20 units at full price, 35 at the 50% ceiling
        self.assertEqual(recommendation.recommended_action, MarkdownAction.REMOVE_FROM_FLOOR)
        self.assertAlmostEqual(recommendation.confidence_score, 0.125)

    def test_overridden_sku_is_frozen(self):
        frozen = MarkdownSKUPlan('SKU-B', 110, 11, 0.2).override(MarkdownAction.IMMEDIATE_CLEAR, 0.4)

        result = self.optimizer.optimize(
            self.plan,
            [make_sku('SKU-B', 110, existing_plan=frozen), make_sku('SKU-C', 140)]
        )

        self.assertIs(result.recommendations[0], frozen)
        self.assertEqual(result.summary.overridden_skus, 1)
        self.assertEqual(result.summary.counts_by_action['IMMEDIATE_CLEAR'], 1)

    def test_override_stored_on_plan_is_frozen(self):
        frozen = MarkdownSKUPlan('SKU-B', 110, 11, 0.2).override(MarkdownAction.NO_ACTION, 0.0)
        plan = make_plan(sku_plans=[frozen])

        result = self.optimizer.optimize(plan, [make_sku('SKU-B', 110)])

        self.assertEqual(result.recommendations, [frozen])

    def test_optimization_is_idempotent_and_leaves_plan_untouched(self):
        skus = [make_sku('SKU-B', 110), make_sku('SKU-E', 200)]

        first = self.optimizer.optimize(self.plan, skus)
        second = self.optimizer.optimize(self.plan, skus)

        self.assertEqual(first, second)
        self.assertEqual(self.plan.status, PlanStatus.DRAFT)
        self.assertEqual(self.plan.sku_plans, [])

    def test_concurrent_evaluation_preserves_order(self):
        skus = [make_sku(f'SKU-{i:02d}', 100 + 20 * i) for i in range(12)]
        concurrent = MarkdownOptimizer(forecast_config=moving_average_config(), settings={'max_workers': 4})

        sequential_result = self.optimizer.optimize(self.plan, skus)
        concurrent_result = concurrent.optimize(self.plan, skus)

        self.assertEqual([r.sku_id for r in concurrent_result.recommendations], [s.sku_id for s in skus])
        self.assertEqual(concurrent_result, sequential_result)

    def test_duplicate_skus_rejected(self):
        with self.assertRaises(ValidationError):
            self.optimizer.optimize(self.plan, [make_sku('SKU-B', 110), make_sku('SKU-B', 120)])

    def test_terminal_plan_rejected(self):
        self.plan.transition_to(PlanStatus.CANCELLED)

        with self.assertRaises(PlanStateError):
            self.optimizer.optimize(self.plan, [make_sku('SKU-B', 110)])

    def test_unexpected_error_is_wrapped(self):
        with patch.object(self.optimizer, 'evaluate_sku', side_effect=RuntimeError('boom')):
            with self.assertRaises(OptimizationError):
                self.optimizer.optimize(self.plan, [make_sku('SKU-B', 110)])

if __name__ == '__main__':
    unittest.main()
