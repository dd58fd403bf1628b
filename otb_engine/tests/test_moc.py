"""
Unit tests for months-of-cover classification, alerts and the replenishment monitor.
"""
import math
import unittest
from datetime import date, timedelta

from otb_engine.core.moc import (
    calculate_moc,
    classify_moc,
    generate_alerts,
    is_accelerating,
    projected_rate,
    rank_alerts,
    reorder_point,
    safety_stock,
    suggested_order_qty
)
from otb_engine.models import AlertSeverity, AlertType, CategoryStockSnapshot, MOCStatus, Observation
from otb_engine.services.replenishment_service import ReplenishmentMonitor

def snapshot(category_id='CAT1', current_stock=50.0, monthly_rate=25.0, **overrides):
    values = dict(
        category_id=category_id,
        current_stock=current_stock,
        monthly_rate=monthly_rate,
        min_moc=1.5,
        target_moc=3.0,
        max_moc=5.0,
        lead_time_days=30.0
    )
    values.update(overrides)
    return CategoryStockSnapshot(**values)

def alert_types(alerts):
    return [alert.alert_type for alert in alerts]

class TestMOCCalculations(unittest.TestCase):
    """Test cases for the pure MOC functions."""

    def test_classification_priority(self):
        self.assertEqual(classify_moc(1.0, 25, 25, 1.5, 3.0, 5.0), MOCStatus.CRITICAL)
        self.assertEqual(classify_moc(2.0, 50, 25, 1.5, 3.0, 5.0), MOCStatus.WARNING)
        self.assertEqual(classify_moc(2.5, 62.5, 25, 1.5, 3.0, 5.0), MOCStatus.HEALTHY)
        self.assertEqual(classify_moc(5.0, 125, 25, 1.5, 3.0, 5.0), MOCStatus.HEALTHY)
        self.assertEqual(classify_moc(6.0, 150, 25, 1.5, 3.0, 5.0), MOCStatus.OVERSTOCK)

    def test_missing_rate_is_unknown(self):
        self.assertIsNone(calculate_moc(50, None))
        self.assertEqual(classify_moc(None, 50, None, 1.5, 3.0, 5.0), MOCStatus.UNKNOWN)

    def test_zero_rate(self):
        self.assertEqual(calculate_moc(50, 0), math.inf)
        self.assertEqual(classify_moc(math.inf, 50, 0, 1.5, 3.0, 5.0), MOCStatus.OVERSTOCK)
        self.assertEqual(classify_moc(math.inf, 0, 0, 1.5, 3.0, 5.0), MOCStatus.UNKNOWN)
        self.assertEqual(suggested_order_qty(math.inf, 0, 3.0), 0.0)

    def test_suggested_order_qty(self):
        self.assertEqual(suggested_order_qty(2.0, 25, 3.0), 25.0)
        self.assertEqual(suggested_order_qty(4.0, 25, 3.0), 0.0)

    def test_safety_stock_and_reorder_point(self):
        self.assertEqual(safety_stock(30, 14), 14.0)
        self.assertEqual(safety_stock(31, 14), 15.0)
        self.assertEqual(safety_stock(None, 14), 0.0)
        self.assertEqual(reorder_point(30, 30, 14.0), 44.0)

    def test_acceleration(self):
        self.assertTrue(is_accelerating([10, 20, 30, 40]))
        self.assertFalse(is_accelerating([40, 30, 20, 10]))
        self.assertFalse(is_accelerating([25]))
        self.assertAlmostEqual(projected_rate([10, 20, 30, 40], 40), 50.0)
        self.assertEqual(projected_rate([40, 30, 20, 10], 25), 25)

class TestAlerts(unittest.TestCase):
    """Test cases for alert generation."""

    def test_warning_example(self):
        snap = snapshot()

        alerts = generate_alerts(snap, calculate_moc(50, 25), lead_time_days=30)

        self.assertEqual(alert_types(alerts), [AlertType.APPROACHING_MIN])
        self.assertEqual(alerts[0].severity, AlertSeverity.WARNING)
        self.assertEqual(alerts[0].suggested_order_qty, 25.0)

    def test_below_min_with_stockout(self):
        snap = snapshot(current_stock=10, unit_cost=2.0)

        alerts = generate_alerts(snap, calculate_moc(10, 25), lead_time_days=30)

        self.assertEqual(alert_types(alerts), [AlertType.BELOW_MIN_MOC, AlertType.STOCKOUT_RISK])
        self.assertTrue(all(a.severity is AlertSeverity.CRITICAL for a in alerts))
        self.assertAlmostEqual(alerts[0].suggested_order_qty, 65.0)
        self.assertAlmostEqual(alerts[0].suggested_order_value, 130.0)

    def test_stockout_risk_with_healthy_cover(self):
        snap = snapshot(current_stock=100, next_reorder_in_days=30, lead_time_days=100)

        alerts = generate_alerts(snap, calculate_moc(100, 25), lead_time_days=100)

        self.assertEqual(alert_types(alerts), [AlertType.STOCKOUT_RISK])

    def test_lead_time_risk_when_accelerating(self):
        snap = snapshot(current_stock=80, monthly_rate=40, min_moc=1.5, target_moc=2.5, max_moc=4.0,
                        rate_history=(10, 20, 30, 40))

        alerts = generate_alerts(snap, calculate_moc(80, 40), lead_time_days=50)

        self.assertIn(AlertType.LEAD_TIME_RISK, alert_types(alerts))
        self.assertNotIn(AlertType.STOCKOUT_RISK, alert_types(alerts))

    def test_zero_rate_overstock(self):
        snap = snapshot(current_stock=100, monthly_rate=0)

        alerts = generate_alerts(snap, calculate_moc(100, 0), lead_time_days=30)

        self.assertEqual(alert_types(alerts), [AlertType.ABOVE_MAX_MOC])
        self.assertEqual(alerts[0].suggested_order_qty, 0.0)

    def test_missing_rate_raises_no_alerts(self):
        self.assertEqual(generate_alerts(snapshot(monthly_rate=None), None, lead_time_days=30), [])

    def test_ranking(self):
        warning = generate_alerts(snapshot('CAT-A'), 2.0, lead_time_days=30)
        critical = generate_alerts(snapshot('CAT-B', current_stock=10), 0.4, lead_time_days=30)

        ranked = rank_alerts(warning + critical)

        self.assertEqual([a.severity for a in ranked],
                         [AlertSeverity.CRITICAL, AlertSeverity.CRITICAL, AlertSeverity.WARNING])
        self.assertEqual(ranked[-1].category_id, 'CAT-A')

class TestReplenishmentMonitor(unittest.TestCase):
    """Test cases for ReplenishmentMonitor."""

    def setUp(self):
        self.monitor = ReplenishmentMonitor()

    def test_evaluate_warning_example(self):
        moc_data, alerts = self.monitor.evaluate(snapshot())

        self.assertEqual(moc_data.current_moc, 2.0)
        self.assertEqual(moc_data.status, MOCStatus.WARNING)
        self.assertAlmostEqual(moc_data.days_until_stockout, 60.0)
        self.assertEqual(alert_types(alerts), [AlertType.APPROACHING_MIN])

    def test_default_lead_time_from_config(self):
        monitor = ReplenishmentMonitor(settings={'default_lead_time_days': 90})

        _, alerts = monitor.evaluate(snapshot(lead_time_days=None))

        self.assertIn(AlertType.STOCKOUT_RISK, alert_types(alerts))

    def test_safety_stock_and_reorder_point(self):
        moc_data, _ = self.monitor.evaluate(snapshot(current_stock=100, monthly_rate=30))

        self.assertEqual(moc_data.safety_stock, 14.0)
        self.assertEqual(moc_data.reorder_point, 44.0)

    def test_zero_rate_with_stock_is_overstock(self):
        moc_data, alerts = self.monitor.evaluate(snapshot(current_stock=10, monthly_rate=0))

        self.assertEqual(moc_data.status, MOCStatus.OVERSTOCK)
        self.assertEqual(moc_data.current_moc, math.inf)
        self.assertEqual(alert_types(alerts), [AlertType.ABOVE_MAX_MOC])

    def test_unknown_rate(self):
        moc_data, alerts = self.monitor.evaluate(snapshot(monthly_rate=None))

        self.assertEqual(moc_data.status, MOCStatus.UNKNOWN)
        self.assertIsNone(moc_data.current_moc)
        self.assertEqual(alerts, [])

    def test_build_snapshot_from_observations(self):
        start = date(2024, 1, 1)
        observations = [
            Observation('CAT1', start + timedelta(weeks=i), units, 200 - 10 * i)
            for i, units in enumerate([10, 10, 10, 10, 20, 20])
        ]

        snap = self.monitor.build_snapshot('CAT1', reversed(observations), unit_cost=3.0)

        self.assertEqual(snap.current_stock, 150.0)
        self.assertAlmostEqual(snap.monthly_rate, 15 * 52 / 12)
        self.assertEqual(len(snap.rate_history), 6)
        self.assertEqual(snap.target_moc, 2.5)
        self.assertEqual(snap.unit_cost, 3.0)

    def test_build_snapshot_without_observations(self):
        snap = self.monitor.build_snapshot('CAT1', [])

        self.assertIsNone(snap.monthly_rate)
        self.assertEqual(snap.current_stock, 0.0)

    def test_evaluate_all_and_dashboard(self):
        snapshots = [
            snapshot('CAT-A'),
            snapshot('CAT-B', current_stock=10),
            snapshot('CAT-C', current_stock=100),
            snapshot('CAT-D', monthly_rate=None),
        ]

        result = self.monitor.evaluate_all(snapshots)
        summary = self.monitor.dashboard_summary(result)

        self.assertEqual([d.category_id for d in result.moc_data], ['CAT-A', 'CAT-B', 'CAT-C', 'CAT-D'])
        self.assertEqual(result.alerts[0].severity, AlertSeverity.CRITICAL)
        self.assertEqual(summary['total_categories'], 4)
        self.assertEqual(summary['by_status'], {
            'HEALTHY': 1, 'WARNING': 1, 'CRITICAL': 1, 'OVERSTOCK': 0, 'UNKNOWN': 1
        })
        self.assertEqual(summary['alerts_by_severity'], {'CRITICAL': 2, 'WARNING': 1, 'INFO': 0})
        self.assertEqual(summary['alerts_by_type']['STOCKOUT_RISK'], 1)
        self.assertEqual(summary['urgent_categories'], ['CAT-B'])

if __name__ == '__main__':
    unittest.main()
