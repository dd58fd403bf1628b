"""
Unit tests for the single-method forecast estimators.
"""
import unittest
from datetime import date, timedelta

import pytest

from otb_engine.core.forecast_methods import (
    exponential_smoothing,
    forecast_with_method,
    history_from_observations,
    moving_average,
    trend_adjusted
)
from otb_engine.exceptions import ForecastError, InsufficientHistoryError, InvalidConfigError
from otb_engine.models import ForecastMethod, Observation

class TestMovingAverage(unittest.TestCase):
    """Test cases for the moving average estimator."""

    def test_flat_projection_of_window_mean(self):
        """Only the last lookback weeks contribute to the mean."""
        result = moving_average([10, 20, 30, 40], lookback_weeks=2, forecast_weeks=3)

        self.assertEqual(result.method, ForecastMethod.MOVING_AVERAGE)
        self.assertEqual(result.values, (35.0, 35.0, 35.0))
        self.assertAlmostEqual(result.variance, 50.0)

    def test_single_point_window_has_zero_variance(self):
        result = moving_average([7], lookback_weeks=1, forecast_weeks=2)

        self.assertEqual(result.values, (7.0, 7.0))
        self.assertEqual(result.variance, 0.0)

    def test_insufficient_history(self):
        with self.assertRaises(InsufficientHistoryError) as ctx:
            moving_average([1, 2, 3], lookback_weeks=4, forecast_weeks=2)

        self.assertEqual(ctx.exception.details, {'required': 4, 'available': 3})
        self.assertEqual(ctx.exception.code, 'INSUFFICIENT_HISTORY')

    def test_non_positive_windows_rejected(self):
        with self.assertRaises(InvalidConfigError):
            moving_average([1, 2, 3], lookback_weeks=0, forecast_weeks=2)

        with self.assertRaises(InvalidConfigError):
            moving_average([1, 2, 3], lookback_weeks=2, forecast_weeks=0)

class TestExponentialSmoothing(unittest.TestCase):
    """Test cases for simple exponential smoothing."""

    def test_level_folds_from_first_window_value(self):
        result = exponential_smoothing([99, 10, 20], lookback_weeks=2, forecast_weeks=2, alpha=0.5)

        # level 10 -> 0.5 * 20 + 0.5 * 10
        self.assertEqual(result.values, (15.0, 15.0))
        self.assertAlmostEqual(result.variance, 100.0)

    def test_alpha_one_follows_last_observation(self):
        result = exponential_smoothing([4, 8, 12], lookback_weeks=3, forecast_weeks=1, alpha=1.0)

        self.assertEqual(result.values, (12.0,))

    def test_alpha_out_of_range(self):
        with self.assertRaises(InvalidConfigError):
            exponential_smoothing([1, 2, 3], lookback_weeks=3, forecast_weeks=1, alpha=0.0)

class TestTrendAdjusted(unittest.TestCase):
    """Test cases for the OLS trend estimator."""

    def test_linear_extrapolation(self):
        result = trend_adjusted([100, 102, 104, 106, 108], lookback_weeks=5, forecast_weeks=2)

        self.assertAlmostEqual(result.slope, 2.0)
        self.assertAlmostEqual(result.values[0], 110.0)
        self.assertAlmostEqual(result.values[1], 112.0)
        self.assertAlmostEqual(result.variance, 0.0)

    def test_ten_weeks_of_linear_growth(self):
        history = [10 * week for week in range(1, 11)]

        result = trend_adjusted(history, lookback_weeks=10, forecast_weeks=1)

        self.assertAlmostEqual(result.values[0], 110.0)

    def test_declining_trend_can_go_negative(self):
        """Flooring happens in the combiner, not in the estimator."""
        result = trend_adjusted([50, 40, 30, 20, 10], lookback_weeks=5, forecast_weeks=3)

        self.assertAlmostEqual(result.values[2], -20.0)

    def test_single_point_window_is_flat(self):
        result = trend_adjusted([5, 9], lookback_weeks=1, forecast_weeks=2)

        self.assertEqual(result.values, (9.0, 9.0))
        self.assertEqual(result.slope, 0.0)

class TestDispatch(unittest.TestCase):

    def test_dispatch_matches_direct_call(self):
        history = [3, 5, 8, 13, 21]
        self.assertEqual(
            forecast_with_method(ForecastMethod.TREND_ADJUSTED, history, 4, 2),
            trend_adjusted(history, 4, 2)
        )

    def test_ensemble_is_not_a_single_estimator(self):
        with pytest.raises(ForecastError):
            forecast_with_method(ForecastMethod.ENSEMBLE, [1, 2, 3], 2, 1)

    def test_history_sorted_by_week(self):
        start = date(2024, 1, 1)
        observations = [
            Observation('SKU1', start + timedelta(weeks=2), 30, 0),
            Observation('SKU1', start, 10, 0),
            Observation('SKU1', start + timedelta(weeks=1), 20, 0),
        ]

        history, latest_week = history_from_observations(observations)

        self.assertEqual(history, [10.0, 20.0, 30.0])
        self.assertEqual(latest_week, start + timedelta(weeks=2))

    def test_empty_history(self):
        self.assertEqual(history_from_observations([]), ([], None))

if __name__ == '__main__':
    unittest.main()
