# otb_engine/core/forecast_methods.py
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy import stats

from otb_engine.exceptions import ForecastError, InsufficientHistoryError, InvalidConfigError
from otb_engine.models import ForecastMethod

DEFAULT_ALPHA = 0.3

@dataclass(frozen=True)
class MethodForecast:
    """Output of a single estimator.

    Attributes:
        method: Estimator that produced the values
        values: Forecast per future week (length forecast_weeks)
        variance: Variance implied by the estimator's fit over the window
        slope: Fitted weekly slope (trend-adjusted only)
    """
    method: ForecastMethod
    values: Tuple[float, ...]
    variance: float
    slope: Optional[float] = None

def history_from_observations(observations) -> Tuple[List[float], Optional[object]]:
    """Order observations by week and extract units sold.

    Args:
        observations: Iterable of Observation records for one entity

    Returns:
        Tuple of units sold (most recent last) and the latest week
    """
    ordered = sorted(observations, key=lambda o: o.week)
    history = [float(o.units_sold) for o in ordered]
    latest_week = ordered[-1].week if ordered else None
    return history, latest_week

def _window(history: Sequence[float], lookback_weeks: int, forecast_weeks: int) -> np.ndarray:
    if lookback_weeks is None or lookback_weeks <= 0:
        raise InvalidConfigError(f"lookback_weeks must be positive, got {lookback_weeks}")

    if forecast_weeks is None or forecast_weeks <= 0:
        raise InvalidConfigError(f"forecast_weeks must be positive, got {forecast_weeks}")

    if len(history) < lookback_weeks:
        raise InsufficientHistoryError(
            f"Need {lookback_weeks} weeks of history, got {len(history)}",
            details={'required': lookback_weeks, 'available': len(history)}
        )

    return np.asarray(history[len(history) - lookback_weeks:], dtype=float)

def moving_average(
    history: Sequence[float],
    lookback_weeks: int,
    forecast_weeks: int
) -> MethodForecast:
    """Flat projection of the mean of the last `lookback_weeks` observations.

    Args:
        history: Weekly units sold, most recent last
        lookback_weeks: Window size
        forecast_weeks: Number of future weeks

    Returns:
        MethodForecast with the sample variance of the window
    """
    window = _window(history, lookback_weeks, forecast_weeks)
    level = float(np.mean(window))
    variance = float(np.var(window, ddof=1)) if len(window) > 1 else 0.0

    return MethodForecast(
        method=ForecastMethod.MOVING_AVERAGE,
        values=tuple([level] * forecast_weeks),
        variance=variance
    )

def exponential_smoothing(
    history: Sequence[float],
    lookback_weeks: int,
    forecast_weeks: int,
    alpha: float = DEFAULT_ALPHA
) -> MethodForecast:
    """Simple exponential smoothing folded over the lookback window.

    level_t = alpha * obs_t + (1 - alpha) * level_{t-1}, seeded with the first
    observation of the window. The final level is repeated across future weeks.

    Args:
        history: Weekly units sold, most recent last
        lookback_weeks: Window size
        forecast_weeks: Number of future weeks
        alpha: Smoothing factor in (0, 1]

    Returns:
        MethodForecast with the mean squared one-step-ahead residual as variance
    """
    if not 0.0 < alpha <= 1.0:
        raise InvalidConfigError(f"Smoothing factor must be within (0, 1], got {alpha}")

    window = _window(history, lookback_weeks, forecast_weeks)

    level = float(window[0])
    residuals = []
    for observation in window[1:]:
        residuals.append(float(observation) - level)
        level = alpha * float(observation) + (1.0 - alpha) * level

    variance = float(np.mean(np.square(residuals))) if residuals else 0.0

    return MethodForecast(
        method=ForecastMethod.EXPONENTIAL_SMOOTHING,
        values=tuple([level] * forecast_weeks),
        variance=variance
    )

def trend_adjusted(
    history: Sequence[float],
    lookback_weeks: int,
    forecast_weeks: int
) -> MethodForecast:
    """Linear trend fitted by ordinary least squares over the lookback window.

    Weeks in the window are indexed 0..n-1, so forecast[i] = intercept + slope * (n + i).

    Args:
        history: Weekly units sold, most recent last
        lookback_weeks: Window size
        forecast_weeks: Number of future weeks

    Returns:
        MethodForecast with residual variance SSE / (n - 2)
    """
    window = _window(history, lookback_weeks, forecast_weeks)
    n = len(window)

    if n == 1:
        return MethodForecast(
            method=ForecastMethod.TREND_ADJUSTED,
            values=tuple([float(window[0])] * forecast_weeks),
            variance=0.0,
            slope=0.0
        )

    x = np.arange(n, dtype=float)
    fit = stats.linregress(x, window)
    slope = float(fit.slope)
    intercept = float(fit.intercept)

    residuals = window - (intercept + slope * x)
    variance = float(np.sum(residuals ** 2) / (n - 2)) if n > 2 else 0.0

    return MethodForecast(
        method=ForecastMethod.TREND_ADJUSTED,
        values=tuple(intercept + slope * (n + i) for i in range(forecast_weeks)),
        variance=variance,
        slope=slope
    )

def forecast_with_method(
    method: ForecastMethod,
    history: Sequence[float],
    lookback_weeks: int,
    forecast_weeks: int,
    alpha: float = DEFAULT_ALPHA
) -> MethodForecast:
    """Dispatch to a single estimator.

    Raises:
        ForecastError for ENSEMBLE or an unknown method
    """
    if method is ForecastMethod.MOVING_AVERAGE:
        return moving_average(history, lookback_weeks, forecast_weeks)
    elif method is ForecastMethod.EXPONENTIAL_SMOOTHING:
        return exponential_smoothing(history, lookback_weeks, forecast_weeks, alpha)
    elif method is ForecastMethod.TREND_ADJUSTED:
        return trend_adjusted(history, lookback_weeks, forecast_weeks)
    elif method is ForecastMethod.ENSEMBLE:
        raise ForecastError("ENSEMBLE is a combination, not a single estimator")
    raise ForecastError(f"Unhandled forecast method: {method}")
