# otb_engine/core/ensemble.py
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from scipy import stats

from otb_engine.core.forecast_methods import MethodForecast, forecast_with_method, trend_adjusted
from otb_engine.exceptions import InsufficientHistoryError
from otb_engine.models import ForecastConfig, ForecastMethod
from otb_engine.utils.math_utils import calculate_mape, calculate_rmse, clamp, coefficient_of_variation

@dataclass(frozen=True)
class CombinedForecast:
    weekly_forecast: Tuple[float, ...]
    confidence_bands: Tuple[Tuple[float, float], ...]
    components: Dict[ForecastMethod, MethodForecast]
    variance: float

@dataclass(frozen=True)
class AccuracyMetrics:
    """Held-out accuracy. All values are None when no held-out data exists."""
    accuracy: Optional[float] = None
    mape: Optional[float] = None
    rmse: Optional[float] = None
    actuals: Tuple[float, ...] = field(default_factory=tuple)
    predicted: Tuple[float, ...] = field(default_factory=tuple)

    @property
    def available(self) -> bool:
        return self.rmse is not None

def z_score(confidence_level: float) -> float:
    """Two-sided z-score for a confidence level (0.90 -> ~1.645)."""
    return float(stats.norm.ppf(0.5 + confidence_level / 2.0))

def combine_forecasts(history: Sequence[float], forecast_config: ForecastConfig) -> CombinedForecast:
    """Blend the configured estimators into one forecast with a confidence band.

    forecast[i] = sum(weight_m * method_m[i]); a single selected method passes
    through with weight 1. The band is forecast[i] +/- z * sqrt(sum(weight_m * var_m)).

    Args:
        history: Weekly units sold, most recent last
        forecast_config: Validated forecast config

    Returns:
        CombinedForecast with forecasts and lower bounds floored at 0
    """
    weights = forecast_config.weights

    components = {
        method: forecast_with_method(
            method, history,
            forecast_config.lookback_weeks,
            forecast_config.forecast_weeks,
            forecast_config.exp_smooth_alpha
        )
        for method in weights
    }

    variance = sum(weights[method] * components[method].variance for method in weights)
    spread = z_score(forecast_config.confidence_level) * math.sqrt(max(0.0, variance))

    weekly_forecast = []
    confidence_bands = []
    for week in range(forecast_config.forecast_weeks):
        value = sum(weights[method] * components[method].values[week] for method in weights)
        value = max(0.0, value)
        weekly_forecast.append(value)
        confidence_bands.append((max(0.0, value - spread), value + spread))

    return CombinedForecast(
        weekly_forecast=tuple(weekly_forecast),
        confidence_bands=tuple(confidence_bands),
        components=components,
        variance=variance
    )

def evaluate_holdout(history: Sequence[float], forecast_config: ForecastConfig) -> AccuracyMetrics:
    """Score the configured method(s) against the last `forecast_weeks` observed weeks.

    The same config is fit on everything before the held-out suffix. When that
    prefix is shorter than the lookback window, metrics are absent.

    Args:
        history: Weekly units sold, most recent last
        forecast_config: Validated forecast config

    Returns:
        AccuracyMetrics (accuracy = 1 - mape clamped to [0, 1])
    """
    horizon = forecast_config.forecast_weeks
    if len(history) - horizon < forecast_config.lookback_weeks:
        return AccuracyMetrics()

    training = list(history[:-horizon])
    actuals = [float(v) for v in history[-horizon:]]

    try:
        predicted = list(combine_forecasts(training, forecast_config).weekly_forecast)
    except InsufficientHistoryError:
        return AccuracyMetrics()

    mape = calculate_mape(actuals, predicted)
    rmse = calculate_rmse(actuals, predicted)
    accuracy = clamp(1.0 - mape) if mape is not None else None

    return AccuracyMetrics(
        accuracy=accuracy,
        mape=mape,
        rmse=rmse,
        actuals=tuple(actuals),
        predicted=tuple(predicted)
    )

def rate_accuracy(mape: Optional[float]) -> Optional[str]:
    """Human-readable rating of a MAPE fraction."""
    if mape is None:
        return None
    if mape < 0.10:
        return 'Excellent'
    if mape < 0.20:
        return 'Good'
    if mape < 0.30:
        return 'Reasonable'
    return 'Poor'

def generate_insights(
    history: Sequence[float],
    forecast_config: ForecastConfig,
    metrics: AccuracyMetrics,
    trend_threshold: float = 0.05,
    volatility_threshold: float = 0.5
) -> List[str]:
    """Describe notable properties of the lookback window and the fit.

    Args:
        history: Weekly units sold, most recent last
        forecast_config: Validated forecast config
        metrics: Held-out accuracy metrics
        trend_threshold: |slope| / mean at which a trend is called strong
        volatility_threshold: Coefficient of variation flagged as volatile

    Returns:
        List of insight strings
    """
    insights = []
    window = list(history[-forecast_config.lookback_weeks:])
    mean = sum(window) / len(window) if window else 0.0

    if mean == 0:
        insights.append("No demand recorded in the lookback window")
    else:
        slope = trend_adjusted(window, len(window), 1).slope or 0.0
        relative_slope = slope / mean
        if relative_slope >= trend_threshold:
            insights.append(
                f"Strong upward trend: demand rising {slope:.1f} units/week "
                f"({relative_slope:.0%} of average weekly demand)"
            )
        elif relative_slope <= -trend_threshold:
            insights.append(
                f"Strong downward trend: demand falling {abs(slope):.1f} units/week "
                f"({abs(relative_slope):.0%} of average weekly demand)"
            )

        cv = coefficient_of_variation(window)
        if cv is not None and cv >= volatility_threshold:
            insights.append(
                f"High demand volatility: variation is {cv:.0%} of mean weekly demand"
            )

    if not metrics.available:
        insights.append(
            "Not enough history beyond the lookback window to measure accuracy; "
            "accuracy metrics are absent"
        )
    elif metrics.mape is not None:
        insights.append(f"Held-out accuracy is {rate_accuracy(metrics.mape)} (MAPE {metrics.mape:.1%})")

    return insights
