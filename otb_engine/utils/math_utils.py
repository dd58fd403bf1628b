# otb_engine/utils/math_utils.py
import math
from typing import List, Optional, Sequence

import numpy as np

def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """Limit a value to the range [lower, upper]."""
    return max(lower, min(upper, value))

def sample_variance(values: Sequence[float]) -> float:
    """Sample variance (ddof=1), 0.0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    return float(np.var(np.asarray(values, dtype=float), ddof=1))

def coefficient_of_variation(values: Sequence[float]) -> Optional[float]:
    """Standard deviation relative to the mean, None when the mean is zero."""
    if not values:
        return None
    mean = float(np.mean(values))
    if mean == 0:
        return None
    return math.sqrt(sample_variance(values)) / mean

def calculate_mape(actuals: Sequence[float], forecasts: Sequence[float]) -> Optional[float]:
    """Mean absolute percentage error as a fraction.

    Weeks with zero actual demand are skipped.

    Args:
        actuals: Actual values
        forecasts: Forecast values (same length as actuals)

    Returns:
        MAPE as a fraction, or None when no actual value is positive
    """
    if len(actuals) != len(forecasts):
        raise ValueError("Actuals and forecasts must have the same length")

    errors = [
        abs(actual - forecast) / actual
        for actual, forecast in zip(actuals, forecasts)
        if actual > 0
    ]

    if not errors:
        return None

    return sum(errors) / len(errors)

def calculate_rmse(actuals: Sequence[float], forecasts: Sequence[float]) -> Optional[float]:
    """Root mean squared error, None for empty input."""
    if len(actuals) != len(forecasts):
        raise ValueError("Actuals and forecasts must have the same length")

    if not actuals:
        return None

    diffs = np.asarray(actuals, dtype=float) - np.asarray(forecasts, dtype=float)
    return float(math.sqrt(np.mean(diffs ** 2)))

def extend_flat(values: List[float], length: int) -> List[float]:
    """Extend a series to `length` by repeating its last value."""
    if length <= len(values):
        return list(values[:length])
    if not values:
        return [0.0] * length
    return list(values) + [values[-1]] * (length - len(values))
