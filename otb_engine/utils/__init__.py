from .date_utils import convert_to_date, whole_weeks_between, weeks_between
from .math_utils import (
    clamp, sample_variance, coefficient_of_variation, calculate_mape,
    calculate_rmse, extend_flat
)
from .validation import (
    validate_forecast_config, validate_markdown_plan, validate_moc_thresholds,
    validate_scenario
)

__all__ = [
    'convert_to_date',
    'whole_weeks_between',
    'weeks_between',
    'clamp',
    'sample_variance',
    'coefficient_of_variation',
    'calculate_mape',
    'calculate_rmse',
    'extend_flat',
    'validate_forecast_config',
    'validate_markdown_plan',
    'validate_moc_thresholds',
    'validate_scenario'
]
