from collections.abc import Mapping
from typing import Any, Dict, Optional

from otb_engine.exceptions import ValidationError

WEIGHT_SUM_TOLERANCE = 1e-9
MAX_MARKDOWN_PHASES = 3

def _is_fraction(value) -> bool:
    return isinstance(value, (int, float)) and 0.0 <= value <= 1.0

_REQUIRED = object()

def require_record(data, record_name: str) -> Mapping:
    """Check that a loaded record is a JSON object."""
    if not isinstance(data, Mapping):
        raise ValidationError(
            f"{record_name} must be an object, got {type(data).__name__}",
            details={record_name: 'Expected an object'}
        )
    return data

def required_field(data: Mapping, name: str) -> Any:
    """Return a field that must be present and not null.

    Raises:
        ValidationError naming the field when it is missing or null
    """
    value = data.get(name)
    if value is None:
        raise ValidationError(f"Missing required field: {name}", details={name: 'Field is required'})
    return value

def number_field(data: Mapping, name: str, default: Any = _REQUIRED, cast=float):
    """Read a numeric field, falling back to default when it is absent or null.

    Without a default the field is required.

    Raises:
        ValidationError naming the field when it is missing or not a number
    """
    value = data.get(name)
    if value is None:
        if default is _REQUIRED:
            return required_field(data, name)
        return default

    if isinstance(value, bool):
        raise ValidationError(f"Malformed {name}: {value!r}", details={name: 'Expected a number'})
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Malformed {name}: {value!r}", details={name: 'Expected a number'})

def validate_forecast_config(forecast_config) -> Dict[str, str]:
    """Validate a forecast config.

    Args:
        forecast_config: ForecastConfig to validate

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    if not isinstance(forecast_config.lookback_weeks, int) or forecast_config.lookback_weeks < 1:
        errors['lookback_weeks'] = 'Lookback weeks must be a positive integer'

    if not isinstance(forecast_config.forecast_weeks, int) or forecast_config.forecast_weeks < 1:
        errors['forecast_weeks'] = 'Forecast weeks must be a positive integer'

    for name in ('moving_avg_weight', 'exp_smooth_weight', 'trend_weight'):
        if not _is_fraction(getattr(forecast_config, name)):
            errors[name] = f'{name} must be within [0, 1]'

    if forecast_config.primary_method.value == 'ENSEMBLE' and not errors.keys() & {
        'moving_avg_weight', 'exp_smooth_weight', 'trend_weight'
    }:
        total = (
            forecast_config.moving_avg_weight +
            forecast_config.exp_smooth_weight +
            forecast_config.trend_weight
        )
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            errors['weights'] = f'Ensemble weights must sum to 1.0 (got {total})'

    alpha = forecast_config.exp_smooth_alpha
    if not isinstance(alpha, (int, float)) or not 0.0 < alpha <= 1.0:
        errors['exp_smooth_alpha'] = 'Smoothing factor must be within (0, 1]'

    level = forecast_config.confidence_level
    if not isinstance(level, (int, float)) or not 0.0 < level < 1.0:
        errors['confidence_level'] = 'Confidence level must be within (0, 1)'

    return errors

def validate_markdown_plan(plan) -> Dict[str, str]:
    """Validate the structure of a markdown plan and its phases.

    Args:
        plan: MarkdownPlan to validate

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    if not plan.plan_name:
        errors['plan_name'] = 'Plan name is required'

    if not plan.season_id:
        errors['season_id'] = 'Season ID is required'

    if not plan.brand_id:
        errors['brand_id'] = 'Brand ID is required'

    if plan.plan_end_date <= plan.plan_start_date:
        errors['plan_end_date'] = 'Plan end date must be after start date'

    if not _is_fraction(plan.target_sell_through_pct):
        errors['target_sell_through_pct'] = 'Target sell-through must be within [0, 1]'

    phases = plan.phases
    if len(phases) > MAX_MARKDOWN_PHASES:
        errors['phases'] = f'A plan may have at most {MAX_MARKDOWN_PHASES} phases'

    previous = None
    for index, phase in enumerate(phases):
        key = f'phases[{index}]'

        if phase.end_date <= phase.start_date:
            errors[key] = f'Phase {phase.phase_order} must end after it starts'
        elif phase.start_date < plan.plan_start_date or phase.end_date > plan.plan_end_date:
            errors[key] = f'Phase {phase.phase_order} falls outside the plan window'
        elif not _is_fraction(phase.markdown_pct):
            errors[key] = f'Phase {phase.phase_order} markdown must be within [0, 1]'
        elif _is_fraction(plan.max_markdown_pct) and phase.markdown_pct > plan.max_markdown_pct:
            errors[key] = f'Phase {phase.phase_order} markdown exceeds the plan ceiling'
        elif previous is not None:
            if phase.phase_order <= previous.phase_order:
                errors[key] = 'Phase order must be strictly increasing'
            elif phase.start_date < previous.end_date:
                errors[key] = f'Phase {phase.phase_order} overlaps phase {previous.phase_order}'
            elif phase.markdown_pct < previous.markdown_pct:
                errors[key] = f'Phase {phase.phase_order} marks down less than phase {previous.phase_order}'

        previous = phase

    sku_ids = [sku_plan.sku_id for sku_plan in plan.sku_plans]
    if len(sku_ids) != len(set(sku_ids)):
        errors['sku_plans'] = 'Each SKU may appear only once in a plan'

    return errors

def validate_moc_thresholds(min_moc: float, target_moc: float, max_moc: float) -> Dict[str, str]:
    """Validate MOC thresholds (min <= target <= max, all non-negative)."""
    errors = {}

    if min_moc is None or target_moc is None or max_moc is None:
        errors['moc'] = 'Min, target and max MOC are required'
        return errors

    if min_moc < 0:
        errors['min_moc'] = 'Min MOC cannot be negative'

    if not min_moc <= target_moc <= max_moc:
        errors['moc'] = 'MOC values must be: min <= target <= max'

    return errors

def validate_scenario(scenario) -> Dict[str, str]:
    """Validate a simulation scenario."""
    errors = {}

    markdown_pct: Optional[float] = scenario.markdown_pct
    if markdown_pct is not None and not _is_fraction(markdown_pct):
        errors['markdown_pct'] = 'Scenario markdown must be within [0, 1]'

    for sku_id, pct in scenario.sku_overrides.items():
        if not _is_fraction(pct):
            errors[f'sku_overrides[{sku_id}]'] = 'Override markdown must be within [0, 1]'

    return errors
