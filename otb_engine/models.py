# otb_engine/models.py
import enum
import json
import math
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Dict, List, Optional, Tuple

from otb_engine.exceptions import InvalidConfigError, PlanStateError, ValidationError
from otb_engine.utils.validation import (
    number_field, require_record, required_field, validate_forecast_config,
    validate_markdown_plan, validate_moc_thresholds, validate_scenario
)


class _CodeEnum(enum.Enum):
    """Enum base whose members are stored and exchanged as their string values."""

    def __str__(self):
        """Return the string value of the enum."""
        return self.value

    @classmethod
    def from_string(cls, value):
        """Create a member from its string value.

        Raises:
            ValueError if the string value is not valid
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            valid = ', '.join(member.value for member in cls)
            raise ValueError(f"Invalid {cls.__name__}: {value}. Valid values are: {valid}")


class ForecastMethod(_CodeEnum):
    MOVING_AVERAGE = 'MOVING_AVERAGE'
    EXPONENTIAL_SMOOTHING = 'EXPONENTIAL_SMOOTHING'
    TREND_ADJUSTED = 'TREND_ADJUSTED'
    ENSEMBLE = 'ENSEMBLE'


class ForecastStatus(_CodeEnum):
    PENDING = 'PENDING'
    RUNNING = 'RUNNING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'


class PlanType(_CodeEnum):
    SEASONAL = 'SEASONAL'
    PROMOTIONAL = 'PROMOTIONAL'
    CLEARANCE = 'CLEARANCE'
    FLASH_SALE = 'FLASH_SALE'


class PlanStatus(_CodeEnum):
    """Markdown plan lifecycle.

    Values move forward one step at a time:
        DRAFT -> PENDING_APPROVAL -> APPROVED -> ACTIVE -> COMPLETED
    CANCELLED can be reached from any non-terminal status.
    """
    DRAFT = 'DRAFT'
    PENDING_APPROVAL = 'PENDING_APPROVAL'
    APPROVED = 'APPROVED'
    ACTIVE = 'ACTIVE'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


class MarkdownAction(_CodeEnum):
    NO_ACTION = 'NO_ACTION'
    INCLUDE_PHASE_1 = 'INCLUDE_PHASE_1'
    INCLUDE_PHASE_2 = 'INCLUDE_PHASE_2'
    INCLUDE_PHASE_3 = 'INCLUDE_PHASE_3'
    IMMEDIATE_CLEAR = 'IMMEDIATE_CLEAR'
    REMOVE_FROM_FLOOR = 'REMOVE_FROM_FLOOR'

    @classmethod
    def for_phase(cls, phase_index: int) -> 'MarkdownAction':
        """Action for the phase at a zero-based position in the plan."""
        phase_actions = (cls.INCLUDE_PHASE_1, cls.INCLUDE_PHASE_2, cls.INCLUDE_PHASE_3)
        if not 0 <= phase_index < len(phase_actions):
            raise ValueError(f"No markdown action for phase index {phase_index}")
        return phase_actions[phase_index]


class UrgencyLevel(_CodeEnum):
    LOW = 'LOW'
    MEDIUM = 'MEDIUM'
    HIGH = 'HIGH'
    CRITICAL = 'CRITICAL'


class RiskLevel(_CodeEnum):
    LOW = 'LOW'
    MEDIUM = 'MEDIUM'
    HIGH = 'HIGH'

    @property
    def rank(self) -> int:
        return [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH].index(self)


class MOCStatus(_CodeEnum):
    HEALTHY = 'HEALTHY'
    WARNING = 'WARNING'
    CRITICAL = 'CRITICAL'
    OVERSTOCK = 'OVERSTOCK'
    UNKNOWN = 'UNKNOWN'


class AlertType(_CodeEnum):
    BELOW_MIN_MOC = 'BELOW_MIN_MOC'
    APPROACHING_MIN = 'APPROACHING_MIN'
    ABOVE_MAX_MOC = 'ABOVE_MAX_MOC'
    STOCKOUT_RISK = 'STOCKOUT_RISK'
    LEAD_TIME_RISK = 'LEAD_TIME_RISK'


class AlertSeverity(_CodeEnum):
    CRITICAL = 'CRITICAL'
    WARNING = 'WARNING'
    INFO = 'INFO'

    @property
    def rank(self) -> int:
        """Sort rank, most severe first."""
        if self is AlertSeverity.CRITICAL:
            return 0
        elif self is AlertSeverity.WARNING:
            return 1
        elif self is AlertSeverity.INFO:
            return 2
        raise ValueError(f"Unhandled alert severity: {self}")


def to_primitive(value: Any) -> Any:
    """Convert records, enums and dates into JSON-friendly structures."""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, '__dataclass_fields__'):
        return {
            f.name: to_primitive(getattr(value, f.name))
            for f in fields(value)
            if not f.name.startswith('_')
        }
    if isinstance(value, float) and math.isinf(value):
        return 'inf' if value > 0 else '-inf'
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, Mapping):
        return {str(to_primitive(k)): to_primitive(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_primitive(v) for v in value]
    return value


class _Record:
    def to_dict(self) -> Dict[str, Any]:
        """Convert the record to a dictionary of primitives."""
        return to_primitive(self)


def _record_list(data, name: str) -> list:
    records = data.get(name) or []
    if not isinstance(records, list):
        raise ValidationError(f"{name} must be a list", details={name: 'Expected a list'})
    return records


def _parse_date(value, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (TypeError, ValueError):
        raise ValidationError(
            f"Malformed date for {field_name}: {value!r}",
            details={field_name: 'Expected an ISO date (YYYY-MM-DD)'}
        )


# ==================== Observations ====================

@dataclass(frozen=True)
class Observation(_Record):
    """One weekly observation for a SKU, category or brand key."""
    entity_id: str
    week: date
    units_sold: float
    stock_on_hand: float

    def __post_init__(self):
        if not self.entity_id:
            raise ValidationError("Observation entity_id is required",
                                  details={'entity_id': 'Entity ID is required'})
        object.__setattr__(self, 'week', _parse_date(self.week, 'week'))


# ==================== Forecasting ====================

@dataclass(frozen=True)
class ForecastScope(_Record):
    brand_id: Optional[str] = None
    category_id: Optional[str] = None
    season_id: Optional[str] = None
    entity_id: Optional[str] = None


@dataclass(frozen=True)
class ForecastConfig(_Record):
    """Validated forecast method selection and weights.

    Construction fails with InvalidConfigError when the windows are not
    positive, a weight is outside [0, 1], or the ENSEMBLE weights do not
    sum to 1.0.
    """
    primary_method: ForecastMethod = ForecastMethod.ENSEMBLE
    lookback_weeks: int = 12
    forecast_weeks: int = 8
    moving_avg_weight: float = 0.25
    exp_smooth_weight: float = 0.35
    trend_weight: float = 0.40
    exp_smooth_alpha: float = 0.3
    confidence_level: float = 0.90
    brand_id: Optional[str] = None
    category_id: Optional[str] = None
    season_id: Optional[str] = None
    is_active: bool = True

    def __post_init__(self):
        try:
            object.__setattr__(self, 'primary_method', ForecastMethod.from_string(self.primary_method))
        except ValueError as e:
            raise InvalidConfigError(str(e), details={'primary_method': str(e)})

        errors = validate_forecast_config(self)
        if errors:
            raise InvalidConfigError(
                f"Invalid forecast config: {'; '.join(errors.values())}",
                details=errors
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any], defaults: Optional[Dict[str, Any]] = None) -> 'ForecastConfig':
        """Build a config from a loose dictionary.

        Args:
            data: Dictionary with config fields (missing fields use defaults)
            defaults: Optional forecast defaults (see Config.forecast_config)

        Returns:
            Validated ForecastConfig
        """
        defaults = defaults or {}
        mapping = {
            'lookback_weeks': 'default_lookback_weeks',
            'forecast_weeks': 'default_forecast_weeks',
            'moving_avg_weight': 'default_moving_avg_weight',
            'exp_smooth_weight': 'default_exp_smooth_weight',
            'trend_weight': 'default_trend_weight',
            'exp_smooth_alpha': 'exp_smooth_alpha',
            'confidence_level': 'confidence_level',
        }
        values = {}
        for field_name, default_key in mapping.items():
            if data.get(field_name) is not None:
                values[field_name] = data[field_name]
            elif default_key in defaults:
                values[field_name] = defaults[default_key]

        for field_name in ('primary_method', 'brand_id', 'category_id', 'season_id', 'is_active'):
            if data.get(field_name) is not None:
                values[field_name] = data[field_name]

        return cls(**values)

    @property
    def weights(self) -> Dict[ForecastMethod, float]:
        """Per-method weights actually applied for this config."""
        if self.primary_method is ForecastMethod.ENSEMBLE:
            return {
                ForecastMethod.MOVING_AVERAGE: self.moving_avg_weight,
                ForecastMethod.EXPONENTIAL_SMOOTHING: self.exp_smooth_weight,
                ForecastMethod.TREND_ADJUSTED: self.trend_weight,
            }
        return {self.primary_method: 1.0}

    def with_method(self, method: ForecastMethod) -> 'ForecastConfig':
        return replace(self, primary_method=method)


_FORECAST_TRANSITIONS = {
    ForecastStatus.PENDING: {ForecastStatus.RUNNING},
    ForecastStatus.RUNNING: {ForecastStatus.COMPLETED, ForecastStatus.FAILED},
    ForecastStatus.COMPLETED: set(),
    ForecastStatus.FAILED: set(),
}


@dataclass
class ForecastRun(_Record):
    """Materialized forecast execution record.

    Moves PENDING -> RUNNING -> COMPLETED | FAILED. Once terminal, any
    attribute assignment raises PlanStateError and the result collections
    are read-only (tuples and a read-only mapping).
    """
    config: ForecastConfig
    scope: ForecastScope = field(default_factory=ForecastScope)
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: ForecastStatus = ForecastStatus.PENDING
    weekly_forecast: Tuple[float, ...] = ()
    confidence_bands: Tuple[Tuple[float, float], ...] = ()
    component_forecasts: Mapping = field(default_factory=dict)
    accuracy: Optional[float] = None
    mape: Optional[float] = None
    rmse: Optional[float] = None
    accuracy_rating: Optional[str] = None
    insights: Tuple[str, ...] = ()
    failure_reason: Optional[str] = None
    data_points: int = 0
    latest_week: Optional[date] = None
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __setattr__(self, name, value):
        if self.__dict__.get('_sealed'):
            raise PlanStateError(
                f"Forecast run {self.__dict__.get('run_id')} is {self.__dict__.get('status')} and cannot be modified"
            )
        super().__setattr__(name, value)

    @property
    def is_terminal(self) -> bool:
        return self.status in (ForecastStatus.COMPLETED, ForecastStatus.FAILED)

    def transition_to(self, status: ForecastStatus):
        """Move the run to a new status.

        Raises:
            PlanStateError if the transition is not allowed
        """
        if status not in _FORECAST_TRANSITIONS[self.status]:
            raise PlanStateError(
                f"Cannot move forecast run from {self.status} to {status}",
                details={'from': self.status.value, 'to': status.value}
            )
        self.status = status

    def start(self):
        self.transition_to(ForecastStatus.RUNNING)
        self.started_at = datetime.now()

    def complete(self, **results):
        """Record results and seal the run as COMPLETED."""
        self.transition_to(ForecastStatus.COMPLETED)
        for name, value in results.items():
            setattr(self, name, value)
        self._freeze_results()
        self.completed_at = datetime.now()
        self._sealed = True

    def _freeze_results(self):
        self.weekly_forecast = tuple(self.weekly_forecast)
        self.confidence_bands = tuple(tuple(band) for band in self.confidence_bands)
        self.component_forecasts = MappingProxyType({
            name: tuple(values) for name, values in self.component_forecasts.items()
        })
        self.insights = tuple(self.insights)

    def fail(self, reason: str):
        """Record a failure reason and seal the run as FAILED."""
        self.transition_to(ForecastStatus.FAILED)
        self.failure_reason = reason
        self.completed_at = datetime.now()
        self._freeze_results()
        self._sealed = True


# ==================== Markdown ====================

@dataclass(frozen=True)
class MarkdownPhase(_Record):
    phase_order: int
    start_date: date
    end_date: date
    markdown_pct: float
    name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'start_date', _parse_date(self.start_date, 'start_date'))
        object.__setattr__(self, 'end_date', _parse_date(self.end_date, 'end_date'))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MarkdownPhase':
        data = require_record(data, 'phase')
        return cls(
            phase_order=number_field(data, 'phase_order', cast=int),
            start_date=required_field(data, 'start_date'),
            end_date=required_field(data, 'end_date'),
            markdown_pct=number_field(data, 'markdown_pct'),
            name=data.get('name'),
        )


@dataclass(frozen=True)
class MarkdownSKUPlan(_Record):
    """Per-SKU markdown recommendation.

    projected_margin_loss is the full-price value of current stock minus the
    predicted revenue. Without a forecast it stays 0 and projected_days_to_sell
    stays None.
    """
    sku_id: str
    current_stock: float
    current_woc: float
    current_sell_through: float
    recommended_action: MarkdownAction = MarkdownAction.NO_ACTION
    recommended_markdown_pct: float = 0.0
    predicted_sell_through: float = 0.0
    predicted_revenue: float = 0.0
    confidence_score: float = 0.0
    is_overridden: bool = False
    unit_price: float = 0.0
    projected_units: float = 0.0
    urgency_score: float = 0.0
    urgency_level: UrgencyLevel = UrgencyLevel.LOW
    projected_margin_loss: float = 0.0
    projected_days_to_sell: Optional[float] = None
    reasoning: str = ''

    def override(self, action: MarkdownAction, markdown_pct: float) -> 'MarkdownSKUPlan':
        """Return a copy carrying a human decision that recompute must not touch."""
        return replace(
            self,
            recommended_action=MarkdownAction.from_string(action),
            recommended_markdown_pct=markdown_pct,
            is_overridden=True,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MarkdownSKUPlan':
        data = require_record(data, 'sku_plan')
        values = {f.name: data[f.name] for f in fields(cls) if data.get(f.name) is not None}
        values['sku_id'] = str(required_field(data, 'sku_id'))
        values['current_stock'] = number_field(data, 'current_stock')
        for name in _SKU_PLAN_NUMBERS:
            values[name] = number_field(data, name, default=0.0)
        values['projected_days_to_sell'] = number_field(data, 'projected_days_to_sell', default=None)

        for name, enum_cls in (('recommended_action', MarkdownAction), ('urgency_level', UrgencyLevel)):
            if name in values:
                try:
                    values[name] = enum_cls.from_string(values[name])
                except ValueError as e:
                    raise ValidationError(str(e), details={name: str(e)})
        return cls(**values)


_SKU_PLAN_NUMBERS = (
    'current_woc', 'current_sell_through', 'recommended_markdown_pct',
    'predicted_sell_through', 'predicted_revenue', 'confidence_score', 'unit_price',
    'projected_units', 'urgency_score', 'projected_margin_loss',
)


_PLAN_SEQUENCE = [
    PlanStatus.DRAFT,
    PlanStatus.PENDING_APPROVAL,
    PlanStatus.APPROVED,
    PlanStatus.ACTIVE,
    PlanStatus.COMPLETED,
]


@dataclass
class MarkdownPlan(_Record):
    """Phased markdown plan for a season/brand (optionally category) scope.

    Construction validates the phase schedule; a plan with overlapping,
    misordered or too-deep phases cannot exist.
    """
    plan_name: str
    plan_type: PlanType
    season_id: str
    brand_id: str
    plan_start_date: date
    plan_end_date: date
    target_sell_through_pct: float
    max_markdown_pct: float
    category_id: Optional[str] = None
    status: PlanStatus = PlanStatus.DRAFT
    phases: List[MarkdownPhase] = field(default_factory=list)
    sku_plans: List[MarkdownSKUPlan] = field(default_factory=list)

    def __post_init__(self):
        try:
            self.plan_type = PlanType.from_string(self.plan_type)
            self.status = PlanStatus.from_string(self.status)
        except ValueError as e:
            raise ValidationError(str(e))
        self.plan_start_date = _parse_date(self.plan_start_date, 'plan_start_date')
        self.plan_end_date = _parse_date(self.plan_end_date, 'plan_end_date')
        self.phases = list(self.phases)
        self.validate()

    def validate(self):
        """Validate the plan.

        Raises:
            InvalidConfigError if max_markdown_pct is outside [0, 1]
            ValidationError for any structural problem
        """
        if not 0.0 <= self.max_markdown_pct <= 1.0:
            raise InvalidConfigError(
                f"max_markdown_pct must be within [0, 1], got {self.max_markdown_pct}",
                details={'max_markdown_pct': 'Must be within [0, 1]'}
            )

        errors = validate_markdown_plan(self)
        if errors:
            raise ValidationError(
                f"Invalid markdown plan '{self.plan_name}': {'; '.join(errors.values())}",
                details=errors
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MarkdownPlan':
        """Build a plan from a loaded JSON object.

        Raises:
            ValidationError naming the field for missing, null or malformed values
        """
        data = require_record(data, 'plan')
        return cls(
            plan_name=data.get('plan_name'),
            plan_type=data.get('plan_type') or PlanType.CLEARANCE.value,
            season_id=data.get('season_id'),
            brand_id=data.get('brand_id'),
            category_id=data.get('category_id'),
            plan_start_date=required_field(data, 'plan_start_date'),
            plan_end_date=required_field(data, 'plan_end_date'),
            target_sell_through_pct=number_field(data, 'target_sell_through_pct'),
            max_markdown_pct=number_field(data, 'max_markdown_pct'),
            status=data.get('status') or PlanStatus.DRAFT.value,
            phases=[MarkdownPhase.from_dict(p) for p in _record_list(data, 'phases')],
            sku_plans=[MarkdownSKUPlan.from_dict(s) for s in _record_list(data, 'sku_plans')],
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in (PlanStatus.COMPLETED, PlanStatus.CANCELLED)

    def transition_to(self, status: PlanStatus):
        """Move the plan forward one lifecycle step, or cancel it.

        Raises:
            PlanStateError if the transition is not allowed
        """
        status = PlanStatus.from_string(status)
        if self.is_terminal:
            raise PlanStateError(
                f"Plan '{self.plan_name}' is {self.status} and cannot change status",
                details={'from': self.status.value, 'to': status.value}
            )

        if status is PlanStatus.CANCELLED:
            self.status = status
            return

        current_index = _PLAN_SEQUENCE.index(self.status)
        if _PLAN_SEQUENCE[current_index + 1] is not status:
            raise PlanStateError(
                f"Cannot move plan '{self.plan_name}' from {self.status} to {status}",
                details={'from': self.status.value, 'to': status.value}
            )
        self.status = status

    def ordered_phases(self) -> List[MarkdownPhase]:
        return sorted(self.phases, key=lambda p: p.phase_order)


@dataclass(frozen=True)
class MarkdownSKUInput(_Record):
    """Current inventory state of one SKU handed to the optimizer."""
    sku_id: str
    current_stock: float
    current_woc: float
    current_sell_through: float
    unit_price: float
    history: Tuple[Observation, ...] = ()
    existing_plan: Optional[MarkdownSKUPlan] = None

    def __post_init__(self):
        if not self.sku_id:
            raise ValidationError("SKU input requires a sku_id", details={'sku_id': 'SKU ID is required'})
        object.__setattr__(self, 'history', tuple(self.history))

    @property
    def is_overridden(self) -> bool:
        return self.existing_plan is not None and self.existing_plan.is_overridden


@dataclass(frozen=True)
class OptimizationSummary(_Record):
    counts_by_action: Dict[str, int]
    total_expected_revenue: float
    avg_confidence: float
    avg_predicted_sell_through: float
    overridden_skus: int
    total_margin_loss: float = 0.0


@dataclass(frozen=True)
class OptimizationResult(_Record):
    plan_name: str
    total_skus: int
    recommendations: List[MarkdownSKUPlan]
    summary: OptimizationSummary


# ==================== Replenishment ====================

@dataclass(frozen=True)
class CategoryStockSnapshot(_Record):
    """Current stock and consumption snapshot for one category.

    monthly_rate of None means rate data is missing.
    """
    category_id: str
    current_stock: float
    monthly_rate: Optional[float]
    target_moc: float
    min_moc: float
    max_moc: float
    unit_cost: float = 0.0
    lead_time_days: Optional[float] = None
    next_reorder_in_days: float = 0.0
    rate_history: Tuple[float, ...] = ()

    def __post_init__(self):
        if not self.category_id:
            raise ValidationError("Snapshot requires a category_id",
                                  details={'category_id': 'Category ID is required'})
        errors = validate_moc_thresholds(self.min_moc, self.target_moc, self.max_moc)
        if errors:
            raise InvalidConfigError(
                f"Invalid MOC thresholds for {self.category_id}: {'; '.join(errors.values())}",
                details=errors
            )
        object.__setattr__(self, 'rate_history', tuple(self.rate_history))


@dataclass(frozen=True)
class MOCData(_Record):
    category_id: str
    current_stock: float
    monthly_rate: Optional[float]
    current_moc: Optional[float]
    target_moc: float
    min_moc: float
    max_moc: float
    status: MOCStatus
    days_until_stockout: Optional[float] = None
    safety_stock: float = 0.0
    reorder_point: float = 0.0


@dataclass(frozen=True)
class ReplenishmentAlert(_Record):
    category_id: str
    alert_type: AlertType
    severity: AlertSeverity
    current_moc: Optional[float]
    target_moc: float
    suggested_order_qty: float
    suggested_order_value: float
    is_acknowledged: bool = False
    message: str = ''


# ==================== Simulation ====================

@dataclass(frozen=True)
class SimulationScenario(_Record):
    """Hypothetical markdown scenario.

    sku_overrides maps SKU IDs to a markdown fraction and wins over
    markdown_pct. markdown_pct applies to sku_ids, or to every
    non-overridden SKU when sku_ids is empty.
    """
    scenario_name: str = 'Default Scenario'
    markdown_pct: Optional[float] = None
    sku_ids: Tuple[str, ...] = ()
    sku_overrides: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'sku_ids', tuple(self.sku_ids))
        errors = validate_scenario(self)
        if errors:
            raise ValidationError(
                f"Invalid scenario '{self.scenario_name}': {'; '.join(errors.values())}",
                details=errors
            )


@dataclass(frozen=True)
class WeeklyProjection(_Record):
    """Aggregate stock and sales for one simulated week.

    Values are at scenario prices; cumulative_sell_through is a fraction of
    the starting stock.
    """
    week_number: int
    week_start: date
    opening_stock: float
    opening_value: float
    projected_units: float
    projected_revenue: float
    closing_stock: float
    closing_value: float
    cumulative_sell_through: float
    cumulative_revenue: float


@dataclass(frozen=True)
class RiskAssessment(_Record):
    stockout_risk: RiskLevel = RiskLevel.LOW
    margin_erosion_risk: RiskLevel = RiskLevel.LOW
    overall_risk: RiskLevel = RiskLevel.LOW


@dataclass(frozen=True)
class SimulationResult(_Record):
    """Outcome of one scenario.

    starting_inventory_value is current stock at full price; the margin loss is
    that value minus total_revenue, so unsold stock counts as lost margin.
    """
    scenario_name: str
    total_revenue: float
    total_units: float
    avg_sell_through: float
    sku_count: int
    warnings: Tuple[str, ...] = ()
    starting_inventory_value: float = 0.0
    projected_margin_loss: float = 0.0
    remaining_stock: float = 0.0
    remaining_value: float = 0.0
    weekly_projections: Tuple[WeeklyProjection, ...] = ()
    risk: RiskAssessment = field(default_factory=RiskAssessment)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)
