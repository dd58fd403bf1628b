# otb_engine/utils/loaders.py
import json
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from otb_engine.exceptions import ValidationError
from otb_engine.logging_setup import get_logger
from otb_engine.models import (
    CategoryStockSnapshot, MarkdownPlan, MarkdownSKUInput, MarkdownSKUPlan,
    Observation, SimulationScenario
)
from otb_engine.utils.validation import number_field, require_record, required_field

logger = get_logger(__name__)

OBSERVATION_COLUMNS = ['entity_id', 'week', 'units_sold', 'stock_on_hand']

PathLike = Union[str, Path]

def _read_json(path: PathLike) -> Any:
    try:
        with open(path, 'r') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Malformed JSON in {path}: {e}")

def _optional(value):
    if value is None:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    return value

def load_observations_csv(path: PathLike) -> List[Observation]:
    """Load weekly observations from a CSV file.

    The file needs the columns entity_id, week, units_sold and stock_on_hand.
    Missing unit or stock values are read as zero.

    Args:
        path: CSV file path

    Returns:
        Observations sorted by entity and week

    Raises:
        ValidationError if a column is missing or a week is not a date
    """
    df = pd.read_csv(path, dtype={'entity_id': str})

    missing = [column for column in OBSERVATION_COLUMNS if column not in df.columns]
    if missing:
        raise ValidationError(
            f"Observation file {path} is missing columns: {', '.join(missing)}",
            details={column: 'Column is required' for column in missing}
        )

    try:
        df['week'] = pd.to_datetime(df['week'], format='%Y-%m-%d').dt.date
    except (ValueError, TypeError) as e:
        raise ValidationError(f"Malformed week in {path}: {e}", details={'week': 'Expected YYYY-MM-DD'})

    df['units_sold'] = pd.to_numeric(df['units_sold'], errors='coerce').fillna(0.0)
    df['stock_on_hand'] = pd.to_numeric(df['stock_on_hand'], errors='coerce').fillna(0.0)
    df = df.sort_values(['entity_id', 'week'])

    observations = [
        Observation(
            entity_id=row.entity_id,
            week=row.week,
            units_sold=float(row.units_sold),
            stock_on_hand=float(row.stock_on_hand)
        )
        for row in df.itertuples(index=False)
    ]

    logger.info(f"Loaded {len(observations)} observations for {df['entity_id'].nunique()} entities from {path}")
    return observations

def group_observations(observations: List[Observation]) -> Dict[str, List[Observation]]:
    """Group observations by entity, preserving order."""
    grouped = defaultdict(list)
    for observation in observations:
        grouped[observation.entity_id].append(observation)
    return dict(grouped)

def load_plan_json(path: PathLike) -> MarkdownPlan:
    """Load a markdown plan (with phases and any SKU plans) from JSON."""
    data = _read_json(path)
    if not isinstance(data, dict):
        raise ValidationError(f"Plan file {path} must contain a JSON object")
    return MarkdownPlan.from_dict(data)

def load_sku_inputs_json(
    path: PathLike,
    observations: Optional[List[Observation]] = None
) -> List[MarkdownSKUInput]:
    """Load SKU snapshots from a JSON list, attaching each SKU's history.

    History is matched by sku_id against the observation entity_id.

    Args:
        path: JSON file path
        observations: Observations to attach as SKU history

    Returns:
        SKU inputs in file order
    """
    records = _read_json(path)
    if not isinstance(records, list):
        raise ValidationError(f"SKU file {path} must contain a JSON list")

    history = group_observations(observations or [])

    skus = []
    for index, record in enumerate(records):
        record = require_record(record, f'skus[{index}]')
        sku_id = str(required_field(record, 'sku_id'))
        existing = record.get('existing_plan')
        skus.append(MarkdownSKUInput(
            sku_id=sku_id,
            current_stock=number_field(record, 'current_stock'),
            current_woc=number_field(record, 'current_woc', default=0.0),
            current_sell_through=number_field(record, 'current_sell_through', default=0.0),
            unit_price=number_field(record, 'unit_price'),
            history=tuple(history.get(sku_id, [])),
            existing_plan=MarkdownSKUPlan.from_dict(existing) if existing is not None else None
        ))

    without_history = [sku.sku_id for sku in skus if not sku.history]
    if without_history:
        logger.warning(f"{len(without_history)} SKUs have no observations: {', '.join(without_history[:10])}")

    return skus

def load_snapshots_json(path: PathLike) -> List[Dict[str, Any]]:
    """Load category snapshot records from a JSON list.

    Records carrying a monthly_rate are complete snapshots; records without
    one are completed from observations by the caller.

    Returns:
        List of dictionaries with missing values normalized to None
    """
    df = pd.read_json(path, orient='records', dtype=False)
    if 'category_id' not in df.columns:
        raise ValidationError(f"Snapshot file {path} needs a category_id column",
                              details={'category_id': 'Column is required'})

    df['category_id'] = df['category_id'].astype(str)
    records = []
    for record in df.to_dict(orient='records'):
        records.append({key: _optional(value) for key, value in record.items()})
    return records

def snapshot_from_record(
    record: Dict[str, Any],
    defaults: Optional[Dict[str, Any]] = None
) -> CategoryStockSnapshot:
    """Build a snapshot from a complete record.

    Missing MOC thresholds come from defaults (the replenishment config keys
    default_min_moc, default_target_moc and default_max_moc).
    """
    defaults = defaults or {}
    record = require_record(record, 'snapshot')
    category_id = str(required_field(record, 'category_id'))

    def threshold(name):
        value = number_field(record, name, default=None)
        if value is None:
            value = defaults.get(f"default_{name}")
        if value is None:
            raise ValidationError(f"Snapshot {category_id} has no {name}",
                                  details={name: 'Threshold is required'})
        return float(value)

    rate_history = record.get('rate_history') or ()
    if not isinstance(rate_history, (list, tuple)):
        raise ValidationError(f"Snapshot {category_id} has a malformed rate_history",
                              details={'rate_history': 'Expected a list of numbers'})

    return CategoryStockSnapshot(
        category_id=category_id,
        current_stock=number_field(record, 'current_stock', default=0.0),
        monthly_rate=number_field(record, 'monthly_rate', default=None),
        target_moc=threshold('target_moc'),
        min_moc=threshold('min_moc'),
        max_moc=threshold('max_moc'),
        unit_cost=number_field(record, 'unit_cost', default=0.0),
        lead_time_days=number_field(record, 'lead_time_days', default=None),
        next_reorder_in_days=number_field(record, 'next_reorder_in_days', default=0.0),
        rate_history=tuple(
            number_field({'rate_history': rate}, 'rate_history') for rate in rate_history
        )
    )

def load_scenario_json(path: PathLike) -> SimulationScenario:
    """Load a simulation scenario; markdown values must be numbers."""
    data = require_record(_read_json(path), 'scenario')

    sku_ids = data.get('sku_ids') or []
    if not isinstance(sku_ids, list):
        raise ValidationError("Scenario sku_ids must be a list", details={'sku_ids': 'Expected a list'})

    overrides = require_record(data.get('sku_overrides') or {}, 'sku_overrides')

    return SimulationScenario(
        scenario_name=str(data.get('scenario_name') or 'Default Scenario'),
        markdown_pct=number_field(data, 'markdown_pct', default=None),
        sku_ids=tuple(str(sku_id) for sku_id in sku_ids),
        sku_overrides={str(sku_id): number_field(overrides, sku_id) for sku_id in overrides}
    )
