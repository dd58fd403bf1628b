# otb_engine/services/replenishment_service.py
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from otb_engine.config import config
from otb_engine.core.forecast_methods import history_from_observations
from otb_engine.core.moc import (
    calculate_moc, classify_moc, days_until_stockout, generate_alerts,
    rank_alerts, reorder_point, safety_stock
)
from otb_engine.logging_setup import get_logger, logger as log_manager
from otb_engine.models import (
    AlertSeverity, AlertType, CategoryStockSnapshot, MOCData, MOCStatus,
    Observation, ReplenishmentAlert
)

# Set up logging
logger = get_logger(__name__)

WEEKS_PER_MONTH = 52.0 / 12.0

@dataclass(frozen=True)
class MonitorResult:
    moc_data: List[MOCData]
    alerts: List[ReplenishmentAlert]

class ReplenishmentMonitor:
    """Classifies months of cover per category and raises replenishment alerts.

    Evaluation is on demand and keeps nothing between calls; storing the
    MOCData and alerts is up to the caller.
    """

    def __init__(self, settings: Optional[Dict[str, Any]] = None):
        """Initialize the monitor.

        Args:
            settings: Optional overrides for Config.replenishment_config
        """
        self.settings = dict(config.replenishment_config)
        if settings:
            self.settings.update(settings)

    def build_snapshot(
        self,
        category_id: str,
        observations: Iterable[Observation],
        unit_cost: float = 0.0,
        min_moc: Optional[float] = None,
        target_moc: Optional[float] = None,
        max_moc: Optional[float] = None,
        lead_time_days: Optional[float] = None,
        next_reorder_in_days: float = 0.0
    ) -> CategoryStockSnapshot:
        """Derive a stock snapshot from weekly observations.

        Current stock is the latest stock on hand. The monthly rate is the mean
        weekly units over the last `rate_window_weeks` weeks scaled to a month,
        and every observed week is kept as a monthly-equivalent rate for trend
        detection. No observations means the rate is unknown.

        Args:
            category_id: Category key
            observations: Observations for the category
            unit_cost: Cost per unit used to value suggested orders
            min_moc: Minimum MOC (defaults from config)
            target_moc: Target MOC (defaults from config)
            max_moc: Maximum MOC (defaults from config)
            lead_time_days: Replenishment lead time in days
            next_reorder_in_days: Days until the next scheduled reorder

        Returns:
            CategoryStockSnapshot
        """
        ordered = sorted(observations, key=lambda o: o.week)
        history, _ = history_from_observations(ordered)

        if ordered:
            current_stock = float(ordered[-1].stock_on_hand)
            window = history[-self.settings['rate_window_weeks']:]
            monthly_rate = sum(window) / len(window) * WEEKS_PER_MONTH
        else:
            current_stock = 0.0
            monthly_rate = None

        return CategoryStockSnapshot(
            category_id=category_id,
            current_stock=current_stock,
            monthly_rate=monthly_rate,
            target_moc=target_moc if target_moc is not None else self.settings['default_target_moc'],
            min_moc=min_moc if min_moc is not None else self.settings['default_min_moc'],
            max_moc=max_moc if max_moc is not None else self.settings['default_max_moc'],
            unit_cost=unit_cost,
            lead_time_days=lead_time_days,
            next_reorder_in_days=next_reorder_in_days,
            rate_history=tuple(units * WEEKS_PER_MONTH for units in history)
        )

    def evaluate(self, snapshot: CategoryStockSnapshot) -> Tuple[MOCData, List[ReplenishmentAlert]]:
        """Evaluate one category.

        Args:
            snapshot: Category stock snapshot

        Returns:
            Tuple of MOCData and the alerts raised for it
        """
        days_per_month = self.settings['days_per_month']
        lead_time_days = (
            snapshot.lead_time_days
            if snapshot.lead_time_days is not None
            else self.settings['default_lead_time_days']
        )

        current_moc = calculate_moc(snapshot.current_stock, snapshot.monthly_rate)
        status = classify_moc(
            current_moc,
            snapshot.current_stock,
            snapshot.monthly_rate,
            snapshot.min_moc,
            snapshot.target_moc,
            snapshot.max_moc,
            warning_ratio=self.settings['warning_ratio']
        )

        safety_stock_units = safety_stock(
            snapshot.monthly_rate, self.settings['safety_stock_days'], days_per_month
        )

        moc_data = MOCData(
            category_id=snapshot.category_id,
            current_stock=snapshot.current_stock,
            monthly_rate=snapshot.monthly_rate,
            current_moc=current_moc,
            target_moc=snapshot.target_moc,
            min_moc=snapshot.min_moc,
            max_moc=snapshot.max_moc,
            status=status,
            days_until_stockout=days_until_stockout(
                snapshot.current_stock, snapshot.monthly_rate, days_per_month
            ),
            safety_stock=safety_stock_units,
            reorder_point=reorder_point(
                snapshot.monthly_rate, lead_time_days, safety_stock_units, days_per_month
            )
        )

        alerts = generate_alerts(
            snapshot,
            current_moc,
            lead_time_days,
            days_per_month=days_per_month,
            acceleration_threshold=self.settings['acceleration_threshold']
        )

        if status is MOCStatus.UNKNOWN:
            logger.warning(f"Category {snapshot.category_id}: MOC status unknown (rate={snapshot.monthly_rate})")
        else:
            logger.debug(f"Category {snapshot.category_id}: MOC={current_moc} status={status}")

        return moc_data, alerts

    def evaluate_all(self, snapshots: Sequence[CategoryStockSnapshot]) -> MonitorResult:
        """Evaluate every category and rank the combined alerts by severity.

        Args:
            snapshots: One snapshot per category

        Returns:
            MonitorResult with MOCData in input order and ranked alerts
        """
        log_info = log_manager.batch_start_log('moc_evaluation', {'categories': len(snapshots)})

        moc_data = []
        alerts = []
        for snapshot in snapshots:
            data, category_alerts = self.evaluate(snapshot)
            moc_data.append(data)
            alerts.extend(category_alerts)

        ranked = rank_alerts(alerts)

        log_manager.batch_end_log(
            log_info,
            success=True,
            result_info={'categories': len(moc_data), 'alerts': len(ranked)}
        )
        return MonitorResult(moc_data=moc_data, alerts=ranked)

    @staticmethod
    def dashboard_summary(result: MonitorResult, urgent_limit: int = 10) -> Dict[str, Any]:
        """Summarize a monitoring pass for display.

        Args:
            result: MonitorResult from evaluate_all
            urgent_limit: Maximum number of urgent categories listed

        Returns:
            Dictionary with counts by status, severity and alert type, plus the
            urgent (CRITICAL) categories
        """
        by_status = {status.value: 0 for status in MOCStatus}
        for data in result.moc_data:
            by_status[data.status.value] += 1

        by_severity = {severity.value: 0 for severity in AlertSeverity}
        by_type = {alert_type.value: 0 for alert_type in AlertType}
        for alert in result.alerts:
            by_severity[alert.severity.value] += 1
            by_type[alert.alert_type.value] += 1

        urgent = [
            data.category_id
            for data in result.moc_data
            if data.status is MOCStatus.CRITICAL
        ][:urgent_limit]

        return {
            'total_categories': len(result.moc_data),
            'by_status': by_status,
            'alerts_by_severity': by_severity,
            'alerts_by_type': by_type,
            'total_suggested_order_value': sum(
                alert.suggested_order_value
                for alert in result.alerts
                if alert.alert_type in (AlertType.BELOW_MIN_MOC, AlertType.APPROACHING_MIN)
            ),
            'urgent_categories': urgent
        }
