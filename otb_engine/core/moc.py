# otb_engine/core/moc.py
import math
from typing import List, Optional, Sequence

from otb_engine.core.forecast_methods import trend_adjusted
from otb_engine.models import (
    AlertSeverity, AlertType, CategoryStockSnapshot, MOCStatus, ReplenishmentAlert
)

def calculate_moc(current_stock: float, monthly_rate: Optional[float]) -> Optional[float]:
    """Months of cover.

    Returns:
        None when the rate is unknown, infinity when the rate is zero
    """
    if monthly_rate is None:
        return None
    if monthly_rate == 0:
        return math.inf
    return current_stock / monthly_rate

def classify_moc(
    current_moc: Optional[float],
    current_stock: float,
    monthly_rate: Optional[float],
    min_moc: float,
    target_moc: float,
    max_moc: float,
    warning_ratio: float = 0.8
) -> MOCStatus:
    """Classify MOC against thresholds, first match wins.

    CRITICAL below min, WARNING below warning_ratio * target, OVERSTOCK above
    max, HEALTHY within [min, max], otherwise UNKNOWN. A zero rate means
    OVERSTOCK when any stock is held and UNKNOWN otherwise.
    """
    if monthly_rate is None or current_moc is None or math.isnan(current_moc):
        return MOCStatus.UNKNOWN

    if monthly_rate == 0:
        return MOCStatus.OVERSTOCK if current_stock > 0 else MOCStatus.UNKNOWN

    if current_moc < min_moc:
        return MOCStatus.CRITICAL
    if current_moc < target_moc * warning_ratio:
        return MOCStatus.WARNING
    if current_moc > max_moc:
        return MOCStatus.OVERSTOCK
    if min_moc <= current_moc <= max_moc:
        return MOCStatus.HEALTHY
    return MOCStatus.UNKNOWN

def suggested_order_qty(current_moc: Optional[float], monthly_rate: Optional[float], target_moc: float) -> float:
    """Units needed to bring cover back to target: max(0, (target - current) * rate)."""
    if monthly_rate is None or monthly_rate <= 0 or current_moc is None:
        return 0.0
    return max(0.0, (target_moc - current_moc) * monthly_rate)

def days_until_stockout(current_stock: float, monthly_rate: Optional[float], days_per_month: float = 30.0) -> Optional[float]:
    if monthly_rate is None:
        return None
    if monthly_rate <= 0:
        return math.inf
    return current_stock / (monthly_rate / days_per_month)

def safety_stock(monthly_rate: Optional[float], safety_stock_days: float, days_per_month: float = 30.0) -> float:
    if not monthly_rate or monthly_rate <= 0:
        return 0.0
    return float(math.ceil(monthly_rate / days_per_month * safety_stock_days))

def reorder_point(
    monthly_rate: Optional[float],
    lead_time_days: float,
    safety_stock_units: float,
    days_per_month: float = 30.0
) -> float:
    if not monthly_rate or monthly_rate <= 0:
        return 0.0
    return float(math.ceil(monthly_rate / days_per_month * lead_time_days + safety_stock_units))

def projected_rate(rate_history: Sequence[float], monthly_rate: float) -> float:
    """Next-period consumption rate from a linear trend over the rate history.

    Never lower than the current rate.
    """
    if len(rate_history) < 2:
        return monthly_rate
    fit = trend_adjusted(list(rate_history), len(rate_history), 1)
    return max(monthly_rate, fit.values[0])

def is_accelerating(rate_history: Sequence[float], threshold: float = 0.05) -> bool:
    """True when the fitted slope relative to the mean rate reaches the threshold."""
    if len(rate_history) < 2:
        return False
    mean = sum(rate_history) / len(rate_history)
    if mean <= 0:
        return False
    fit = trend_adjusted(list(rate_history), len(rate_history), 1)
    return (fit.slope or 0.0) / mean >= threshold

def generate_alerts(
    snapshot: CategoryStockSnapshot,
    current_moc: Optional[float],
    lead_time_days: float,
    days_per_month: float = 30.0,
    acceleration_threshold: float = 0.05
) -> List[ReplenishmentAlert]:
    """Raise every alert that applies to one category.

    MOC alerts follow the thresholds; STOCKOUT_RISK and LEAD_TIME_RISK look at
    the depletion timeline and fire independently of them.

    Args:
        snapshot: Category stock snapshot
        current_moc: Months of cover for the snapshot
        lead_time_days: Replenishment lead time in days
        days_per_month: Days used to convert monthly rates to daily
        acceleration_threshold: Relative slope at which consumption is accelerating

    Returns:
        List of alerts (possibly empty)
    """
    rate = snapshot.monthly_rate
    if rate is None or current_moc is None:
        return []

    order_qty = suggested_order_qty(current_moc, rate, snapshot.target_moc)
    order_value = order_qty * snapshot.unit_cost

    def alert(alert_type, severity, message):
        return ReplenishmentAlert(
            category_id=snapshot.category_id,
            alert_type=alert_type,
            severity=severity,
            current_moc=current_moc,
            target_moc=snapshot.target_moc,
            suggested_order_qty=order_qty,
            suggested_order_value=order_value,
            message=message
        )

    alerts = []

    if current_moc < snapshot.min_moc:
        alerts.append(alert(
            AlertType.BELOW_MIN_MOC, AlertSeverity.CRITICAL,
            f"Cover of {current_moc:.2f} months is below the minimum of {snapshot.min_moc:.2f}"
        ))
    elif current_moc < snapshot.target_moc:
        alerts.append(alert(
            AlertType.APPROACHING_MIN, AlertSeverity.WARNING,
            f"Cover of {current_moc:.2f} months is below the target of {snapshot.target_moc:.2f}"
        ))

    if current_moc > snapshot.max_moc and snapshot.current_stock > 0:
        alerts.append(alert(
            AlertType.ABOVE_MAX_MOC, AlertSeverity.WARNING,
            f"Cover of {current_moc:.2f} months exceeds the maximum of {snapshot.max_moc:.2f}"
        ))

    if rate > 0:
        stockout_days = days_until_stockout(snapshot.current_stock, rate, days_per_month)
        replenish_days = snapshot.next_reorder_in_days + lead_time_days
        if stockout_days < replenish_days:
            alerts.append(alert(
                AlertType.STOCKOUT_RISK, AlertSeverity.CRITICAL,
                f"Stock runs out in {stockout_days:.0f} days, before replenishment "
                f"arrives in {replenish_days:.0f} days"
            ))

        if is_accelerating(snapshot.rate_history, acceleration_threshold):
            accelerated_rate = projected_rate(snapshot.rate_history, rate)
            cover_days = days_until_stockout(snapshot.current_stock, accelerated_rate, days_per_month)
            if lead_time_days > cover_days:
                alerts.append(alert(
                    AlertType.LEAD_TIME_RISK, AlertSeverity.WARNING,
                    f"Consumption is accelerating; {cover_days:.0f} days of cover at the "
                    f"projected rate is shorter than the {lead_time_days:.0f}-day lead time"
                ))

    return alerts

def rank_alerts(alerts: List[ReplenishmentAlert]) -> List[ReplenishmentAlert]:
    """Most severe first, then by category and alert type."""
    return sorted(alerts, key=lambda a: (a.severity.rank, a.category_id, a.alert_type.value))
