from .forecast_methods import (
    MethodForecast, history_from_observations, moving_average,
    exponential_smoothing, trend_adjusted, forecast_with_method
)
from .ensemble import (
    CombinedForecast, AccuracyMetrics, z_score, combine_forecasts,
    evaluate_holdout, rate_accuracy, generate_insights
)
from .markdown import (
    MarkdownDecision, weekly_baseline, markdown_schedule, project_units,
    project_weekly_units, sell_through, expected_revenue, margin_loss,
    days_to_sell, urgency_score, urgency_level, recency_factor,
    confidence_score, decide_markdown
)
from .moc import (
    calculate_moc, classify_moc, suggested_order_qty, days_until_stockout,
    safety_stock, reorder_point, projected_rate, is_accelerating,
    generate_alerts, rank_alerts
)

__all__ = [
    'MethodForecast',
    'history_from_observations',
    'moving_average',
    'exponential_smoothing',
    'trend_adjusted',
    'forecast_with_method',
    'CombinedForecast',
    'AccuracyMetrics',
    'z_score',
    'combine_forecasts',
    'evaluate_holdout',
    'rate_accuracy',
    'generate_insights',
    'MarkdownDecision',
    'weekly_baseline',
    'markdown_schedule',
    'project_units',
    'project_weekly_units',
    'sell_through',
    'expected_revenue',
    'margin_loss',
    'days_to_sell',
    'urgency_score',
    'urgency_level',
    'recency_factor',
    'confidence_score',
    'decide_markdown',
    'calculate_moc',
    'classify_moc',
    'suggested_order_qty',
    'days_until_stockout',
    'safety_stock',
    'reorder_point',
    'projected_rate',
    'is_accelerating',
    'generate_alerts',
    'rank_alerts'
]
