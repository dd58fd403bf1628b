from .forecast_service import ForecastService
from .markdown_service import MarkdownOptimizer, SKUEvaluation
from .replenishment_service import ReplenishmentMonitor, MonitorResult
from .simulation_service import SimulationRunner

__all__ = [
    'ForecastService',
    'MarkdownOptimizer',
    'SKUEvaluation',
    'ReplenishmentMonitor',
    'MonitorResult',
    'SimulationRunner'
]
