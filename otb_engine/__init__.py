"""
Open-to-buy decision engine: demand forecasting, markdown optimization,
replenishment monitoring and markdown scenario simulation.
"""

__version__ = '0.1.0'

from .config import config
from .logging_setup import logger, get_logger
from .exceptions import (
    OTBError, InvalidConfigError, InsufficientHistoryError, ValidationError,
    PlanStateError, ForecastError, OptimizationError, SimulationError
)
from .services import (
    ForecastService, MarkdownOptimizer, ReplenishmentMonitor, SimulationRunner
)
