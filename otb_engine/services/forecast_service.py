# otb_engine/services/forecast_service.py
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

from otb_engine.config import config
from otb_engine.core.ensemble import (
    AccuracyMetrics, CombinedForecast, combine_forecasts, evaluate_holdout,
    generate_insights, rate_accuracy
)
from otb_engine.core.forecast_methods import history_from_observations
from otb_engine.exceptions import InsufficientHistoryError, InvalidConfigError
from otb_engine.logging_setup import get_logger, log_exception
from otb_engine.models import ForecastConfig, ForecastMethod, ForecastRun, ForecastScope, Observation

# Set up logging
logger = get_logger(__name__)

class ForecastService:
    """Service for producing demand forecasts from weekly observations.

    The service holds no forecasting state between calls: every run is a pure
    function of the observations and the config handed in.
    """

    def __init__(self, settings: Optional[Dict[str, Any]] = None):
        """Initialize the forecast service.

        Args:
            settings: Optional overrides for Config.forecast_config
        """
        self.settings = dict(config.forecast_config)
        if settings:
            self.settings.update(settings)

    def build_config(self, data: Optional[Dict[str, Any]] = None) -> ForecastConfig:
        """Build a validated config, filling gaps from the configured defaults.

        Raises:
            InvalidConfigError if the resulting config is invalid
        """
        return ForecastConfig.from_dict(data or {}, self.settings)

    def generate_forecast(
        self,
        history: List[float],
        forecast_config: ForecastConfig
    ) -> Tuple[CombinedForecast, AccuracyMetrics, List[str]]:
        """Forecast, score and describe one history.

        Args:
            history: Weekly units sold, most recent last
            forecast_config: Validated forecast config

        Returns:
            Tuple of combined forecast, held-out accuracy and insights

        Raises:
            InsufficientHistoryError if history is shorter than the lookback window
        """
        combined = combine_forecasts(history, forecast_config)
        metrics = evaluate_holdout(history, forecast_config)
        insights = generate_insights(
            history,
            forecast_config,
            metrics,
            trend_threshold=self.settings['trend_insight_threshold'],
            volatility_threshold=self.settings['volatility_cv_threshold']
        )
        return combined, metrics, insights

    def run_forecast(
        self,
        observations: Iterable[Observation],
        forecast_config: ForecastConfig,
        scope: Optional[ForecastScope] = None
    ) -> ForecastRun:
        """Execute a forecast run.

        The run moves PENDING -> RUNNING -> COMPLETED, or FAILED with the reason
        recorded when history is insufficient. No partial forecast is emitted.

        Args:
            observations: Observations for the scope
            forecast_config: Validated forecast config
            scope: Optional scope identifiers recorded on the run

        Returns:
            Terminal ForecastRun
        """
        if not isinstance(forecast_config, ForecastConfig):
            raise InvalidConfigError("run_forecast requires a validated ForecastConfig")

        if scope is None:
            scope = ForecastScope(
                brand_id=forecast_config.brand_id,
                category_id=forecast_config.category_id,
                season_id=forecast_config.season_id
            )

        run = ForecastRun(config=forecast_config, scope=scope)
        run.start()

        history, latest_week = history_from_observations(observations)
        logger.debug(
            f"Forecast run {run.run_id}: {forecast_config.primary_method} over "
            f"{len(history)} weeks for {scope}"
        )

        try:
            combined, metrics, insights = self.generate_forecast(history, forecast_config)
        except InsufficientHistoryError as e:
            logger.warning(f"Forecast run {run.run_id} failed: {e.message}")
            run.data_points = len(history)
            run.latest_week = latest_week
            run.fail(str(e))
            return run
        except Exception as e:
            log_exception(__name__, e, f"Unexpected error in forecast run {run.run_id}")
            run.fail(f"Unexpected error: {e}")
            return run

        run.complete(
            weekly_forecast=list(combined.weekly_forecast),
            confidence_bands=list(combined.confidence_bands),
            component_forecasts={
                method.value: list(component.values)
                for method, component in combined.components.items()
            },
            accuracy=metrics.accuracy,
            mape=metrics.mape,
            rmse=metrics.rmse,
            accuracy_rating=rate_accuracy(metrics.mape),
            insights=insights,
            data_points=len(history),
            latest_week=latest_week
        )

        logger.info(
            f"Forecast run {run.run_id} completed: {forecast_config.forecast_weeks} weeks, "
            f"accuracy={run.accuracy}"
        )
        return run

    def compare_methods(
        self,
        observations: Iterable[Observation],
        forecast_config: ForecastConfig
    ) -> Dict[str, Any]:
        """Run every method over the same history and rank them by MAPE.

        Methods without a held-out MAPE rank after those with one.

        Args:
            observations: Observations for the scope
            forecast_config: Base config (windows and weights)

        Returns:
            Dictionary with the ranked comparison and a recommendation
        """
        observations = list(observations)
        comparison = []

        for method in ForecastMethod:
            try:
                method_config = forecast_config.with_method(method)
            except InvalidConfigError:
                # Base weights only make sense for a single method; blend with the defaults
                method_config = replace(
                    forecast_config,
                    primary_method=method,
                    moving_avg_weight=self.settings['default_moving_avg_weight'],
                    exp_smooth_weight=self.settings['default_exp_smooth_weight'],
                    trend_weight=self.settings['default_trend_weight']
                )

            run = self.run_forecast(observations, method_config)
            comparison.append({
                'method': method.value,
                'status': run.status.value,
                'mape': run.mape,
                'accuracy': run.accuracy,
                'rating': run.accuracy_rating,
                'weekly_forecast': run.weekly_forecast,
                'failure_reason': run.failure_reason
            })

        comparison.sort(key=lambda c: (c['mape'] is None, c['mape'] if c['mape'] is not None else 0.0))

        best = comparison[0]
        if best['mape'] is None:
            recommendation = None
            reason = "No method could be scored against held-out history"
        else:
            recommendation = best['method']
            reason = f"{best['method']} has the lowest MAPE ({best['mape']:.1%})"

        return {
            'comparison': comparison,
            'recommendation': recommendation,
            'recommendation_reason': reason
        }
