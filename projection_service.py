"""
AI Projection Service

Generates future projections for production, demand and inventory:
- Loads each metric's daily history (synthetic fallback when missing)
- Trains an independent forecaster per metric and forecasts N days ahead
- Computes the current and projected production/demand gap
- Synthesizes a plain-text recommendation from gap, trend and confidence

The three metric pipelines run concurrently on the event loop. History reads
use the default executor; all model training and inference share a single
worker thread, so numeric work never runs in parallel.
"""

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime

import pytz
from tensorflow import keras

from business_rules import GAP_RULES, METRIC_ORDER, PROJECTION_DEFAULTS, RECOMMENDATION_MESSAGES
from data_loader import load_metric_history
from forecast_signals import Trend
from series_preprocessing import series_from_frame
from time_series_model import ForecastResult, TimeSeriesForecaster


@dataclass(frozen=True)
class Gap:
    current: float
    projected: float
    recommendation: str


@dataclass(frozen=True)
class ProjectionData:
    production: ForecastResult
    demand: ForecastResult
    inventory: ForecastResult
    gap: Gap
    generated_at: datetime


# ===== GAP & RECOMMENDATION =====

def calculate_gap(production_history, demand_history, production_forecast, demand_forecast):
    """
    Returns:
        tuple: (current, projected) where current is last production minus last
        demand (0 for an empty series) and projected is the difference of the
        mean predictions.
    """
    current_production = production_history[-1].value if production_history else 0.0
    current_demand = demand_history[-1].value if demand_history else 0.0
    current = current_production - current_demand

    projected = production_forecast.mean_prediction - demand_forecast.mean_prediction
    return current, projected


def generate_recommendation(projected_gap, production_forecast, demand_forecast):
    """
    Build the recommendation text.

    Clauses, in this order, all that apply:
    1. deficit / surplus / balanced, from the projected gap
    2. compounding risk or oversupply risk, from the two trends
    3. low production confidence
    4. low demand confidence
    """
    unit = GAP_RULES["unit"]
    low_confidence = GAP_RULES["low_confidence_threshold"]
    recommendations = []

    if projected_gap < GAP_RULES["deficit_threshold"]:
        recommendations.append(RECOMMENDATION_MESSAGES["deficit"].format(gap=abs(projected_gap), unit=unit))
    elif projected_gap > GAP_RULES["surplus_threshold"]:
        recommendations.append(RECOMMENDATION_MESSAGES["surplus"].format(gap=projected_gap, unit=unit))
    else:
        recommendations.append(RECOMMENDATION_MESSAGES["balanced"])

    if production_forecast.trend == Trend.DECREASING and demand_forecast.trend == Trend.INCREASING:
        recommendations.append(RECOMMENDATION_MESSAGES["compounding_risk"])
    elif production_forecast.trend == Trend.INCREASING and demand_forecast.trend == Trend.DECREASING:
        recommendations.append(RECOMMENDATION_MESSAGES["oversupply_risk"])

    if production_forecast.confidence < low_confidence:
        recommendations.append(RECOMMENDATION_MESSAGES["low_confidence_production"])
    if demand_forecast.confidence < low_confidence:
        recommendations.append(RECOMMENDATION_MESSAGES["low_confidence_demand"])

    return " ".join(recommendations)


# ===== ORCHESTRATION =====

class ProjectionService:
    """
    Runs one projection round at a time.

    Use as a context manager; leaving the block releases the Keras session and
    the compute worker whether or not generation succeeded.
    """

    def __init__(self, data_dir=None, history_days=None, uploaded_files=None,
                 forecaster_factory=TimeSeriesForecaster, history_loader=load_metric_history):
        self.data_dir = data_dir
        self.uploaded_files = dict(uploaded_files or {})
        self.history_days = history_days or PROJECTION_DEFAULTS["history_days"]
        self.forecaster_factory = forecaster_factory
        self.history_loader = history_loader
        self.logs = []
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="forecast-compute")
        self._disposed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.dispose()
        return False

    async def _project_metric(self, metric, forecast_days):
        loop = asyncio.get_running_loop()
        load = functools.partial(self.history_loader, metric, days=self.history_days,
                                 data_dir=self.data_dir, uploaded_files=self.uploaded_files)
        metric_logs, history_df, _ = await loop.run_in_executor(None, load)

        history = series_from_frame(history_df)
        metric_logs.append(f"INFO: Training {metric} model on {len(history)} daily points...")

        with self.forecaster_factory(logs=metric_logs) as forecaster:
            forecast = await forecaster.forecast_async(history, forecast_days, executor=self._executor)

        metric_logs.append(
            f"INFO: {metric} forecast: trend={forecast.trend.value}, "
            f"confidence={forecast.confidence:.2f}, seasonality={forecast.seasonality}"
        )
        return metric_logs, history, forecast

    async def generate_projections(self, forecast_days=None):
        """
        Forecast all three metrics and derive the gap and recommendation.

        Args:
            forecast_days: Days to forecast (>= 1, default PROJECTION_DEFAULTS['forecast_days'])

        Returns:
            tuple: (logs, ProjectionData)

        Raises:
            InsufficientDataError: a metric history is too short to train on
            ValueError: forecast_days < 1
        """
        if self._disposed:
            raise RuntimeError("ProjectionService has been disposed")
        if forecast_days is None:
            forecast_days = PROJECTION_DEFAULTS["forecast_days"]
        if forecast_days < PROJECTION_DEFAULTS["min_forecast_days"]:
            raise ValueError(f"forecast_days must be at least 1 (got {forecast_days})")

        logs = ["--- AI Projection Engine ---",
                f"INFO: Forecasting {forecast_days} days for {', '.join(METRIC_ORDER)}..."]
        self.logs = logs

        # All three pipelines finish before any failure is reported
        outcomes = await asyncio.gather(
            *(self._project_metric(metric, forecast_days) for metric in METRIC_ORDER),
            return_exceptions=True,
        )

        failures = []
        results = {}
        for metric, outcome in zip(METRIC_ORDER, outcomes):
            if isinstance(outcome, BaseException):
                logs.append(f"ERROR: {metric} projection failed: {outcome}")
                failures.append(outcome)
            else:
                metric_logs, history, forecast = outcome
                logs.extend(metric_logs)
                results[metric] = (history, forecast)

        if failures:
            raise failures[0]

        production_history, production_forecast = results["production"]
        demand_history, demand_forecast = results["demand"]
        current_gap, projected_gap = calculate_gap(
            production_history, demand_history, production_forecast, demand_forecast
        )

        gap = Gap(
            current=current_gap,
            projected=projected_gap,
            recommendation=generate_recommendation(projected_gap, production_forecast, demand_forecast),
        )
        logs.append(f"INFO: Gap current={current_gap:,.0f}, projected={projected_gap:,.0f} {GAP_RULES['unit']}")
        logs.append("INFO: Projections generated successfully.")

        projection = ProjectionData(
            production=production_forecast,
            demand=demand_forecast,
            inventory=results["inventory"][1],
            gap=gap,
            generated_at=datetime.now(pytz.utc),
        )
        return logs, projection

    def dispose(self):
        """Release the Keras session and the compute worker. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        self._executor.shutdown(wait=True)
        keras.backend.clear_session()

