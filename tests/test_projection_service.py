"""
Tests for the projection orchestrator
Gap, recommendation synthesis and concurrent per-metric pipelines
"""

import asyncio

import pytest
import pandas as pd
import pytz

from conftest import TEST_TODAY, assert_log_contains, make_forecast, make_series
from forecast_signals import Trend, calculate_confidence
from projection_service import ProjectionService, calculate_gap, generate_recommendation
from series_preprocessing import InsufficientDataError, TimePoint
from time_series_model import ForecastResult


def history_frame(values):
    points = make_series(values)
    return pd.DataFrame({'timestamp': [p.timestamp for p in points], 'value': [p.value for p in points]})


class FakeForecaster:
    """Repeats the last history value; records its lifecycle"""

    instances = []

    def __init__(self, logs=None):
        self.logs = logs if logs is not None else []
        self.entered = False
        self.disposed = False
        FakeForecaster.instances.append(self)

    def __enter__(self):
        self.entered = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disposed = True
        return False

    async def forecast_async(self, history, steps=30, executor=None):
        if len(history) < 8:
            raise InsufficientDataError(7, len(history))
        await asyncio.sleep(0)
        last = history[-1]
        predictions = tuple(
            TimePoint(last.timestamp + pd.Timedelta(days=i + 1), last.value) for i in range(steps)
        )
        values = [p.value for p in history]
        return ForecastResult(predictions=predictions, confidence=calculate_confidence(values),
                              trend=Trend.STABLE, seasonality=False)


@pytest.fixture
def fake_forecaster():
    FakeForecaster.instances = []
    return FakeForecaster


def make_loader(frames, calls=None):
    def loader(metric, days=None, data_dir=None, uploaded_files=None):
        if calls is not None:
            calls.append((metric, days, data_dir, uploaded_files))
        return [f"INFO: loaded {metric}"], frames[metric], False
    return loader


# ===== GAP =====

class TestCalculateGap:

    def test_current_and_projected(self):
        current, projected = calculate_gap(
            make_series([900, 1000]), make_series([700, 800]),
            make_forecast([1100, 1300]), make_forecast([1000, 1000]),
        )
        assert current == 200
        assert projected == pytest.approx(200)

    def test_empty_history_counts_as_zero(self):
        current, _ = calculate_gap([], make_series([300]), make_forecast([1]), make_forecast([1]))
        assert current == -300


# ===== RECOMMENDATION =====

class TestGenerateRecommendation:

    def test_deficit(self):
        text = generate_recommendation(-820.4, make_forecast([1]), make_forecast([1]))
        assert text.startswith("⚠️ Projected demand exceeds production by 820 MT.")

    def test_surplus(self):
        text = generate_recommendation(650, make_forecast([1]), make_forecast([1]))
        assert "exceeds demand by 650 MT" in text

    @pytest.mark.parametrize("gap", [-500, 0, 500])
    def test_balanced_band_is_inclusive(self, gap):
        text = generate_recommendation(gap, make_forecast([1]), make_forecast([1]))
        assert text == "✅ Production and demand are well balanced."

    def test_compounding_risk(self):
        text = generate_recommendation(
            0, make_forecast([1], trend=Trend.DECREASING), make_forecast([1], trend=Trend.INCREASING)
        )
        assert "Critical: Production declining while demand increasing" in text

    def test_oversupply_risk(self):
        text = generate_recommendation(
            0, make_forecast([1], trend=Trend.INCREASING), make_forecast([1], trend=Trend.DECREASING)
        )
        assert "Production increasing while demand decreasing" in text

    @pytest.mark.parametrize("production_trend,demand_trend", [
        (Trend.STABLE, Trend.STABLE),
        (Trend.INCREASING, Trend.INCREASING),
        (Trend.DECREASING, Trend.STABLE),
    ])
    def test_no_risk_clause_otherwise(self, production_trend, demand_trend):
        text = generate_recommendation(
            0, make_forecast([1], trend=production_trend), make_forecast([1], trend=demand_trend)
        )
        assert "Critical" not in text
        assert "Warning" not in text

    def test_low_confidence_clauses(self):
        text = generate_recommendation(
            0, make_forecast([1], confidence=0.59), make_forecast([1], confidence=0.1)
        )
        assert "Production forecast has low confidence" in text
        assert "Demand forecast has low confidence" in text

    def test_threshold_confidence_is_not_low(self):
        text = generate_recommendation(0, make_forecast([1], confidence=0.6), make_forecast([1], confidence=0.6))
        assert "low confidence" not in text

    def test_clause_order_and_separator(self):
        text = generate_recommendation(
            -1000,
            make_forecast([1], trend=Trend.DECREASING, confidence=0.2),
            make_forecast([1], trend=Trend.INCREASING, confidence=0.2),
        )
        deficit = text.index("demand exceeds production")
        critical = text.index("Critical")
        production_low = text.index("Production forecast has low confidence")
        demand_low = text.index("Demand forecast has low confidence")
        assert deficit < critical < production_low < demand_low
        assert ". 🚨" in text


# ===== ORCHESTRATION =====

class TestGenerateProjections:

    def test_flat_equal_series_are_balanced(self, fake_forecaster):
        frames = {
            'production': history_frame([1000] * 61),
            'demand': history_frame([1000] * 61),
            'inventory': history_frame([500] * 61),
        }
        with ProjectionService(forecaster_factory=fake_forecaster, history_loader=make_loader(frames)) as service:
            logs, projection = asyncio.run(service.generate_projections(30))

        assert projection.gap.current == 0
        assert projection.gap.projected == 0
        assert "well balanced" in projection.gap.recommendation
        assert "Critical" not in projection.gap.recommendation
        assert "Warning" not in projection.gap.recommendation
        assert_log_contains(logs, "INFO: Projections generated successfully.")

    def test_forecast_lengths_follow_request(self, fake_forecaster):
        frames = {metric: history_frame(range(100, 161)) for metric in ('production', 'demand', 'inventory')}
        with ProjectionService(forecaster_factory=fake_forecaster, history_loader=make_loader(frames)) as service:
            _, projection = asyncio.run(service.generate_projections(7))

        for forecast in (projection.production, projection.demand, projection.inventory):
            assert len(forecast.predictions) == 7
        assert projection.generated_at.tzinfo is not None
        assert projection.generated_at.utcoffset() == pytz.utc.utcoffset(None)

    def test_one_forecaster_per_metric(self, fake_forecaster):
        frames = {metric: history_frame(range(100, 161)) for metric in ('production', 'demand', 'inventory')}
        with ProjectionService(forecaster_factory=fake_forecaster, history_loader=make_loader(frames)) as service:
            asyncio.run(service.generate_projections(5))

        assert len(fake_forecaster.instances) == 3
        assert len({id(f) for f in fake_forecaster.instances}) == 3
        assert all(f.entered and f.disposed for f in fake_forecaster.instances)

    def test_loader_receives_window_and_sources(self, fake_forecaster, tmp_path):
        frames = {metric: history_frame(range(100, 161)) for metric in ('production', 'demand', 'inventory')}
        calls = []
        uploads = {'production': object()}
        with ProjectionService(data_dir=str(tmp_path), history_days=45, uploaded_files=uploads,
                               forecaster_factory=fake_forecaster,
                               history_loader=make_loader(frames, calls)) as service:
            asyncio.run(service.generate_projections(5))

        assert sorted(call[0] for call in calls) == ['demand', 'inventory', 'production']
        assert all(call[1] == 45 and call[2] == str(tmp_path) for call in calls)
        assert all(call[3] == uploads for call in calls)

    def test_failure_propagates_after_all_metrics_finish(self, fake_forecaster):
        frames = {
            'production': history_frame(range(100, 161)),
            'demand': history_frame([10, 20, 30]),
            'inventory': history_frame(range(100, 161)),
        }
        service = ProjectionService(forecaster_factory=fake_forecaster, history_loader=make_loader(frames))
        with service:
            with pytest.raises(InsufficientDataError):
                asyncio.run(service.generate_projections(5))

        assert len(fake_forecaster.instances) == 3
        assert all(f.disposed for f in fake_forecaster.instances)
        assert_log_contains(service.logs, "ERROR: demand projection failed")
        assert_log_contains(service.logs, "INFO: loaded production")

    def test_first_failure_in_metric_order_is_raised(self, fake_forecaster):
        def loader(metric, days=None, data_dir=None, uploaded_files=None):
            if metric == 'inventory':
                raise OSError("inventory unavailable")
            if metric == 'production':
                raise KeyError("production broken")
            return [], history_frame(range(100, 161)), False

        with ProjectionService(forecaster_factory=fake_forecaster, history_loader=loader) as service:
            with pytest.raises(KeyError):
                asyncio.run(service.generate_projections(5))

    @pytest.mark.parametrize("days", [0, -1])
    def test_forecast_days_must_be_positive(self, fake_forecaster, days):
        frames = {metric: history_frame(range(100, 161)) for metric in ('production', 'demand', 'inventory')}
        with ProjectionService(forecaster_factory=fake_forecaster, history_loader=make_loader(frames)) as service:
            with pytest.raises(ValueError):
                asyncio.run(service.generate_projections(days))
        assert fake_forecaster.instances == []


class TestDispose:

    def test_dispose_is_idempotent_and_final(self, fake_forecaster):
        service = ProjectionService(forecaster_factory=fake_forecaster, history_loader=make_loader({}))
        service.dispose()
        service.dispose()
        with pytest.raises(RuntimeError):
            asyncio.run(service.generate_projections(5))


class TestEndToEnd:
    """Real network, flat history"""

    def test_flat_history_projects_balanced(self):
        frames = {
            'production': history_frame([1000] * 61),
            'demand': history_frame([1000] * 61),
            'inventory': history_frame([400] * 61),
        }
        with ProjectionService(history_loader=make_loader(frames)) as service:
            logs, projection = asyncio.run(service.generate_projections(10))

        assert projection.gap.current == 0
        assert abs(projection.gap.projected) < 500
        assert projection.production.confidence == 1.0
        assert projection.production.trend == Trend.STABLE
        assert projection.gap.recommendation.startswith("✅ Production and demand are well balanced.")
        assert all(p.value >= 0 for p in projection.inventory.predictions)
        assert projection.inventory.predictions[0].timestamp == TEST_TODAY + pd.Timedelta(days=1)
        assert_log_contains(logs, "INFO: Training on 54 windows")
