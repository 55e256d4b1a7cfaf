"""
Pytest configuration and shared fixtures for all tests
Centralized mock series, exports and forecast builders
"""

import pytest
import pandas as pd
import numpy as np
import io
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from series_preprocessing import TimePoint
from forecast_signals import Trend
from time_series_model import ForecastResult
from business_rules import PROJECTION_DEFAULTS

TEST_TODAY = pd.Timestamp("2025-03-31")


# ===== SERIES FIXTURES =====

def make_series(values, start=None):
    """List of daily TimePoints starting at `start` (default: ending on TEST_TODAY)"""
    if start is None:
        start = TEST_TODAY - pd.Timedelta(days=len(values) - 1)
    return [TimePoint(timestamp=start + pd.Timedelta(days=i), value=float(v)) for i, v in enumerate(values)]


def make_forecast(values, trend=Trend.STABLE, confidence=0.9, seasonality=False, start=None):
    """ForecastResult with the given predicted values"""
    if start is None:
        start = TEST_TODAY + pd.Timedelta(days=1)
    return ForecastResult(
        predictions=tuple(make_series(values, start=start)),
        confidence=confidence,
        trend=trend,
        seasonality=seasonality,
    )


@pytest.fixture(autouse=True)
def utc_calendar_days(monkeypatch):
    """Cut export calendar days at UTC midnight regardless of the machine's zone"""
    monkeypatch.setitem(PROJECTION_DEFAULTS, "data_timezone", "UTC")


@pytest.fixture
def seeded_rng():
    """Deterministic noise source for synthetic data"""
    return np.random.default_rng(42)


# ===== MOCK EXPORT FIXTURES =====

@pytest.fixture
def mock_production_csv():
    """
    Production batches with:
    - Two batches on the same day (test daily averaging)
    - Out-of-order rows (test sorting)
    - One row outside the 60-day window
    - One unparseable quantity
    """
    csv_data = (
        "batch_id,produced_at,output_quantity\n"
        "B-3,2025-03-30T08:00:00Z,2100\n"
        "B-1,2025-03-29T06:00:00Z,1900\n"
        "B-2,2025-03-29T18:00:00Z,2100\n"
        "B-0,2024-12-01T06:00:00Z,5000\n"
        "B-4,2025-03-31T07:00:00Z,not-a-number\n"
    )
    return "production_batches.csv", io.StringIO(csv_data)


@pytest.fixture
def mock_work_orders_csv():
    """Work orders on two consecutive days"""
    csv_data = (
        "order_id,created_at,quantity\n"
        "WO-1,2025-03-29T09:00:00Z,1800\n"
        "WO-2,2025-03-30T09:00:00Z,1750\n"
    )
    return "work_orders.csv", io.StringIO(csv_data)


@pytest.fixture
def mock_history_csvs(monkeypatch, mock_production_csv, mock_work_orders_csv):
    """
    Intercepts pd.read_csv calls for the history exports and serves mock data.
    warehouses.csv is deliberately absent so the inventory fallback is exercised.
    """
    mocks = {
        "production_batches.csv": mock_production_csv[1],
        "work_orders.csv": mock_work_orders_csv[1],
    }

    original_read_csv = pd.read_csv

    def new_read_csv(filepath_or_buffer, *args, **kwargs):
        if isinstance(filepath_or_buffer, str):
            filename = os.path.basename(filepath_or_buffer)
            if filename in mocks:
                mocks[filename].seek(0)
                return original_read_csv(mocks[filename], *args, **kwargs)
        return original_read_csv(filepath_or_buffer, *args, **kwargs)

    monkeypatch.setattr(pd, "read_csv", new_read_csv)
    return mocks


# ===== UTILITY FUNCTIONS FOR TESTS =====

def assert_log_contains(logs, expected_message):
    """
    Helper to assert that a log message contains expected text

    Args:
        logs: List of log messages
        expected_message: Text expected to be in one of the logs
    """
    log_text = " ".join(logs)
    assert expected_message in log_text, f"Expected '{expected_message}' not found in logs: {log_text}"
