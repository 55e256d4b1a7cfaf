"""
Business Rules Configuration
Centralized definitions for forecasting parameters, signal thresholds and data sources.
This file allows rules to be changed in one place without modifying tool code.
"""

import os

# ===== DATA LOCATION =====

DATA_DIR = os.environ.get("SUPPLY_DATA_DIR", "Data")


# ===== SEQUENCE MODEL RULES =====
# The layer shape is fixed: two stacked LSTM layers with dropout and a linear head.
# Changing these values changes forecast reproducibility.

FORECAST_RULES = {
    "lookback": 7,                # Days of history fed into each prediction
    "lstm_units": 50,             # Hidden width of both recurrent layers
    "dropout_rate": 0.2,
    "learning_rate": 0.001,       # Adam
    "loss": "mean_squared_error",
    "metrics": ["mae"],           # Diagnostics only
    "epochs": 50,                 # Fixed budget, no early stopping
    "batch_size": 32,
    "validation_split": 0.2,
    "log_every_n_epochs": 10,
}


# ===== STATISTICAL SIGNAL RULES =====

SIGNAL_RULES = {
    "trend": {
        "change_threshold_pct": 5.0,    # Second-half vs first-half mean change
    },
    "seasonality": {
        "lag": 7,                       # Weekly cycle
        "min_points": 14,
        "autocorrelation_threshold": 0.3,
    },
    "smoothing": {
        "default_alpha": 0.3,
    },
}


# ===== SUPPLY / DEMAND GAP RULES =====

GAP_RULES = {
    "unit": "MT",                       # Metric tons
    "deficit_threshold": -500,          # Projected gap below this = deficit
    "surplus_threshold": 500,           # Projected gap above this = surplus
    "low_confidence_threshold": 0.6,
}

RECOMMENDATION_MESSAGES = {
    "deficit": "⚠️ Projected demand exceeds production by {gap:.0f} {unit}. "
               "Increase production capacity or adjust work orders.",
    "surplus": "📦 Projected production exceeds demand by {gap:.0f} {unit}. "
               "Consider reducing production or increasing sales efforts.",
    "balanced": "✅ Production and demand are well balanced.",
    "compounding_risk": "🚨 Critical: Production declining while demand increasing. "
                        "Immediate action required to scale production.",
    "oversupply_risk": "⚠️ Warning: Production increasing while demand decreasing. "
                       "Review market conditions and adjust production plans.",
    "low_confidence_production": "📊 Production forecast has low confidence. Monitor closely.",
    "low_confidence_demand": "📊 Demand forecast has low confidence. Gather more market data.",
}


# ===== HISTORY SOURCES =====
# Each metric is read from its own export, aggregated to one value per calendar day.
# When a source is missing or empty, synthetic history is generated from the mock profile.

HISTORY_SOURCES = {
    "production": {
        "label": "Production Output",
        "file_key": "production",
        "file_name": "production_batches.csv",
        "timestamp_column": "produced_at",
        "value_column": "output_quantity",
        "mock_profile": {"base_value": 2000, "variance": 500},
    },
    "demand": {
        "label": "Demand (Work Orders)",
        "file_key": "demand",
        "file_name": "work_orders.csv",
        "timestamp_column": "created_at",
        "value_column": "quantity",
        "mock_profile": {"base_value": 1800, "variance": 400},
    },
    "inventory": {
        "label": "Inventory Stock",
        "file_key": "inventory",
        "file_name": "warehouses.csv",
        "timestamp_column": "updated_at",
        "value_column": "current_stock",
        "mock_profile": {"base_value": 1200, "variance": 300},
    },
}

METRIC_ORDER = ["production", "demand", "inventory"]


# ===== PROJECTION DEFAULTS =====

PROJECTION_DEFAULTS = {
    "history_days": 60,
    "forecast_days": 30,
    "min_forecast_days": 1,
    "max_forecast_days_ui": 90,
    "display_timezone": "Asia/Kuala_Lumpur",
    # Calendar days of the exports are cut in this zone; None = the server's local zone
    "data_timezone": os.environ.get("SUPPLY_DATA_TZ") or None,
}


def get_history_source(metric):
    """
    Return a copy of the history source definition for a metric.

    Args:
        metric: One of METRIC_ORDER

    Returns:
        dict: Source definition (file name, columns, mock profile)
    """
    if metric not in HISTORY_SOURCES:
        raise KeyError(f"Unknown metric '{metric}'. Expected one of: {', '.join(METRIC_ORDER)}")

    source = dict(HISTORY_SOURCES[metric])
    source["mock_profile"] = dict(source["mock_profile"])
    return source


def get_history_path(metric, data_dir=None):
    """Full path of a metric's CSV export inside the data directory."""
    source = get_history_source(metric)
    return os.path.join(data_dir or DATA_DIR, source["file_name"])
