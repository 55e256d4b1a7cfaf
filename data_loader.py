"""
History Data Loaders

Produces the daily historical series consumed by the forecasting models:
- Reads the production, work-order and warehouse exports (upload or disk)
- Keeps the requested look-back window and averages values per calendar day
- Falls back to synthetic history when a source is missing, unreadable or empty

Every loader returns its processing messages as a list of "INFO:/WARNING:/ERROR:" lines.
"""

import time

import numpy as np
import pandas as pd
import pytz
from dateutil import tz

from business_rules import PROJECTION_DEFAULTS, get_history_path, get_history_source
from file_loader import safe_read_csv


class UpstreamFetchError(Exception):
    """A history source could not be read. Treated as "no data" by the loaders."""


def get_local_timezone():
    """Zone that defines a calendar day: PROJECTION_DEFAULTS['data_timezone'] or the server's zone."""
    name = PROJECTION_DEFAULTS.get('data_timezone')
    return pytz.timezone(name) if name else tz.tzlocal()


def get_now():
    """Current local wall-clock time (naive)."""
    return pd.Timestamp.now(tz=get_local_timezone()).tz_localize(None)


def get_today():
    """Midnight of the current local day."""
    return get_now().normalize()


def to_local_timestamps(values, timezone=None):
    """
    Parse timestamps into naive local wall-clock time.

    Values carrying an offset (e.g. '2025-03-30T02:00:00Z') are converted to
    the local zone; values without one are already local. Unparseable values
    become NaT.
    """
    timezone = timezone or get_local_timezone()

    def to_local(value):
        try:
            stamp = pd.Timestamp(value)
        except (TypeError, ValueError):
            return pd.NaT
        if pd.isna(stamp):
            return pd.NaT
        if stamp.tzinfo is not None:
            stamp = stamp.tz_convert(timezone).tz_localize(None)
        return stamp

    return pd.to_datetime(pd.Series(values).map(to_local), errors='coerce')


# === Helper Functions ===

def aggregate_by_day(df, timestamp_col='timestamp', value_col='value'):
    """
    Average all observations that fall on the same calendar day.

    Args:
        df: DataFrame with a datetime column and a numeric column

    Returns:
        DataFrame with 'timestamp' (midnight of each day) and 'value', sorted ascending
    """
    if df.empty:
        return pd.DataFrame({'timestamp': pd.Series(dtype='datetime64[ns]'),
                             'value': pd.Series(dtype='float64')})

    days = pd.to_datetime(df[timestamp_col]).dt.normalize()
    daily = (
        pd.DataFrame({'timestamp': days, 'value': df[value_col].astype(float)})
        .groupby('timestamp', as_index=False)['value']
        .mean()
        .sort_values('timestamp')
        .reset_index(drop=True)
    )
    return daily


def generate_mock_data(days, base_value, variance, today=None, rng=None):
    """
    Synthetic daily history with an upward trend, a weekly wave and noise.

    For offset i from `days` down to 0 (so days + 1 points ending today):
        value = base + (days - i) * 5 + sin(i / 7 * pi) * variance * 0.3 + (u - 0.5) * variance
    with u uniform on [0, 1), floored at 0 and stamped today - i days.

    Args:
        days: Number of days back from today
        base_value: Level at the start of the window
        variance: Amplitude driving both the wave and the noise
        today: Anchor day (default: today)
        rng: numpy Generator for the noise draws

    Returns:
        DataFrame with 'timestamp' and 'value'
    """
    if today is None:
        today = get_today()
    if rng is None:
        rng = np.random.default_rng()

    offsets = np.arange(days, -1, -1)
    trend = (days - offsets) * 5
    seasonality = np.sin((offsets / 7) * np.pi) * variance * 0.3
    noise = (rng.random(len(offsets)) - 0.5) * variance
    values = np.maximum(0, base_value + trend + seasonality + noise)

    return pd.DataFrame({
        'timestamp': [pd.Timestamp(today) - pd.Timedelta(days=int(i)) for i in offsets],
        'value': values.astype(float),
    })


# === Source Readers ===

def fetch_metric_rows(metric, days, data_dir=None, today=None, uploaded_files=None):
    """
    Read the raw rows of one metric's export inside the look-back window.

    Returns:
        DataFrame with 'timestamp' and 'value' (not yet aggregated)

    Raises:
        UpstreamFetchError: the export is missing, unreadable or lacks its columns
    """
    source = get_history_source(metric)
    ts_col = source['timestamp_column']
    value_col = source['value_column']
    path = get_history_path(metric, data_dir)

    try:
        raw = safe_read_csv(source['file_key'], path, uploaded_files=uploaded_files,
                            usecols=[ts_col, value_col], low_memory=False)
    except (OSError, ValueError) as e:
        raise UpstreamFetchError(f"Failed to read '{source['file_name']}': {e}") from e

    timestamps = to_local_timestamps(raw[ts_col])
    values = pd.to_numeric(raw[value_col], errors='coerce')
    rows = pd.DataFrame({'timestamp': timestamps, 'value': values}).dropna()

    # Rolling window: same time of day, `days` days back
    now = get_now() if today is None else pd.Timestamp(today)
    start_date = now - pd.Timedelta(days=days)
    return rows[rows['timestamp'] >= start_date]


def load_metric_history(metric, days=None, data_dir=None, today=None, rng=None, uploaded_files=None):
    """
    Load the daily history of one metric, with synthetic fallback.

    Args:
        metric: 'production', 'demand' or 'inventory'
        days: Look-back window (default PROJECTION_DEFAULTS['history_days'])
        data_dir: Directory holding the exports (default business_rules.DATA_DIR)
        today: Anchor for the window (default: now) and the mock data (default: midnight today)
        rng: numpy Generator used only by the mock fallback
        uploaded_files: optional {file_key: buffer} mapping of uploaded exports

    Returns:
        tuple: (logs, history_df, is_mock)
    """
    if days is None:
        days = PROJECTION_DEFAULTS['history_days']

    source = get_history_source(metric)
    logs = []
    start_time = time.time()
    logs.append(f"--- {source['label']} History Loader ---")

    try:
        rows = fetch_metric_rows(metric, days, data_dir=data_dir, today=today, uploaded_files=uploaded_files)
        logs.append(f"INFO: Read {len(rows)} rows from '{source['file_name']}' within the last {days} days.")
    except UpstreamFetchError as e:
        logs.append(f"WARNING: {e}")
        rows = pd.DataFrame()

    if rows.empty:
        profile = source['mock_profile']
        logs.append(
            f"WARNING: No {metric} history available - using synthetic data "
            f"(base={profile['base_value']}, variance={profile['variance']})."
        )
        history_df = generate_mock_data(days, profile['base_value'], profile['variance'], today=today, rng=rng)
        is_mock = True
    else:
        history_df = aggregate_by_day(rows)
        is_mock = False

    logs.append(f"INFO: {source['label']} history has {len(history_df)} daily points.")
    logs.append(f"INFO: {source['label']} History Loader finished in {time.time() - start_time:.2f} seconds.")

    return logs, history_df, is_mock
