"""
Series Preprocessing Module

Prepares a single historical metric series for the sequence model:
- Min-max scaling into [0, 1] and the exact inverse
- Sliding-window training examples (lookback window -> next value)

Input series must already be sorted ascending by timestamp.
Nothing in this module reorders data.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class TimePoint:
    """One observation of a metric."""

    timestamp: pd.Timestamp
    value: float


@dataclass(frozen=True)
class ScalerState:
    """Min/max captured from one historical series."""

    min: float
    max: float

    @property
    def range(self) -> float:
        # Constant series: scale by 1 so values map to value - min
        return (self.max - self.min) or 1.0


class InsufficientDataError(ValueError):
    """Raised when a series is too short to build a single training example."""

    def __init__(self, lookback: int, available: int):
        self.lookback = lookback
        self.required = lookback + 1
        self.available = available
        super().__init__(
            f"Insufficient data for training. Need at least {self.required} data points "
            f"(got {available})."
        )


def series_values(history: Sequence[TimePoint]) -> np.ndarray:
    """Extract the raw values of a series as a float array."""
    return np.asarray([point.value for point in history], dtype=np.float64)


def series_from_frame(df: pd.DataFrame, timestamp_col: str = "timestamp",
                      value_col: str = "value") -> List[TimePoint]:
    """
    Convert a DataFrame with timestamp/value columns into a list of TimePoints.

    Row order is preserved.
    """
    if df.empty:
        return []

    timestamps = pd.to_datetime(df[timestamp_col])
    values = df[value_col].astype(float)
    return [TimePoint(timestamp=ts, value=float(val)) for ts, val in zip(timestamps, values)]


def series_to_frame(points: Sequence[TimePoint]) -> pd.DataFrame:
    """Inverse of series_from_frame, used by the charts."""
    return pd.DataFrame({
        "timestamp": [point.timestamp for point in points],
        "value": [point.value for point in points],
    })


def normalize(values) -> Tuple[np.ndarray, float, float]:
    """
    Min-max scale values into [0, 1].

    Args:
        values: Sequence of raw values (non-empty)

    Returns:
        tuple: (normalized, min, max)
    """
    data = np.asarray(values, dtype=np.float64)
    data_min = float(data.min())
    data_max = float(data.max())
    scaler = ScalerState(min=data_min, max=data_max)

    return (data - scaler.min) / scaler.range, data_min, data_max


def denormalize(normalized, data_min: float, data_max: float) -> np.ndarray:
    """Exact inverse of normalize(), including the zero-range fallback."""
    scaler = ScalerState(min=data_min, max=data_max)
    return np.asarray(normalized, dtype=np.float64) * scaler.range + scaler.min


def create_sequences(data, lookback: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build sliding-window training examples.

    For every i in [lookback, len(data)) the window is data[i - lookback:i]
    and the target is data[i]. Yields max(0, len(data) - lookback) examples.

    Args:
        data: Normalized values
        lookback: Window length

    Returns:
        tuple: (windows with shape (n, lookback), targets with shape (n,))
    """
    data = np.asarray(data, dtype=np.float64)
    n_examples = max(0, len(data) - lookback)

    if n_examples == 0:
        return np.empty((0, lookback)), np.empty((0,))

    windows = np.stack([data[i - lookback:i] for i in range(lookback, len(data))])
    targets = data[lookback:].copy()
    return windows, targets
