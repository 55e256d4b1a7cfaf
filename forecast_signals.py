"""
Forecast Signals Module

Statistical signals derived from a plain numeric series (no model involved):
- Trend classification (second-half vs first-half mean change)
- Confidence score from historical volatility (coefficient of variation)
- Weekly seasonality flag from lag-7 autocorrelation
- Moving average and exponential smoothing helpers for charting
"""

from enum import Enum

import numpy as np

from business_rules import SIGNAL_RULES


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


def calculate_trend(values, change_threshold_pct=None) -> Trend:
    """
    Classify the direction of a series.

    The series is split in two halves (the second half takes the extra point
    when the length is odd) and the percentage change of the second-half mean
    relative to the first-half mean is compared against the threshold.

    Args:
        values: Numeric sequence
        change_threshold_pct: Override for SIGNAL_RULES['trend']['change_threshold_pct']

    Returns:
        Trend: INCREASING, DECREASING or STABLE
    """
    if change_threshold_pct is None:
        change_threshold_pct = SIGNAL_RULES["trend"]["change_threshold_pct"]

    data = np.asarray(values, dtype=np.float64)
    if len(data) < 2:
        return Trend.STABLE

    mid = len(data) // 2
    first_avg = data[:mid].mean()
    second_avg = data[mid:].mean()

    with np.errstate(divide="ignore", invalid="ignore"):
        change = (second_avg - first_avg) / first_avg * 100

    if change > change_threshold_pct:
        return Trend.INCREASING
    if change < -change_threshold_pct:
        return Trend.DECREASING
    return Trend.STABLE


def calculate_confidence(values) -> float:
    """
    Volatility-based confidence: clamp(1 - std / mean, 0, 1).

    Uses the population variance (divide by N). A zero mean is not guarded
    and yields a NaN or infinite ratio before clamping.
    """
    data = np.asarray(values, dtype=np.float64)
    mean = data.mean()
    std_dev = np.sqrt(((data - mean) ** 2).mean())

    with np.errstate(divide="ignore", invalid="ignore"):
        coefficient_of_variation = std_dev / mean

    return float(np.clip(1 - coefficient_of_variation, 0.0, 1.0))


def detect_seasonality(values) -> bool:
    """
    Detect a weekly cycle from the lag-7 autocorrelation.

    Returns False for series shorter than SIGNAL_RULES['seasonality']['min_points'].
    """
    rules = SIGNAL_RULES["seasonality"]
    data = np.asarray(values, dtype=np.float64)
    if len(data) < rules["min_points"]:
        return False

    lag = rules["lag"]
    deviations = data - data.mean()
    correlation = np.sum(deviations[lag:] * deviations[:-lag])
    variance = np.sum(deviations ** 2)

    with np.errstate(divide="ignore", invalid="ignore"):
        autocorrelation = correlation / variance

    return bool(abs(autocorrelation) > rules["autocorrelation_threshold"])


def calculate_moving_average(values, window):
    """
    Trailing simple moving average.

    The first window - 1 points have no full window and are passed through
    unchanged, so the output has the same length as the input.
    """
    if window < 1:
        raise ValueError(f"Moving average window must be at least 1 (got {window})")

    result = []
    for i, value in enumerate(values):
        if i < window - 1:
            result.append(value)
        else:
            result.append(sum(values[i - window + 1:i + 1]) / window)
    return result


def calculate_exponential_smoothing(values, alpha=None):
    """
    Calculate the simple exponential smoothing sequence

    Args:
        values: Array of historical values
        alpha: Smoothing factor (0-1), higher = more weight on recent data

    Returns:
        list: Smoothed values, first value unchanged
    """
    if alpha is None:
        alpha = SIGNAL_RULES["smoothing"]["default_alpha"]

    if len(values) == 0:
        return []

    smoothed = [values[0]]
    for value in values[1:]:
        smoothed.append(alpha * value + (1 - alpha) * smoothed[-1])

    return smoothed
