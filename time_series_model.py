"""
Time Series Forecasting Model

Predicts future production, demand and inventory levels with a small stacked
LSTM network that is trained from scratch for every forecast request.

Pipeline:
- Normalize the history and cut it into lookback windows
- Fit the network for a fixed epoch budget
- Roll the trained network forward one day at a time, feeding every
  prediction back into the window (autoregressive forecasting)
- Attach trend / confidence / seasonality signals to the result

Training state is explicit: train_model() returns a TrainedState and
forecast_series() consumes it. TimeSeriesForecaster wraps that pair as an
Untrained -> Trained state machine and releases its model on exit.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import tensorflow as tf
from tensorflow import keras

from business_rules import FORECAST_RULES
from forecast_signals import Trend, calculate_confidence, calculate_trend, detect_seasonality
from series_preprocessing import (
    InsufficientDataError,
    ScalerState,
    TimePoint,
    create_sequences,
    denormalize,
    normalize,
    series_to_frame,
    series_values,
)


@dataclass(frozen=True)
class ForecastResult:
    """Forecast for one metric. Built once per forecast call."""

    predictions: Tuple[TimePoint, ...]
    confidence: float
    trend: Trend
    seasonality: bool

    def to_frame(self) -> pd.DataFrame:
        return series_to_frame(self.predictions)

    @property
    def mean_prediction(self) -> float:
        if not self.predictions:
            return 0.0
        return float(np.mean([point.value for point in self.predictions]))


@dataclass(frozen=True)
class TrainedState:
    """Everything a forecast needs from training: the fitted model and its scaler."""

    model: keras.Model
    scaler: ScalerState
    lookback: int


class ForecasterState(str, Enum):
    UNTRAINED = "untrained"
    TRAINED = "trained"
    DISPOSED = "disposed"


# ===== MODEL CONSTRUCTION & TRAINING =====

def build_model(lookback: int) -> keras.Model:
    """
    Build and compile the stacked LSTM.

    Layers: LSTM(50, full sequence) -> Dropout(0.2) -> LSTM(50, final state)
    -> Dropout(0.2) -> Dense(1, linear). MSE loss, Adam(0.001), MAE metric.
    """
    units = FORECAST_RULES["lstm_units"]
    dropout = FORECAST_RULES["dropout_rate"]

    model = keras.Sequential([
        keras.Input(shape=(lookback, 1)),
        keras.layers.LSTM(units, return_sequences=True),
        keras.layers.Dropout(dropout),
        keras.layers.LSTM(units, return_sequences=False),
        keras.layers.Dropout(dropout),
        keras.layers.Dense(1),
    ])

    model.compile(
        optimizer=keras.optimizers.Adam(learning_rate=FORECAST_RULES["learning_rate"]),
        loss=FORECAST_RULES["loss"],
        metrics=FORECAST_RULES["metrics"],
    )
    return model


def _epoch_logger(logs: list) -> keras.callbacks.Callback:
    every = FORECAST_RULES["log_every_n_epochs"]

    def on_epoch_end(epoch, epoch_logs):
        if epoch % every == 0:
            loss = (epoch_logs or {}).get("loss", float("nan"))
            logs.append(f"INFO: Epoch {epoch}: loss = {loss:.4f}")

    return keras.callbacks.LambdaCallback(on_epoch_end=on_epoch_end)


def train_model(history: Sequence[TimePoint], lookback: Optional[int] = None,
                logs: Optional[list] = None) -> TrainedState:
    """
    Fit a fresh model to a historical series.

    Args:
        history: Series sorted ascending by timestamp
        lookback: Window length (default FORECAST_RULES['lookback'])
        logs: Optional list to append progress messages to

    Returns:
        TrainedState: fitted model and the scaler captured from history

    Raises:
        InsufficientDataError: fewer than lookback + 1 points
    """
    if lookback is None:
        lookback = FORECAST_RULES["lookback"]
    if logs is None:
        logs = []

    values = series_values(history)
    if len(values) == 0:
        raise InsufficientDataError(lookback, 0)

    normalized, data_min, data_max = normalize(values)
    scaler = ScalerState(min=data_min, max=data_max)

    windows, targets = create_sequences(normalized, lookback)
    if len(windows) == 0:
        raise InsufficientDataError(lookback, len(values))

    # A single example cannot be split into train and validation sets
    validation_split = FORECAST_RULES["validation_split"] if len(windows) >= 2 else 0.0

    x_train = windows.reshape((len(windows), lookback, 1)).astype(np.float32)
    y_train = targets.reshape((-1, 1)).astype(np.float32)

    logs.append(f"INFO: Training on {len(windows)} windows (lookback={lookback}, "
                f"epochs={FORECAST_RULES['epochs']})")

    model = build_model(lookback)
    model.fit(
        x_train,
        y_train,
        epochs=FORECAST_RULES["epochs"],
        batch_size=FORECAST_RULES["batch_size"],
        validation_split=validation_split,
        verbose=0,
        callbacks=[_epoch_logger(logs)],
    )

    return TrainedState(model=model, scaler=scaler, lookback=lookback)


# ===== ITERATIVE FORECASTING =====

def seed_window(state: TrainedState, history: Sequence[TimePoint]) -> List[float]:
    """
    Last `lookback` history values, min-max scaled over the history passed in.

    The history is scaled by its own min/max, not the trained scaler; the
    trained scaler is only used to map predictions back. The two agree when
    the forecaster forecasts the series it was trained on.
    """
    values = series_values(history)
    if len(values) < state.lookback:
        raise InsufficientDataError(state.lookback, len(values))

    normalized, _, _ = normalize(values)
    return normalized[-state.lookback:].tolist()


def predict_next(state: TrainedState, window: Sequence[float]) -> float:
    """Run one forward pass on a normalized window and return the next normalized value."""
    input_tensor = tf.constant(np.asarray(window, dtype=np.float32).reshape((1, len(window), 1)))
    output_tensor = state.model(input_tensor, training=False)
    return float(output_tensor.numpy()[0, 0])


def build_forecast_result(state: TrainedState, history: Sequence[TimePoint],
                          normalized_predictions: Sequence[float]) -> ForecastResult:
    """
    Denormalize predictions as one batch and attach signals.

    Trend is read from the predicted values; confidence and seasonality come
    from the historical values.
    """
    predicted_values = denormalize(normalized_predictions, state.scaler.min, state.scaler.max)
    historical_values = series_values(history)

    last_timestamp = pd.Timestamp(history[-1].timestamp)
    predictions = tuple(
        TimePoint(timestamp=last_timestamp + pd.Timedelta(days=index + 1), value=max(0.0, float(value)))
        for index, value in enumerate(predicted_values)
    )

    return ForecastResult(
        predictions=predictions,
        confidence=calculate_confidence(historical_values),
        trend=calculate_trend(predicted_values),
        seasonality=detect_seasonality(historical_values),
    )


def _check_steps(steps: int):
    if steps < 1:
        raise ValueError(f"Forecast steps must be at least 1 (got {steps})")


def forecast_series(state: TrainedState, history: Sequence[TimePoint], steps: int = 30) -> ForecastResult:
    """
    Autoregressive multi-step forecast.

    Each prediction is appended to the window and the oldest value dropped,
    so later steps depend on earlier predicted values.
    """
    _check_steps(steps)
    window = seed_window(state, history)
    predictions = []

    for _ in range(steps):
        next_value = predict_next(state, window)
        predictions.append(next_value)
        window = window[1:] + [next_value]

    return build_forecast_result(state, history, predictions)


# ===== FORECASTER (SCOPED RESOURCE) =====

class TimeSeriesForecaster:
    """
    Owns one model/scaler pair for one metric.

    Use as a context manager so the model is released on every exit path:

        with TimeSeriesForecaster() as forecaster:
            result = forecaster.forecast(history, steps=30)

    Instances must not be shared between tasks.
    """

    def __init__(self, lookback: Optional[int] = None, logs: Optional[list] = None):
        self.lookback = lookback if lookback is not None else FORECAST_RULES["lookback"]
        self.logs = logs if logs is not None else []
        self._trained: Optional[TrainedState] = None
        self._status = ForecasterState.UNTRAINED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.dispose()
        return False

    @property
    def status(self) -> ForecasterState:
        return self._status

    @property
    def trained_state(self) -> Optional[TrainedState]:
        return self._trained

    def _ensure_usable(self):
        if self._status is ForecasterState.DISPOSED:
            raise RuntimeError("TimeSeriesForecaster has been disposed")

    def _set_trained(self, state: TrainedState):
        self._trained = state
        self._status = ForecasterState.TRAINED

    def train(self, history: Sequence[TimePoint]) -> TrainedState:
        self._ensure_usable()
        self._set_trained(train_model(history, self.lookback, self.logs))
        return self._trained

    def forecast(self, history: Sequence[TimePoint], steps: int = 30) -> ForecastResult:
        """Forecast `steps` days ahead, training on `history` first if untrained."""
        self._ensure_usable()
        _check_steps(steps)
        if self._status is ForecasterState.UNTRAINED:
            self.train(history)
        return forecast_series(self._trained, history, steps)

    async def train_async(self, history: Sequence[TimePoint], executor=None) -> TrainedState:
        self._ensure_usable()
        loop = asyncio.get_running_loop()
        state = await loop.run_in_executor(executor, train_model, history, self.lookback, self.logs)
        self._set_trained(state)
        return state

    async def forecast_async(self, history: Sequence[TimePoint], steps: int = 30,
                             executor=None) -> ForecastResult:
        """
        Same result as forecast(), but training and every inference step run on
        `executor` and yield to the event loop in between.
        """
        self._ensure_usable()
        _check_steps(steps)
        if self._status is ForecasterState.UNTRAINED:
            await self.train_async(history, executor)

        loop = asyncio.get_running_loop()
        state = self._trained
        window = seed_window(state, history)
        predictions = []

        for _ in range(steps):
            next_value = await loop.run_in_executor(executor, predict_next, state, window)
            predictions.append(next_value)
            window = window[1:] + [next_value]

        return build_forecast_result(state, history, predictions)

    def dispose(self):
        """Release the model. Safe to call more than once."""
        self._trained = None
        self._status = ForecasterState.DISPOSED
