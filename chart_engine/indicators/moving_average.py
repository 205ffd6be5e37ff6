"""
Moving averages: SMA, EMA, WMA and the EMA-based VWAP approximation
"""

import numpy as np
import pandas as pd

from chart_engine.indicators.base import IndicatorOutput, frame_to_points, register_indicator


def sma(values: pd.Series, period: int) -> pd.Series:
    """Simple moving average; first value at index period-1."""
    return values.rolling(window=period, min_periods=period).mean()


def _ema_array(arr: np.ndarray, period: int) -> np.ndarray:
    out = np.full(len(arr), np.nan)
    if len(arr) < period:
        return out
    alpha = 2 / (period + 1)
    value = arr[:period].mean()
    out[period - 1] = value
    for i in range(period, len(arr)):
        value = (arr[i] - value) * alpha + value
        out[i] = value
    return out


def ema(values: pd.Series, period: int) -> pd.Series:
    """
    Exponential moving average seeded with the SMA of the first ``period``
    values (alpha = 2 / (period + 1)).

    Leading NaNs in ``values`` are skipped, so an EMA of another indicator
    (e.g. the MACD signal line) starts where that indicator starts.
    """
    valid = values.dropna()
    smoothed = pd.Series(_ema_array(valid.to_numpy(dtype=float), period), index=valid.index)
    return smoothed.reindex(values.index)


def wma(values: pd.Series, period: int) -> pd.Series:
    """Linearly weighted moving average, weights 1..period (newest heaviest)."""
    weights = np.arange(1, period + 1, dtype=float)
    total = weights.sum()
    return values.rolling(window=period, min_periods=period).apply(
        lambda window: np.dot(window, weights) / total, raw=True
    )


@register_indicator("sma")
def compute_sma(spec, frame: pd.DataFrame) -> IndicatorOutput:
    return IndicatorOutput(frame_to_points(frame, {"value": sma(frame["close"], spec.period)}))


@register_indicator("ema")
def compute_ema(spec, frame: pd.DataFrame) -> IndicatorOutput:
    return IndicatorOutput(frame_to_points(frame, {"value": ema(frame["close"], spec.period)}))


@register_indicator("wma")
def compute_wma(spec, frame: pd.DataFrame) -> IndicatorOutput:
    return IndicatorOutput(frame_to_points(frame, {"value": wma(frame["close"], spec.period)}))


@register_indicator("vwap")
def compute_vwap(spec, frame: pd.DataFrame) -> IndicatorOutput:
    # Tick volume is not traded volume; plotted as an EMA of the price source
    return IndicatorOutput(frame_to_points(frame, {"value": ema(frame["close"], spec.period)}))
