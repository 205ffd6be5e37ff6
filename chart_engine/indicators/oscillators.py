"""
Oscillators rendered in their own pane: RSI, MACD, Stochastic, Williams %R,
CCI, MFI.

Division-by-zero cases have fixed outputs instead of NaN/inf:
    RSI   zero average loss  → RS = 100
    Stoch flat range         → %K = 50
    %R    flat range         → -50
    CCI   zero mean deviation → 0
    MFI   zero negative flow → divide by 1
"""

from typing import Dict

import numpy as np
import pandas as pd

from chart_engine.indicators.base import IndicatorOutput, frame_to_points, register_indicator
from chart_engine.indicators.moving_average import ema


def rsi(values: pd.Series, period: int) -> pd.Series:
    """
    Wilder RSI. The first window of changes only seeds the averages, so the
    first value lands at index period + 1.
    """
    arr = values.to_numpy(dtype=float)
    out = np.full(len(arr), np.nan)
    changes = np.diff(arr)
    if len(changes) <= period:
        return pd.Series(out, index=values.index)

    gains = np.where(changes > 0, changes, 0.0)
    losses = np.where(changes < 0, -changes, 0.0)
    avg_gain = gains[:period].mean()
    avg_loss = losses[:period].mean()

    for i in range(period, len(changes)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        rs = 100.0 if avg_loss == 0 else avg_gain / avg_loss
        out[i + 1] = 100 - 100 / (1 + rs)
    return pd.Series(out, index=values.index)


def macd(values: pd.Series, fast: int, slow: int, signal: int) -> Dict[str, pd.Series]:
    """MACD line (fast EMA - slow EMA), its SMA-seeded EMA signal, and histogram."""
    macd_line = ema(values, fast) - ema(values, slow)
    signal_line = ema(macd_line, signal)
    return {
        "macd": macd_line,
        "signal": signal_line,
        "histogram": macd_line - signal_line,
    }


def _highest_lowest(frame: pd.DataFrame, period: int):
    highest = frame["high"].rolling(window=period, min_periods=period).max()
    lowest = frame["low"].rolling(window=period, min_periods=period).min()
    return highest, lowest


def stochastic(frame: pd.DataFrame, k_period: int, d_period: int) -> Dict[str, pd.Series]:
    """%K over the k-period high/low range; %D is the SMA of %K."""
    highest, lowest = _highest_lowest(frame, k_period)
    span = highest - lowest
    k = ((frame["close"] - lowest) / span.where(span != 0) * 100).where(span != 0, 50.0)
    k = k.where(highest.notna())
    d = k.rolling(window=d_period, min_periods=d_period).mean()
    return {"k": k, "d": d}


def williams_r(frame: pd.DataFrame, period: int) -> pd.Series:
    """(HH - C) / (HH - LL) * -100."""
    highest, lowest = _highest_lowest(frame, period)
    span = highest - lowest
    wr = ((highest - frame["close"]) / span.where(span != 0) * -100).where(span != 0, -50.0)
    return wr.where(highest.notna())


def cci(frame: pd.DataFrame, period: int) -> pd.Series:
    """(TP - SMA(TP)) / (0.015 * mean deviation)."""
    typical = (frame["high"] + frame["low"] + frame["close"]) / 3
    mean = typical.rolling(window=period, min_periods=period).mean()
    mean_dev = typical.rolling(window=period, min_periods=period).apply(
        lambda window: np.abs(window - window.mean()).mean(), raw=True
    )
    result = ((typical - mean) / (0.015 * mean_dev.where(mean_dev != 0))).where(mean_dev != 0, 0.0)
    return result.where(mean.notna())


def mfi(frame: pd.DataFrame, period: int) -> pd.Series:
    """
    Money Flow Index over ``period`` typical-price changes. Zero volume
    (tick feeds without volume) counts as 1.
    """
    typical = (frame["high"] + frame["low"] + frame["close"]) / 3
    volume = frame["volume"].where(frame["volume"] > 0, 1.0)
    money_flow = typical * volume
    change = typical.diff()

    positive = money_flow.where(change > 0, 0.0).rolling(window=period, min_periods=period).sum()
    negative = money_flow.where(change < 0, 0.0).rolling(window=period, min_periods=period).sum()
    ratio = positive / negative.where(negative != 0, 1.0)
    result = 100 - 100 / (1 + ratio)
    # The first typical price has no previous one to compare against
    result.iloc[:period] = np.nan
    return result


@register_indicator("rsi")
def compute_rsi(spec, frame: pd.DataFrame) -> IndicatorOutput:
    return IndicatorOutput(frame_to_points(frame, {"value": rsi(frame["close"], spec.period)}))


@register_indicator("macd")
def compute_macd(spec, frame: pd.DataFrame) -> IndicatorOutput:
    return IndicatorOutput(frame_to_points(frame, macd(frame["close"], spec.fast, spec.slow, spec.signal)))


@register_indicator("stoch")
def compute_stochastic(spec, frame: pd.DataFrame) -> IndicatorOutput:
    lines = stochastic(frame, spec.k_period, spec.d_period)
    return IndicatorOutput(frame_to_points(frame, lines, required=["k"]))


@register_indicator("williams_r")
def compute_williams_r(spec, frame: pd.DataFrame) -> IndicatorOutput:
    return IndicatorOutput(frame_to_points(frame, {"value": williams_r(frame, spec.period)}))


@register_indicator("cci")
def compute_cci(spec, frame: pd.DataFrame) -> IndicatorOutput:
    return IndicatorOutput(frame_to_points(frame, {"value": cci(frame, spec.period)}))


@register_indicator("mfi")
def compute_mfi(spec, frame: pd.DataFrame) -> IndicatorOutput:
    return IndicatorOutput(frame_to_points(frame, {"value": mfi(frame, spec.period)}))
