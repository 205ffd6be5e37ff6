"""
Trend and volatility indicators: ATR, ADX, Parabolic SAR
"""

import numpy as np
import pandas as pd

from chart_engine.indicators.base import IndicatorOutput, frame_to_points, register_indicator


def true_range(frame: pd.DataFrame) -> pd.Series:
    """True range per candle; NaN at index 0 (no previous close)."""
    prev_close = frame["close"].shift(1)
    ranges = pd.concat(
        [
            frame["high"] - frame["low"],
            (frame["high"] - prev_close).abs(),
            (frame["low"] - prev_close).abs(),
        ],
        axis=1,
    )
    tr = ranges.max(axis=1)
    tr.iloc[:1] = np.nan
    return tr


def atr(frame: pd.DataFrame, period: int) -> pd.Series:
    """
    Wilder ATR: seeded with the mean of the first ``period`` true ranges,
    then atr = (atr * (period - 1) + tr) / period. First value at index period.
    """
    n = len(frame)
    out = np.full(n, np.nan)
    if n < period + 1:
        return pd.Series(out, index=frame.index)

    tr = true_range(frame).to_numpy(dtype=float)
    value = tr[1:period + 1].mean()
    out[period] = value
    for i in range(period + 1, n):
        value = (value * (period - 1) + tr[i]) / period
        out[i] = value
    return pd.Series(out, index=frame.index)


def adx(frame: pd.DataFrame, period: int) -> pd.Series:
    """
    Average Directional Index.

    +DM/-DM and TR are Wilder-smoothed (running sums), DX is derived per
    candle from index period+1, and ADX is the Wilder average of DX with
    the first value at index 2 * period.
    """
    n = len(frame)
    out = np.full(n, np.nan)
    if n < 2 * period + 1:
        return pd.Series(out, index=frame.index)

    high = frame["high"].to_numpy(dtype=float)
    low = frame["low"].to_numpy(dtype=float)
    tr = true_range(frame).to_numpy(dtype=float)[1:]

    up_move = high[1:] - high[:-1]
    down_move = low[:-1] - low[1:]
    plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
    minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)

    smoothed_tr = tr[:period].sum()
    smoothed_plus = plus_dm[:period].sum()
    smoothed_minus = minus_dm[:period].sum()

    dx = []
    for i in range(period, len(tr)):
        smoothed_tr = smoothed_tr - smoothed_tr / period + tr[i]
        smoothed_plus = smoothed_plus - smoothed_plus / period + plus_dm[i]
        smoothed_minus = smoothed_minus - smoothed_minus / period + minus_dm[i]

        plus_di = smoothed_plus / smoothed_tr * 100 if smoothed_tr else 0.0
        minus_di = smoothed_minus / smoothed_tr * 100 if smoothed_tr else 0.0
        di_sum = plus_di + minus_di
        dx.append(abs(plus_di - minus_di) / di_sum * 100 if di_sum else 0.0)

    value = float(np.mean(dx[:period]))
    out[2 * period] = value
    for i in range(period, len(dx)):
        value = (value * (period - 1) + dx[i]) / period
        out[i + period + 1] = value
    return pd.Series(out, index=frame.index)


def parabolic_sar(frame: pd.DataFrame, acceleration: float, maximum: float) -> pd.Series:
    """
    Parabolic SAR. One value per candle from index 1; the initial trend is
    taken from the first two closes.
    """
    n = len(frame)
    out = np.full(n, np.nan)
    if n < 2:
        return pd.Series(out, index=frame.index)

    high = frame["high"].to_numpy(dtype=float)
    low = frame["low"].to_numpy(dtype=float)
    close = frame["close"].to_numpy(dtype=float)

    uptrend = close[1] > close[0]
    sar = low[0] if uptrend else high[0]
    extreme = high[0] if uptrend else low[0]
    af = acceleration

    for i in range(1, n):
        out[i] = sar
        sar = sar + af * (extreme - sar)

        reversed_trend = low[i] < sar if uptrend else high[i] > sar
        if reversed_trend:
            uptrend = not uptrend
            sar = extreme
            extreme = high[i] if uptrend else low[i]
            af = acceleration
        elif uptrend and high[i] > extreme:
            extreme = high[i]
            af = min(af + acceleration, maximum)
        elif not uptrend and low[i] < extreme:
            extreme = low[i]
            af = min(af + acceleration, maximum)

    return pd.Series(out, index=frame.index)


@register_indicator("atr")
def compute_atr(spec, frame: pd.DataFrame) -> IndicatorOutput:
    return IndicatorOutput(frame_to_points(frame, {"value": atr(frame, spec.period)}))


@register_indicator("adx")
def compute_adx(spec, frame: pd.DataFrame) -> IndicatorOutput:
    return IndicatorOutput(frame_to_points(frame, {"value": adx(frame, spec.period)}))


@register_indicator("psar")
def compute_psar(spec, frame: pd.DataFrame) -> IndicatorOutput:
    sar = parabolic_sar(frame, spec.acceleration, spec.maximum)
    return IndicatorOutput(frame_to_points(frame, {"value": sar}))
