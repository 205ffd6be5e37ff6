"""
Price level indicators: classic pivot points and auto support/resistance.

Support/resistance levels come from swing points. A swing low is a low that
no neighbor within ``period // 2`` bars on either side undercuts; a swing
high is symmetric. Swings are only searched at indices
``period <= i < len - period``. Swing prices are bucketed by a tolerance of
``10 * 10**-precision`` and every bucket with enough touches becomes a level
spanning the whole chart.
"""

from typing import Dict, List, Sequence, Tuple

import pandas as pd

from chart_engine.indicators.base import IndicatorOutput, frame_to_points, register_indicator
from chart_engine.models.indicator_series import HorizontalLevel


def pivot_points(frame: pd.DataFrame) -> Dict[str, pd.Series]:
    """Standard pivots for each candle from the previous candle's H/L/C."""
    high = frame["high"].shift(1)
    low = frame["low"].shift(1)
    close = frame["close"].shift(1)

    pivot = (high + low + close) / 3
    return {
        "pivot": pivot,
        "r1": 2 * pivot - low,
        "s1": 2 * pivot - high,
        "r2": pivot + (high - low),
        "s2": pivot - (high - low),
        "r3": high + 2 * (pivot - low),
        "s3": low - 2 * (high - pivot),
    }


def identify_swing_lows(lows: Sequence[float], period: int) -> List[int]:
    """
    Indices of swing lows.

    Args:
        lows: Low prices in time order
        period: Lookback; the comparison window is period // 2 bars each side

    Returns:
        Indices i in [period, len - period) with no lower neighbor in the window
    """
    half = period // 2
    swings: List[int] = []
    for i in range(period, len(lows) - period):
        current = lows[i]
        if all(lows[i - j] >= current and lows[i + j] >= current for j in range(1, half + 1)):
            swings.append(i)
    return swings


def identify_swing_highs(highs: Sequence[float], period: int) -> List[int]:
    """Indices of swing highs; mirror of identify_swing_lows."""
    half = period // 2
    swings: List[int] = []
    for i in range(period, len(highs) - period):
        current = highs[i]
        if all(highs[i - j] <= current and highs[i + j] <= current for j in range(1, half + 1)):
            swings.append(i)
    return swings


def support_resistance_levels(
    frame: pd.DataFrame, period: int, strength: int, precision: int
) -> List[HorizontalLevel]:
    """
    Detect horizontal levels from repeated swing prices.

    Buckets are typed by their first touch (lows are scanned before highs);
    a bucket qualifies with touches >= max(1, strength - 1).
    """
    if frame.empty:
        return []

    tolerance = 10 ** -precision * 10
    lows = frame["low"].tolist()
    highs = frame["high"].tolist()

    # insertion order = discovery order
    buckets: Dict[int, Tuple[str, int]] = {}

    def touch(price: float, kind: str) -> None:
        key = round(price / tolerance)
        existing_kind, touches = buckets.get(key, (kind, 0))
        buckets[key] = (existing_kind, touches + 1)

    for i in identify_swing_lows(lows, period):
        touch(lows[i], "support")
    for i in identify_swing_highs(highs, period):
        touch(highs[i], "resistance")

    start_time = int(frame["time"].iloc[0])
    end_time = int(frame["time"].iloc[-1])
    min_touches = max(1, strength - 1)

    return [
        HorizontalLevel(
            price=round(key * tolerance, precision),
            kind=kind,
            touches=touches,
            start_time=start_time,
            end_time=end_time,
        )
        for key, (kind, touches) in buckets.items()
        if touches >= min_touches
    ]


@register_indicator("pivot")
def compute_pivots(spec, frame: pd.DataFrame) -> IndicatorOutput:
    return IndicatorOutput(frame_to_points(frame, pivot_points(frame)))


@register_indicator("support_resistance")
def compute_support_resistance(spec, frame: pd.DataFrame) -> IndicatorOutput:
    levels = support_resistance_levels(frame, spec.period, spec.strength, spec.precision)
    return IndicatorOutput(horizontal_levels=levels)
