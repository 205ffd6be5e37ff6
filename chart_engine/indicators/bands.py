"""
Envelope indicators: Bollinger Bands and Keltner Channels
"""

from typing import Dict

import pandas as pd

from chart_engine.indicators.base import IndicatorOutput, frame_to_points, register_indicator
from chart_engine.indicators.moving_average import ema, sma
from chart_engine.indicators.trend import atr


def bollinger_bands(values: pd.Series, period: int, std_dev: float) -> Dict[str, pd.Series]:
    """SMA middle band ± std_dev * population standard deviation."""
    middle = sma(values, period)
    deviation = values.rolling(window=period, min_periods=period).std(ddof=0)
    return {
        "upper": middle + std_dev * deviation,
        "middle": middle,
        "lower": middle - std_dev * deviation,
    }


def keltner_channels(frame: pd.DataFrame, period: int, multiplier: float) -> Dict[str, pd.Series]:
    """EMA middle line ± multiplier * ATR over the same period."""
    middle = ema(frame["close"], period)
    range_ = atr(frame, period)
    return {
        "upper": middle + multiplier * range_,
        "middle": middle,
        "lower": middle - multiplier * range_,
    }


@register_indicator("bb")
def compute_bollinger(spec, frame: pd.DataFrame) -> IndicatorOutput:
    return IndicatorOutput(frame_to_points(frame, bollinger_bands(frame["close"], spec.period, spec.std_dev)))


@register_indicator("keltner")
def compute_keltner(spec, frame: pd.DataFrame) -> IndicatorOutput:
    return IndicatorOutput(frame_to_points(frame, keltner_channels(frame, spec.period, spec.multiplier)))
