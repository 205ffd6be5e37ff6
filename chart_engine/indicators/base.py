"""
Indicator registry and shared helpers.

Indicator kinds self-register a compute function at import time:

    @register_indicator("sma")
    def compute_sma(spec, frame) -> IndicatorOutput:
        ...

The pipeline dispatches through ``IndicatorRegistry.get()`` only, so the
registry is the single place that maps a spec ``type`` to its math.

Math helpers work on an OHLCV DataFrame (one row per candle, positional
index) and return index-aligned ``pd.Series`` with NaN during warm-up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from chart_engine.models.candle import Candle
from chart_engine.models.indicator_series import HorizontalLevel, IndicatorPoint

logger = logging.getLogger(__name__)

OHLCV_COLUMNS = ["time", "open", "high", "low", "close", "volume"]


@dataclass
class IndicatorOutput:
    """Raw result of one compute function before offset/visibility."""
    points: List[IndicatorPoint] = field(default_factory=list)
    horizontal_levels: List[HorizontalLevel] = field(default_factory=list)


ComputeFn = Callable[..., IndicatorOutput]


class IndicatorRegistry:
    """
    Singleton map from indicator type to compute function.

    Registration happens at import time via @register_indicator; lookups are
    read-only dict access.
    """
    _instance: Optional[IndicatorRegistry] = None

    def __init__(self):
        self._functions: Dict[str, ComputeFn] = {}

    @classmethod
    def get_instance(cls) -> IndicatorRegistry:
        """Get or create singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton for testing."""
        cls._instance = None

    def register(self, name: str, fn: ComputeFn) -> None:
        """Register a compute function. Overwrites if duplicate."""
        self._functions[name] = fn

    def get(self, name: str) -> Optional[ComputeFn]:
        return self._functions.get(name)

    def available(self) -> List[str]:
        return sorted(self._functions)

    def __contains__(self, name: str) -> bool:
        return name in self._functions


def register_indicator(name: str):
    """
    Function decorator: register an indicator compute function.

    Usage:
        @register_indicator("rsi")
        def compute_rsi(spec, frame):
            ...
    """
    def decorator(fn: ComputeFn) -> ComputeFn:
        IndicatorRegistry.get_instance().register(name, fn)
        return fn

    return decorator


# ---------------------------------------------------------------------------
# Frame helpers
# ---------------------------------------------------------------------------

def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """OHLCV DataFrame with a positional index, one row per candle."""
    if not candles:
        return pd.DataFrame(columns=OHLCV_COLUMNS, dtype=float)
    frame = pd.DataFrame(
        [(c.time, c.open, c.high, c.low, c.close, c.volume) for c in candles],
        columns=OHLCV_COLUMNS,
    )
    frame["time"] = frame["time"].astype("int64")
    return frame


def apply_price_source(frame: pd.DataFrame, source: str) -> pd.DataFrame:
    """
    Private copy of ``frame`` with ``close`` replaced by the chosen source.

    high/low/open are left untouched; the caller's frame is never mutated.
    """
    result = frame.copy()
    if source == "close" or frame.empty:
        return result
    if source in ("open", "high", "low"):
        result["close"] = frame[source]
    elif source == "hl2":
        result["close"] = (frame["high"] + frame["low"]) / 2
    elif source == "hlc3":
        result["close"] = (frame["high"] + frame["low"] + frame["close"]) / 3
    elif source == "ohlc4":
        result["close"] = (frame["open"] + frame["high"] + frame["low"] + frame["close"]) / 4
    else:
        raise ValueError(f"Unknown price source: {source}")
    return result


def frame_to_points(
    frame: pd.DataFrame,
    lines: Dict[str, pd.Series],
    required: Optional[Sequence[str]] = None,
) -> List[IndicatorPoint]:
    """
    Convert aligned line series into IndicatorPoints.

    A row is emitted only where every ``required`` line (default: all) has a
    value; other lines are included where they are not NaN.
    """
    if frame.empty or not lines:
        return []

    required = list(required) if required is not None else list(lines)
    mask = np.ones(len(frame), dtype=bool)
    for name in required:
        mask &= lines[name].notna().to_numpy()

    times = frame["time"].to_numpy()
    columns = {name: series.to_numpy(dtype=float) for name, series in lines.items()}
    points: List[IndicatorPoint] = []
    for i in np.flatnonzero(mask):
        values = {
            name: float(arr[i]) for name, arr in columns.items() if not np.isnan(arr[i])
        }
        points.append(IndicatorPoint(time=int(times[i]), values=values))
    return points


def apply_offset(points: Sequence[IndicatorPoint], offset: int) -> List[IndicatorPoint]:
    """
    Alignment shift: positive offset drops the last n points, negative drops
    the first |n|. Times are left as computed.
    """
    if offset > 0:
        return list(points[:-offset]) if offset < len(points) else []
    if offset < 0:
        return list(points[-offset:])
    return list(points)


def filter_visible(points: Sequence[IndicatorPoint], visibility: Dict[str, bool]) -> List[IndicatorPoint]:
    """Remove hidden sub-lines; points left with no values are dropped."""
    hidden = {name for name, shown in visibility.items() if not shown}
    if not hidden:
        return list(points)
    result = []
    for point in points:
        values = {k: v for k, v in point.values.items() if k not in hidden}
        if values:
            result.append(IndicatorPoint(time=point.time, values=values))
    return result
