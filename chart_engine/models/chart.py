"""
Chart representation model
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from chart_engine.models.candle import Candle


class ChartType(Enum):
    """Supported chart representations."""

    CANDLESTICK = "candlestick"
    LINE = "line"
    HEIKIN_ASHI = "heikin_ashi"
    RENKO = "renko"
    POINT_FIGURE = "point_figure"

    @classmethod
    def parse(cls, value: str) -> "ChartType":
        """Accept enum values plus the dashboard's short names ('heikinashi', 'pointfigure')."""
        normalized = value.strip().lower().replace("-", "_")
        aliases = {"heikinashi": "heikin_ashi", "pointfigure": "point_figure", "pnf": "point_figure"}
        return cls(aliases.get(normalized, normalized))


@dataclass(frozen=True)
class ChartRepresentation:
    """
    Candle series plus the transform that produced it.

    Fully recomputed whenever the underlying series or chart type changes.
    """

    instrument: str
    timeframe: str
    chart_type: ChartType
    candles: Tuple[Candle, ...]

    def __len__(self) -> int:
        return len(self.candles)

    @property
    def is_empty(self) -> bool:
        return not self.candles

    @property
    def line_points(self) -> List[Tuple[int, float]]:
        """Close-only (time, value) view used by line charts."""
        return [(c.time, c.close) for c in self.candles]

    @property
    def time_range(self) -> Tuple[int, int]:
        """(first, last) candle time; (0, 0) when empty."""
        if not self.candles:
            return (0, 0)
        return (self.candles[0].time, self.candles[-1].time)

    def to_payload(self) -> List[dict]:
        """Render-sink payload: OHLCV dicts, or time/value dicts for line charts."""
        if self.chart_type is ChartType.LINE:
            return [{"time": t, "value": v} for t, v in self.line_points]
        return [c.to_dict() for c in self.candles]
