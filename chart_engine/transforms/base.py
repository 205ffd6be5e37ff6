"""
Chart-type transform dispatch.

``transform()`` is the single entry point: it maps a raw candle series to the
series for the requested ChartType. Input is never mutated; output candles
are always new objects.
"""

import logging
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from chart_engine.models.candle import Candle
from chart_engine.models.chart import ChartRepresentation, ChartType
from chart_engine.transforms.heikin_ashi import to_heikin_ashi
from chart_engine.transforms.point_figure import PointFigureParams, to_point_figure
from chart_engine.transforms.renko import RenkoParams, to_renko

logger = logging.getLogger(__name__)


class TransformSettings(BaseModel):
    """Per-transform parameters, validated with pydantic."""
    renko: RenkoParams = Field(default_factory=RenkoParams)
    point_figure: PointFigureParams = Field(default_factory=PointFigureParams)


def _copy(candles: Sequence[Candle]) -> List[Candle]:
    return [
        Candle(
            time=c.time, open=c.open, high=c.high, low=c.low,
            close=c.close, volume=c.volume, is_closed=c.is_closed,
        )
        for c in candles
    ]


def transform(
    candles: Sequence[Candle],
    chart_type: ChartType,
    settings: Optional[TransformSettings] = None,
) -> List[Candle]:
    """
    Transform raw candles into the given chart type.

    Args:
        candles: Raw time-ordered candle series
        chart_type: Target representation
        settings: Renko / Point-and-Figure parameters (defaults if None)

    Returns:
        New list of candles (synthetic bars for renko / point_figure)
    """
    settings = settings or TransformSettings()

    if chart_type in (ChartType.CANDLESTICK, ChartType.LINE):
        return _copy(candles)
    if chart_type is ChartType.HEIKIN_ASHI:
        return to_heikin_ashi(candles)
    if chart_type is ChartType.RENKO:
        return to_renko(candles, settings.renko)
    if chart_type is ChartType.POINT_FIGURE:
        return to_point_figure(candles, settings.point_figure)

    raise ValueError(f"Unsupported chart type: {chart_type}")


def build_representation(
    instrument: str,
    timeframe: str,
    chart_type: ChartType,
    candles: Sequence[Candle],
    settings: Optional[TransformSettings] = None,
) -> ChartRepresentation:
    """Transform and wrap the result with its instrument/timeframe/chart type."""
    transformed = transform(candles, chart_type, settings)
    logger.debug(
        "Built %s representation for %s/%s: %d -> %d bars",
        chart_type.value, instrument, timeframe, len(candles), len(transformed),
    )
    return ChartRepresentation(
        instrument=instrument,
        timeframe=timeframe,
        chart_type=chart_type,
        candles=tuple(transformed),
    )
