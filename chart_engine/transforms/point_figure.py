"""
Point-and-Figure transform.

State machine over (direction, running extreme):
- UNDETERMINED resolves on the first >= 1 box move of high above / low below
  the extreme.
- RISING (X column) extends by whole boxes while highs make new boxes;
  reverses to FALLING on a move of >= reversal boxes below the extreme.
- FALLING (O column) is symmetric.

Each extension or reversal emits one bar; bar times use the same synthetic
counter as Renko so they are strictly increasing.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from chart_engine.models.candle import Candle

_EPSILON = 1e-9


class PointFigureParams(BaseModel):
    """Pydantic schema for Point-and-Figure parameters."""
    box_size: float = Field(0.0005, gt=0, description="Box height in price units")
    reversal: int = Field(3, ge=1, le=10, description="Boxes required for a reversal")
    fallback_to_raw: bool = Field(False, description="Return raw candles when no column forms")


class ColumnDirection(Enum):
    UNDETERMINED = "undetermined"
    RISING = "X"
    FALLING = "O"


@dataclass(frozen=True)
class PointFigureState:
    direction: ColumnDirection
    extreme: float
    last_time: Optional[int] = None
    pending_volume: float = 0.0

    @classmethod
    def seed(cls, first: Candle) -> "PointFigureState":
        return cls(direction=ColumnDirection.UNDETERMINED, extreme=first.close)


def _boxes(distance: float, box_size: float) -> int:
    if distance <= 0:
        return 0
    return int(math.floor(distance / box_size + _EPSILON))


def _column(time: int, start: float, end: float, volume: float) -> Candle:
    return Candle(
        time=time,
        open=start,
        high=max(start, end),
        low=min(start, end),
        close=end,
        volume=volume,
        is_closed=True,
    )


def point_figure_step(
    state: PointFigureState, candle: Candle, box_size: float, reversal: int
) -> Tuple[PointFigureState, List[Candle]]:
    """Fold one candle's high/low; returns the new state and any columns emitted."""
    direction = state.direction
    extreme = state.extreme
    last_time = state.last_time
    volume = state.pending_volume + candle.volume
    emitted: List[Candle] = []

    def emit(start: float, end: float) -> None:
        nonlocal last_time, volume
        last_time = candle.time if last_time is None else max(candle.time, last_time + 1)
        emitted.append(_column(last_time, start, end, volume))
        volume = 0.0

    if direction is ColumnDirection.UNDETERMINED:
        if _boxes(candle.high - extreme, box_size) >= 1:
            direction = ColumnDirection.RISING
        elif _boxes(extreme - candle.low, box_size) >= 1:
            direction = ColumnDirection.FALLING

    if direction is ColumnDirection.RISING:
        boxes = _boxes(candle.high - extreme, box_size)
        if boxes > 0:
            new_extreme = extreme + boxes * box_size
            emit(extreme, new_extreme)
            extreme = new_extreme
        down = _boxes(extreme - candle.low, box_size)
        if down >= reversal:
            new_extreme = extreme - down * box_size
            emit(extreme, new_extreme)
            extreme = new_extreme
            direction = ColumnDirection.FALLING

    elif direction is ColumnDirection.FALLING:
        boxes = _boxes(extreme - candle.low, box_size)
        if boxes > 0:
            new_extreme = extreme - boxes * box_size
            emit(extreme, new_extreme)
            extreme = new_extreme
        up = _boxes(candle.high - extreme, box_size)
        if up >= reversal:
            new_extreme = extreme + up * box_size
            emit(extreme, new_extreme)
            extreme = new_extreme
            direction = ColumnDirection.RISING

    return PointFigureState(direction, extreme, last_time, volume), emitted


def to_point_figure(
    candles: Sequence[Candle], params: Optional[PointFigureParams] = None
) -> List[Candle]:
    """Convert a raw candle series to Point-and-Figure columns."""
    params = params or PointFigureParams()
    if not candles:
        return []

    state = PointFigureState.seed(candles[0])
    columns: List[Candle] = []
    for candle in candles:
        state, emitted = point_figure_step(state, candle, params.box_size, params.reversal)
        columns.extend(emitted)

    if not columns and params.fallback_to_raw:
        return [c.copy() for c in candles]
    return columns
