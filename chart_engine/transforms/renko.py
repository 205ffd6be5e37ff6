"""
Renko transform.

Walks closes against a running reference price. Every full brick of movement
emits one synthetic bar ``brick_size`` tall and advances the reference by
one brick. Brick prices are snapped to ``PRICE_DECIMALS`` so heights never
drift: ``round(abs(close - open), PRICE_DECIMALS) == brick_size``. Bars
carry synthetic times from a counter (max(candle.time, previous + 1)) so
times stay strictly increasing even when one candle produces several
bricks.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from chart_engine.models.candle import Candle

# Guards floor() against 0.0010 / 0.0005 = 1.9999999
_EPSILON = 1e-9
# Brick prices live on this decimal grid; heights are exact at this precision
PRICE_DECIMALS = 10


class RenkoParams(BaseModel):
    """Pydantic schema for Renko parameters."""
    brick_size: float = Field(0.0005, gt=0, description="Brick height in price units")
    fallback_to_raw: bool = Field(False, description="Return raw candles when no brick forms")


@dataclass(frozen=True)
class RenkoState:
    """Running reference price, last synthetic time, and volume since last brick."""

    reference: float
    last_time: Optional[int] = None
    pending_volume: float = 0.0

    @classmethod
    def seed(cls, first: Candle) -> "RenkoState":
        return cls(reference=round(first.close, PRICE_DECIMALS))


def _next_time(candle_time: int, last_time: Optional[int]) -> int:
    if last_time is None:
        return candle_time
    return max(candle_time, last_time + 1)


def renko_step(
    state: RenkoState, candle: Candle, brick_size: float
) -> Tuple[RenkoState, List[Candle]]:
    """Fold one candle close; returns the new state and any bricks emitted."""
    volume = state.pending_volume + candle.volume
    reference = round(state.reference, PRICE_DECIMALS)
    diff = candle.close - reference
    count = int(math.floor(abs(diff) / brick_size + _EPSILON))
    if count == 0:
        return RenkoState(state.reference, state.last_time, volume), []

    direction = 1 if diff > 0 else -1
    last_time = state.last_time
    bricks: List[Candle] = []
    for _ in range(count):
        brick_open = reference
        brick_close = round(reference + direction * brick_size, PRICE_DECIMALS)
        last_time = _next_time(candle.time, last_time)
        bricks.append(
            Candle(
                time=last_time,
                open=brick_open,
                high=max(brick_open, brick_close),
                low=min(brick_open, brick_close),
                close=brick_close,
                volume=volume / count,
                is_closed=True,
            )
        )
        reference = brick_close

    return RenkoState(reference=reference, last_time=last_time), bricks


def to_renko(candles: Sequence[Candle], params: Optional[RenkoParams] = None) -> List[Candle]:
    """Convert a raw candle series to Renko bricks."""
    params = params or RenkoParams()
    if not candles:
        return []

    state = RenkoState.seed(candles[0])
    bricks: List[Candle] = []
    for candle in candles:
        state, emitted = renko_step(state, candle, params.brick_size)
        bricks.extend(emitted)

    if not bricks and params.fallback_to_raw:
        return [c.copy() for c in candles]
    return bricks
