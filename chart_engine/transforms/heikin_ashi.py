"""
Heikin-Ashi transform.

    haClose[i] = (O + H + L + C) / 4
    haOpen[i]  = (haOpen[i-1] + haClose[i-1]) / 2, seeded from the first
                 real candle's open/close
    haHigh[i]  = max(H, haOpen, haClose)
    haLow[i]   = min(L, haOpen, haClose)

Strictly sequential; implemented as a fold over HeikinAshiState.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from chart_engine.models.candle import Candle


@dataclass(frozen=True)
class HeikinAshiState:
    """Previous HA open/close carried between steps."""

    prev_open: float
    prev_close: float

    @classmethod
    def seed(cls, first: Candle) -> "HeikinAshiState":
        return cls(prev_open=first.open, prev_close=first.close)


def heikin_ashi_step(state: HeikinAshiState, candle: Candle) -> Tuple[HeikinAshiState, Candle]:
    """Fold one real candle into the next HA candle."""
    ha_close = (candle.open + candle.high + candle.low + candle.close) / 4
    ha_open = (state.prev_open + state.prev_close) / 2
    ha_candle = Candle(
        time=candle.time,
        open=ha_open,
        high=max(candle.high, ha_open, ha_close),
        low=min(candle.low, ha_open, ha_close),
        close=ha_close,
        volume=candle.volume,
        is_closed=candle.is_closed,
    )
    return HeikinAshiState(prev_open=ha_open, prev_close=ha_close), ha_candle


def to_heikin_ashi(candles: Sequence[Candle]) -> List[Candle]:
    """Convert a raw candle series to Heikin-Ashi candles."""
    if not candles:
        return []

    state = HeikinAshiState.seed(candles[0])
    result: List[Candle] = []
    for candle in candles:
        state, ha_candle = heikin_ashi_step(state, candle)
        result.append(ha_candle)
    return result
