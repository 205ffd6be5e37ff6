"""
Candle aggregation: bulk history load plus live tick folding.

Owns the single active CandleSeries for one (instrument, timeframe) pair.
Downstream components read it through ``candles``/``snapshot()`` and never
mutate it.

Live update rule per tick (bucket = floor(ts / width) * width):
    bucket == tail.time  → mutate tail in place (high/low widen, close = mid)
    bucket >  tail.time  → close tail, append new candle at mid, evict oldest
    bucket <  tail.time  → drop (history is never rewritten)

Ordering without locks:
- A generation counter is bumped on every reset; a bulk load that resolves
  after a newer reset is discarded.
- While a load is in flight, ticks for the pair are ignored.
"""

import logging
import time
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple

from chart_engine.core.exceptions import DataLoadError
from chart_engine.core.timeframes import bucket_start, normalize_timeframe, timeframe_seconds
from chart_engine.data.base import HistoricalCandleSource
from chart_engine.models.candle import Candle
from chart_engine.models.tick import Tick

DEFAULT_MAX_CANDLES = 500
DEFAULT_HISTORY_COUNT = 300
DEFAULT_COMMIT_INTERVAL = 1.0


class TickOutcome(Enum):
    """What a tick did to the series."""

    UPDATED = "updated"
    APPENDED = "appended"
    DROPPED_STALE = "dropped_stale"
    IGNORED_LOADING = "ignored_loading"
    IGNORED_INSTRUMENT = "ignored_instrument"
    IGNORED_INACTIVE = "ignored_inactive"

    @property
    def mutated(self) -> bool:
        return self in (TickOutcome.UPDATED, TickOutcome.APPENDED)


def apply_price(
    candles: List[Candle],
    price: float,
    timestamp: float,
    width: int,
    max_candles: int = DEFAULT_MAX_CANDLES,
) -> TickOutcome:
    """
    Fold one price into a sorted candle list in place.

    Shared by the streaming path and ``aggregate_ticks`` so both produce
    identical series.
    """
    start = bucket_start(timestamp, width)

    if not candles:
        candles.append(Candle.opening_at(start, price))
        return TickOutcome.APPENDED

    tail = candles[-1]
    if start == tail.time:
        tail.apply_price(price)
        return TickOutcome.UPDATED

    if start < tail.time:
        return TickOutcome.DROPPED_STALE

    tail.is_closed = True
    candles.append(Candle.opening_at(start, price))
    if len(candles) > max_candles:
        del candles[: len(candles) - max_candles]
    return TickOutcome.APPENDED


def aggregate_ticks(
    ticks: Iterable[Tick], timeframe: str, max_candles: int = DEFAULT_MAX_CANDLES
) -> List[Candle]:
    """Batch aggregation of a tick sequence from scratch."""
    width = timeframe_seconds(timeframe)
    candles: List[Candle] = []
    for tick in ticks:
        apply_price(candles, tick.mid, tick.timestamp, width, max_candles)
    return candles


def normalize_history(candles: Iterable[Candle], max_candles: int) -> List[Candle]:
    """
    Deduplicate by time (later duplicate wins), sort ascending, keep the most
    recent ``max_candles``. Every candle but the newest is marked closed.
    """
    by_time = {}
    for candle in candles:
        by_time[candle.time] = candle
    ordered = [by_time[t] for t in sorted(by_time)][-max_candles:]
    for candle in ordered[:-1]:
        candle.is_closed = True
    if ordered:
        ordered[-1].is_closed = False
    return ordered


class CandleAggregator:
    """
    Tick → OHLCV aggregation for exactly one active (instrument, timeframe).

    Usage:
        aggregator = CandleAggregator(source)
        aggregator.reset("EUR/USD", "1m")
        await aggregator.load()
        outcome = aggregator.on_tick(tick)
        if aggregator.should_commit():
            # propagate downstream
    """

    def __init__(
        self,
        source: HistoricalCandleSource,
        max_candles: int = DEFAULT_MAX_CANDLES,
        history_count: int = DEFAULT_HISTORY_COUNT,
        commit_interval: float = DEFAULT_COMMIT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_candles < 1:
            raise ValueError(f"max_candles must be >= 1, got {max_candles}")
        self._source = source
        self.max_candles = max_candles
        self.history_count = history_count
        self.commit_interval = commit_interval
        self._clock = clock

        self._instrument: Optional[str] = None
        self._timeframe: Optional[str] = None
        self._width: int = 0
        self._candles: List[Candle] = []
        self._generation = 0
        self._loading = False
        self._dirty = False
        self._last_commit: Optional[float] = None
        self.last_tick: Optional[Tick] = None
        self.logger = logging.getLogger(__name__)

    @property
    def instrument(self) -> Optional[str]:
        return self._instrument

    @property
    def timeframe(self) -> Optional[str]:
        return self._timeframe

    @property
    def width(self) -> int:
        return self._width

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def candles(self) -> Tuple[Candle, ...]:
        """Read-only view of the live series (trailing candle may still change)."""
        return tuple(self._candles)

    def snapshot(self) -> Tuple[Candle, ...]:
        """Detached copy of the series, safe from later live mutation."""
        return tuple(c.copy() for c in self._candles)

    def reset(self, instrument: str, timeframe: str) -> None:
        """
        Discard all state and bind to a new pair (hard reset).

        Any in-flight load for the previous generation is invalidated.
        """
        self._timeframe = normalize_timeframe(timeframe)
        self._instrument = instrument
        self._width = timeframe_seconds(self._timeframe)
        self._candles = []
        self._generation += 1
        self._loading = False
        self._dirty = False
        self._last_commit = None
        self.last_tick = None
        self.logger.info(
            "Aggregator reset: %s %s (generation=%d)",
            instrument, self._timeframe, self._generation,
        )

    async def load(self) -> bool:
        """
        Bulk-load recent history for the bound pair.

        Returns:
            True if the result was applied, False if a newer reset made it stale

        Raises:
            DataLoadError: If the historical source fails
        """
        if self._instrument is None or self._timeframe is None:
            raise DataLoadError("Aggregator has no instrument/timeframe bound; call reset() first")

        generation = self._generation
        instrument, timeframe = self._instrument, self._timeframe
        self._loading = True
        try:
            raw = await self._source.get_recent_candles(instrument, timeframe, self.history_count)
        except DataLoadError:
            if generation == self._generation:
                self._loading = False
            raise
        except Exception as e:
            if generation == self._generation:
                self._loading = False
            raise DataLoadError(f"Historical load failed for {instrument}/{timeframe}: {e}") from e

        if generation != self._generation:
            self.logger.info(
                "Discarding stale load for %s/%s (generation %d, current %d)",
                instrument, timeframe, generation, self._generation,
            )
            return False

        self._candles = normalize_history(raw, self.max_candles)
        self._loading = False
        self._dirty = False
        self.logger.info(
            "Loaded %d candles for %s/%s (%d raw)",
            len(self._candles), instrument, timeframe, len(raw),
        )
        return True

    def on_tick(self, tick: Tick) -> TickOutcome:
        """
        Apply a tick to the series. O(1), no I/O.

        The latest tick is always recorded for bid/ask price lines, even when
        the candle update is ignored.
        """
        if self._instrument is None:
            return TickOutcome.IGNORED_INACTIVE
        if tick.instrument != self._instrument:
            return TickOutcome.IGNORED_INSTRUMENT

        self.last_tick = tick
        if self._loading:
            return TickOutcome.IGNORED_LOADING

        outcome = apply_price(
            self._candles, tick.mid, tick.timestamp, self._width, self.max_candles
        )
        if outcome is TickOutcome.DROPPED_STALE:
            self.logger.debug(
                "Dropped stale tick for %s at %.3f (tail=%d)",
                tick.instrument, tick.timestamp, self._candles[-1].time,
            )
        elif outcome.mutated:
            self._dirty = True
        return outcome

    def should_commit(self, now: Optional[float] = None) -> bool:
        """
        Throttle gate for propagating live mutations downstream.

        Returns True at most once per ``commit_interval`` and only when there
        is an uncommitted mutation.
        """
        if not self._dirty:
            return False
        now = self._clock() if now is None else now
        if self._last_commit is not None and now - self._last_commit < self.commit_interval:
            return False
        self._last_commit = now
        self._dirty = False
        return True

    def flush(self) -> bool:
        """Commit a pending mutation regardless of the throttle."""
        if not self._dirty:
            return False
        self._last_commit = self._clock()
        self._dirty = False
        return True
