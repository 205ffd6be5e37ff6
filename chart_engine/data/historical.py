"""Historical candle sources: in-memory and CSV backed."""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pandas as pd

from chart_engine.core.exceptions import DataLoadError
from chart_engine.data.base import HistoricalCandleSource, PriceStream
from chart_engine.models.candle import Candle
from chart_engine.models.tick import Tick

_CSV_COLUMNS = ["time", "open", "high", "low", "close"]


class InMemoryCandleSource(HistoricalCandleSource):
    """Serves candles from a nested mapping ``{instrument: {timeframe: [candles]}}``.

    Candles are returned as stored (no dedupe/sort), mirroring a remote API
    that may return overlapping ranges.

    Args:
        candle_data: Nested mapping of candles.
        fail_with: Optional exception raised on every request (error-path tests).
    """

    def __init__(
        self,
        candle_data: Dict[str, Dict[str, List[Candle]]],
        fail_with: Optional[Exception] = None,
    ) -> None:
        self._data = candle_data
        self.fail_with = fail_with
        self.request_count = 0
        self.logger = logging.getLogger(__name__)

    async def get_recent_candles(
        self, instrument: str, timeframe: str, count: int = 300
    ) -> List[Candle]:
        self.request_count += 1
        if self.fail_with is not None:
            raise self.fail_with

        candles = self._data.get(instrument, {}).get(timeframe)
        if candles is None:
            raise DataLoadError(f"No historical data available for {instrument}/{timeframe}")

        batch = candles[-count:]
        self.logger.debug(
            "get_recent_candles %s/%s: returned %d candles", instrument, timeframe, len(batch)
        )
        # Copies: the aggregator mutates the trailing candle in place
        return [c.copy() for c in batch]


class CsvCandleSource(HistoricalCandleSource):
    """Reads ``<root>/<instrument>_<timeframe>.csv`` files.

    Instrument slashes are stripped from file names ('EUR/USD' → 'EURUSD').
    Expected columns: time (epoch seconds), open, high, low, close, [volume].
    """

    def __init__(self, root: str) -> None:
        self.root = Path(root)
        self.logger = logging.getLogger(__name__)

    def path_for(self, instrument: str, timeframe: str) -> Path:
        return self.root / f"{instrument.replace('/', '')}_{timeframe}.csv"

    async def get_recent_candles(
        self, instrument: str, timeframe: str, count: int = 300
    ) -> List[Candle]:
        path = self.path_for(instrument, timeframe)
        if not path.exists():
            raise DataLoadError(f"Historical data file not found: {path}")

        try:
            df = pd.read_csv(path)
        except (OSError, pd.errors.ParserError) as e:
            raise DataLoadError(f"Failed to read {path}: {e}") from e

        missing = [col for col in _CSV_COLUMNS if col not in df.columns]
        if missing:
            raise DataLoadError(f"{path} is missing columns: {missing}")

        if "volume" not in df.columns:
            df["volume"] = 0.0
        df = df.tail(count)

        candles = [
            Candle(
                time=int(row.time),
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                volume=float(row.volume),
            )
            for row in df.itertuples(index=False)
        ]
        self.logger.info("Loaded %d candles from %s", len(candles), path)
        return candles


class ManualPriceStream(PriceStream):
    """Push-driven price stream for replays and tests.

    ``push(tick)`` forwards the tick to the instrument's subscriber, if any.
    """

    def __init__(self, market_open: bool = True) -> None:
        self._subscribers: Dict[str, Callable[[Tick], None]] = {}
        self._market_open = market_open
        self.logger = logging.getLogger(__name__)

    @property
    def subscriptions(self) -> List[str]:
        return list(self._subscribers.keys())

    def subscribe(self, instrument: str, callback: Callable[[Tick], None]) -> None:
        self._subscribers[instrument] = callback
        self.logger.debug("Subscribed to %s", instrument)

    def unsubscribe(self, instrument: str) -> None:
        if self._subscribers.pop(instrument, None) is not None:
            self.logger.debug("Unsubscribed from %s", instrument)

    def is_market_open(self, instrument: str) -> bool:
        return self._market_open

    def set_market_open(self, is_open: bool) -> None:
        self._market_open = is_open

    def push(self, tick: Tick) -> bool:
        """Deliver a tick. Returns False when nobody is subscribed to its instrument."""
        callback = self._subscribers.get(tick.instrument)
        if callback is None:
            return False
        callback(tick)
        return True
