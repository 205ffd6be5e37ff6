"""Abstract interfaces for the engine's market data collaborators.

Two external sources feed the engine: a historical candle source used for the
bulk load on chart init, and a streaming price source that delivers ticks.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, List

if TYPE_CHECKING:
    from chart_engine.models.candle import Candle
    from chart_engine.models.tick import Tick


class HistoricalCandleSource(ABC):
    """Abstract interface for bulk historical candle loading.

    Implementations: InMemoryCandleSource (tests/replay), CsvCandleSource.
    The returned list may contain duplicate or overlapping timestamps; the
    aggregator normalizes it.
    """

    @abstractmethod
    async def get_recent_candles(
        self, instrument: str, timeframe: str, count: int = 300
    ) -> List["Candle"]:
        """Fetch recent candles for chart initialization.

        Args:
            instrument: Instrument symbol (e.g., 'EUR/USD')
            timeframe: Timeframe key (e.g., '1m', '5m', '1h')
            count: Number of candles to retrieve

        Returns:
            List of Candle objects, in any order

        Raises:
            DataLoadError: If the source cannot serve the request
        """
        ...


class PriceStream(ABC):
    """Abstract interface for a live tick feed."""

    @abstractmethod
    def subscribe(self, instrument: str, callback: Callable[["Tick"], None]) -> None:
        """Start delivering ticks for ``instrument`` to ``callback``."""
        ...

    @abstractmethod
    def unsubscribe(self, instrument: str) -> None:
        """Stop delivering ticks for ``instrument``. Idempotent."""
        ...

    @abstractmethod
    def is_market_open(self, instrument: str) -> bool:
        """Market open/closed status for ``instrument``."""
        ...
