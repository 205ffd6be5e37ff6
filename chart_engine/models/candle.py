"""
Candlestick data model
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class Candle:
    """
    OHLCV candlestick bucket.

    Attributes:
        time: Bucket start in integer epoch seconds (UTC)
        open: Opening price
        high: Highest price in bucket
        low: Lowest price in bucket
        close: Closing/current price
        volume: Volume (tick count for live-built candles)
        is_closed: Whether the bucket has ended; closed candles are immutable
    """

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    is_closed: bool = False

    def __post_init__(self) -> None:
        """Validate price coherence."""
        self.time = int(self.time)
        if self.high < max(self.open, self.close):
            raise ValueError(
                f"High ({self.high}) must be >= max(open={self.open}, close={self.close})"
            )
        if self.low > min(self.open, self.close):
            raise ValueError(
                f"Low ({self.low}) must be <= min(open={self.open}, close={self.close})"
            )
        if self.volume < 0:
            raise ValueError(f"Volume ({self.volume}) cannot be negative")

    @classmethod
    def opening_at(cls, time: int, price: float) -> "Candle":
        """New open candle where open=high=low=close=price."""
        return cls(time=time, open=price, high=price, low=price, close=price, volume=1.0)

    def apply_price(self, price: float) -> None:
        """
        Fold a live price into this open candle.

        Open is unchanged; high/low widen, close follows the price.

        Raises:
            ValueError: If the candle is already closed
        """
        if self.is_closed:
            raise ValueError(f"Candle at {self.time} is closed and cannot be mutated")
        self.high = max(self.high, price)
        self.low = min(self.low, price)
        self.close = price
        self.volume += 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candle":
        return cls(
            time=int(data["time"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            volume=float(data.get("volume") or 0.0),
            is_closed=bool(data.get("is_closed", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }

    def copy(self) -> "Candle":
        """Detached copy including the closed flag."""
        return Candle(self.time, self.open, self.high, self.low, self.close, self.volume, self.is_closed)
