"""
Tick model
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Tick:
    """
    Single bid/ask price update for an instrument. Never persisted.

    Attributes:
        instrument: Instrument symbol (e.g., 'EUR/USD')
        bid: Best bid
        ask: Best ask
        timestamp: Epoch seconds (float allowed)
        mid: Mid price; derived from bid/ask when omitted
        spread: Ask - bid; derived when omitted
    """

    instrument: str
    bid: float
    ask: float
    timestamp: float
    mid: Optional[float] = None
    spread: Optional[float] = None

    def __post_init__(self) -> None:
        if self.ask < self.bid:
            raise ValueError(f"Ask ({self.ask}) must be >= bid ({self.bid})")
        # frozen dataclass: fill derived fields via object.__setattr__
        if self.mid is None:
            object.__setattr__(self, "mid", (self.bid + self.ask) / 2)
        if self.spread is None:
            object.__setattr__(self, "spread", self.ask - self.bid)
