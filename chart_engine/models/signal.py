"""
Strategy signal model
"""

from dataclasses import dataclass
from enum import Enum


class SignalType(Enum):
    """Directional signal types emitted by strategy rules."""

    STRONG_BUY = "strong_buy"
    BUY = "buy"
    SELL = "sell"
    STRONG_SELL = "strong_sell"

    @property
    def is_buy(self) -> bool:
        return self in (SignalType.BUY, SignalType.STRONG_BUY)

    @property
    def label(self) -> str:
        """Display label, e.g. 'STRONG BUY'."""
        return self.value.replace("_", " ").upper()


@dataclass(frozen=True)
class Signal:
    """
    Advisory marker produced by a strategy rule at a candle time.

    Attributes:
        time: Candle time (epoch seconds) the rule fired on
        signal_type: Direction/intensity of the signal
        strength: Rule strength (configured, or number of matched conditions)
        strategy_id: Owning strategy; markers are keyed by it
        rule_id: Rule that fired
        rule_name: Human-readable rule name
    """

    time: int
    signal_type: SignalType
    strength: int
    strategy_id: str
    rule_id: str = ""
    rule_name: str = ""

    def __post_init__(self) -> None:
        """Validate signal parameters."""
        if self.strength < 0:
            raise ValueError(f"Strength must be >= 0, got {self.strength}")
