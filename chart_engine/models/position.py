"""
Position and pending order models supplied by the host
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Position:
    """
    Open position, read-only input for overlay markers.

    Attributes:
        id: Position identifier (used for overlay keys)
        symbol: Instrument
        side: 'long' or 'short'
        entry_price: Average entry price
        quantity: Position size (lots)
        take_profit: Optional take-profit price
        stop_loss: Optional stop-loss price
        unrealized_pnl: Current profit/loss
    """

    id: str
    symbol: str
    side: str  # 'long' or 'short'
    entry_price: float
    quantity: float
    take_profit: Optional[float] = None
    stop_loss: Optional[float] = None
    unrealized_pnl: float = 0.0

    def __post_init__(self) -> None:
        """Validate position parameters."""
        if self.side not in ("long", "short"):
            raise ValueError(f"Side must be 'long' or 'short', got {self.side}")
        if self.quantity <= 0:
            raise ValueError(f"Quantity must be > 0, got {self.quantity}")

    @property
    def is_long(self) -> bool:
        return self.side == "long"


@dataclass(frozen=True)
class PendingOrder:
    """
    Pending limit order, read-only input for overlay markers.

    Attributes:
        id: Order identifier
        symbol: Instrument
        side: 'buy' or 'sell'
        requested_price: Limit price
        quantity: Order size (lots)
    """

    id: str
    symbol: str
    side: str  # 'buy' or 'sell'
    requested_price: float
    quantity: float

    def __post_init__(self) -> None:
        if self.side not in ("buy", "sell"):
            raise ValueError(f"Side must be 'buy' or 'sell', got {self.side}")
        if self.quantity <= 0:
            raise ValueError(f"Quantity must be > 0, got {self.quantity}")
