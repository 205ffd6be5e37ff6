"""
Market data sources
"""

from .base import HistoricalCandleSource, PriceStream
from .historical import CsvCandleSource, InMemoryCandleSource, ManualPriceStream

__all__ = [
    "HistoricalCandleSource",
    "PriceStream",
    "CsvCandleSource",
    "InMemoryCandleSource",
    "ManualPriceStream",
]
