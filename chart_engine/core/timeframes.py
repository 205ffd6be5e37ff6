"""
Timeframe bucket widths and alignment
"""

import math
from typing import Dict

from chart_engine.core.exceptions import ConfigurationError

TIMEFRAME_SECONDS: Dict[str, int] = {
    "1m": 60,
    "5m": 300,
    "15m": 900,
    "30m": 1800,
    "1h": 3600,
    "4h": 14400,
    "1D": 86400,
}

# Dashboard selector values
_ALIASES: Dict[str, str] = {
    "1": "1m",
    "5": "5m",
    "15": "15m",
    "30": "30m",
    "60": "1h",
    "240": "4h",
    "D": "1D",
    "1d": "1D",
}


def normalize_timeframe(timeframe: str) -> str:
    """
    Canonical timeframe key.

    Raises:
        ConfigurationError: If the timeframe is not supported
    """
    key = _ALIASES.get(timeframe, timeframe)
    if key not in TIMEFRAME_SECONDS:
        raise ConfigurationError(
            f"Unsupported timeframe: {timeframe}. Must be one of {list(TIMEFRAME_SECONDS)}"
        )
    return key


def timeframe_seconds(timeframe: str) -> int:
    """Bucket width in seconds."""
    return TIMEFRAME_SECONDS[normalize_timeframe(timeframe)]


def bucket_start(timestamp: float, width: int) -> int:
    """
    Align an epoch timestamp to the start of its bucket.

    Epoch seconds are UTC, so 1D buckets start at UTC midnight.
    """
    return int(math.floor(timestamp / width) * width)
