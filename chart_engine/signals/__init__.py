"""
Strategy signal evaluation
"""

from .conditions import OPERATORS, ConditionEvaluator, OperandResolver
from .engine import (
    SIGNAL_COLORS,
    SignalEngine,
    SignalMarker,
    SignalScheduler,
    marker_size,
    signal_marker,
)

__all__ = [
    "OPERATORS",
    "ConditionEvaluator",
    "OperandResolver",
    "SIGNAL_COLORS",
    "SignalEngine",
    "SignalMarker",
    "SignalScheduler",
    "marker_size",
    "signal_marker",
]
