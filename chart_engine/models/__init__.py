"""
Data models package
"""

from .candle import Candle
from .chart import ChartRepresentation, ChartType
from .drawing import AnchorPoint, Drawing, DrawingTool, FIBONACCI_RATIOS
from .indicator_series import HorizontalLevel, IndicatorPoint, IndicatorSeries
from .position import PendingOrder, Position
from .signal import Signal, SignalType
from .tick import Tick

__all__ = [
    "Candle",
    "ChartRepresentation",
    "ChartType",
    "AnchorPoint",
    "Drawing",
    "DrawingTool",
    "FIBONACCI_RATIOS",
    "HorizontalLevel",
    "IndicatorPoint",
    "IndicatorSeries",
    "PendingOrder",
    "Position",
    "Signal",
    "SignalType",
    "Tick",
]
