"""
Free-hand drawing models
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

FIBONACCI_RATIOS: Tuple[float, ...] = (0.0, 0.236, 0.382, 0.5, 0.618, 0.786, 1.0)


class DrawingTool(Enum):
    """Drawing tools offered by the toolbar."""

    TREND_LINE = "trend-line"
    HORIZONTAL_LINE = "horizontal-line"
    FIBONACCI = "fibonacci"

    @property
    def required_points(self) -> int:
        """Anchor clicks needed before the drawing commits."""
        if self is DrawingTool.HORIZONTAL_LINE:
            return 1
        return 2


@dataclass(frozen=True)
class AnchorPoint:
    """Chart coordinate: candle time (epoch seconds) and price."""

    time: int
    price: float


@dataclass(frozen=True)
class Drawing:
    """
    Committed drawing.

    Attributes:
        id: Drawing identifier
        tool: Tool that produced it
        points: One or two anchors, depending on tool
        color: Stroke color
        line_width: Stroke width
        line_style: 0 solid, 1 dotted, 2 dashed
    """

    id: str
    tool: DrawingTool
    points: Tuple[AnchorPoint, ...]
    color: str = "#2962ff"
    line_width: int = 2
    line_style: int = 0

    def __post_init__(self) -> None:
        if len(self.points) != self.tool.required_points:
            raise ValueError(
                f"{self.tool.value} requires {self.tool.required_points} point(s), "
                f"got {len(self.points)}"
            )

    def fibonacci_levels(self) -> Tuple[Tuple[float, float], ...]:
        """(ratio, price) pairs for a Fibonacci retracement."""
        if self.tool is not DrawingTool.FIBONACCI:
            return ()
        start, end = self.points
        diff = end.price - start.price
        return tuple((ratio, start.price + diff * ratio) for ratio in FIBONACCI_RATIOS)
