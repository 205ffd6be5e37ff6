"""
Indicator output models
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class IndicatorPoint:
    """
    One output sample.

    Single-line indicators use the key 'value'; multi-line indicators use
    their sub-line names ('upper', 'middle', 'lower', 'macd', 'signal', ...).
    """

    time: int
    values: Dict[str, float]

    @property
    def value(self) -> float:
        """Primary value for single-line indicators."""
        return self.values["value"]


@dataclass(frozen=True)
class HorizontalLevel:
    """Auto-detected support/resistance level spanning a time range."""

    price: float
    kind: str  # 'support' or 'resistance'
    touches: int
    start_time: int
    end_time: int


@dataclass(frozen=True)
class IndicatorSeries:
    """
    Output of one IndicatorSpec over a chart representation.

    Attributes:
        indicator_id: Owning spec id
        indicator_type: Spec kind ('sma', 'macd', ...)
        display_type: 'overlay' or 'oscillator'
        pane: Placement; 'main' for overlays, 'osc:<id>' for oscillators
        points: Time-ordered samples (shorter than input by warm-up)
        threshold_levels: Reference lines for oscillators (e.g. RSI 70/30)
        horizontal_levels: Support/resistance levels (S/R indicator only)
        style: Style dict forwarded to the render sink
    """

    indicator_id: str
    indicator_type: str
    display_type: str
    pane: str
    points: Tuple[IndicatorPoint, ...] = ()
    threshold_levels: Dict[str, float] = field(default_factory=dict)
    horizontal_levels: Tuple[HorizontalLevel, ...] = ()
    style: Dict[str, object] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def line_names(self) -> List[str]:
        """Sub-line names present in the series (ordered by first appearance)."""
        names: List[str] = []
        for point in self.points:
            for name in point.values:
                if name not in names:
                    names.append(name)
        return names

    def line(self, name: str = "value") -> List[Tuple[int, float]]:
        """(time, value) pairs for one sub-line."""
        return [(p.time, p.values[name]) for p in self.points if name in p.values]

    def to_payload(self) -> dict:
        """Render-sink payload."""
        return {
            "id": self.indicator_id,
            "type": self.indicator_type,
            "display_type": self.display_type,
            "pane": self.pane,
            "points": [{"time": p.time, **p.values} for p in self.points],
            "threshold_levels": dict(self.threshold_levels),
            "horizontal_levels": [
                {
                    "price": level.price,
                    "kind": level.kind,
                    "touches": level.touches,
                    "start_time": level.start_time,
                    "end_time": level.end_time,
                }
                for level in self.horizontal_levels
            ],
            "style": dict(self.style),
        }
