"""
Declarative overlay primitives.

Every primitive carries a deterministic ``key`` so the reconciler can diff
the desired set against what is already rendered. Primitives are frozen;
two primitives with the same key and different fields mean "update".
"""

from dataclasses import asdict, dataclass
from typing import Union

LINE_SOLID = 0
LINE_DOTTED = 1
LINE_DASHED = 2


@dataclass(frozen=True)
class PriceLine:
    """Horizontal line at a price across the whole chart."""
    key: str
    price: float
    color: str
    title: str = ""
    line_width: int = 2
    line_style: int = LINE_SOLID
    axis_label_visible: bool = True

    kind = "price_line"

    def to_payload(self) -> dict:
        return {"kind": self.kind, **asdict(self)}


@dataclass(frozen=True)
class Segment:
    """Line segment between two (time, price) anchors."""
    key: str
    start_time: int
    start_price: float
    end_time: int
    end_price: float
    color: str
    line_width: int = 2
    line_style: int = LINE_SOLID

    kind = "segment"

    def to_payload(self) -> dict:
        return {"kind": self.kind, **asdict(self)}


@dataclass(frozen=True)
class Zone:
    """Filled band between ``base_price`` and ``price`` over a time range."""
    key: str
    base_price: float
    price: float
    start_time: int
    end_time: int
    fill_color: str

    kind = "zone"

    def to_payload(self) -> dict:
        return {"kind": self.kind, **asdict(self)}


OverlayPrimitive = Union[PriceLine, Segment, Zone]
