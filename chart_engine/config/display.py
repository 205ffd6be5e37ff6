"""
Display preferences for chart overlays.

Injected into the engine and mutated only through the setters below. Each
change invokes ``on_change(prefs)`` so the host can persist however it likes
(the dashboard used localStorage keys, see ``STORAGE_KEYS``).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# attribute name -> persisted key
STORAGE_KEYS: Dict[str, str] = {
    "show_bid_ask_lines": "chart-show-bid-ask",
    "show_price_labels": "chart-show-labels",
    "show_trade_markers": "chart-show-markers",
    "show_tpsl_zones": "chart-show-tpsl-zones",
    "show_tpsl_lines": "chart-show-tpsl-lines",
}


@dataclass
class DisplayPreferences:
    """
    Overlay visibility toggles.

    Attributes:
        show_bid_ask_lines: Bid/ask price lines from the latest tick
        show_price_labels: Axis labels on every price line
        show_trade_markers: Position entry and pending-order lines
        show_tpsl_lines: Take-profit / stop-loss lines
        show_tpsl_zones: Filled TP/SL zones (requires show_tpsl_lines)
        on_change: Persistence callback, called with self after each change
    """

    show_bid_ask_lines: bool = True
    show_price_labels: bool = True
    show_trade_markers: bool = True
    show_tpsl_lines: bool = True
    show_tpsl_zones: bool = True
    on_change: Optional[Callable[["DisplayPreferences"], None]] = field(
        default=None, repr=False, compare=False
    )

    @property
    def zones_active(self) -> bool:
        """Zones render only when TP/SL lines are on as well."""
        return self.show_tpsl_lines and self.show_tpsl_zones

    def set_show_bid_ask_lines(self, value: bool) -> None:
        self._set("show_bid_ask_lines", value)

    def set_show_price_labels(self, value: bool) -> None:
        self._set("show_price_labels", value)

    def set_show_trade_markers(self, value: bool) -> None:
        self._set("show_trade_markers", value)

    def set_show_tpsl_lines(self, value: bool) -> None:
        self._set("show_tpsl_lines", value)

    def set_show_tpsl_zones(self, value: bool) -> None:
        self._set("show_tpsl_zones", value)

    def _set(self, name: str, value: bool) -> None:
        value = bool(value)
        if getattr(self, name) == value:
            return
        setattr(self, name, value)
        logger.debug("Display preference %s -> %s", name, value)
        if self.on_change is not None:
            self.on_change(self)

    def to_dict(self) -> Dict[str, bool]:
        """Persisted form keyed by storage key."""
        return {key: getattr(self, attr) for attr, key in STORAGE_KEYS.items()}

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        on_change: Optional[Callable[["DisplayPreferences"], None]] = None,
    ) -> "DisplayPreferences":
        """
        Restore from persisted form. Accepts storage keys or attribute names;
        missing keys keep their defaults. String values 'true'/'false' are
        accepted since the dashboard stored booleans as strings.
        """
        values: Dict[str, bool] = {}
        for attr, key in STORAGE_KEYS.items():
            raw = data.get(key, data.get(attr))
            if raw is None:
                continue
            if isinstance(raw, str):
                values[attr] = raw.strip().lower() == "true"
            else:
                values[attr] = bool(raw)
        return cls(on_change=on_change, **values)
