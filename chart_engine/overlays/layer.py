"""
Overlay/annotation layer: positions, pending orders, drawings and bid/ask
lines turned into a declarative primitive list.

``OverlayLayer.build`` is pure: same inputs, same primitives, same keys.
The reconciler turns consecutive builds into create/update/delete calls.

Key scheme:
    pos:{id}:entry | pos:{id}:tp | pos:{id}:sl | pos:{id}:tp_zone | pos:{id}:sl_zone
    order:{id}
    drawing:{id} | drawing:{id}:fib:{ratio}
    quote:bid | quote:ask
"""

import logging
from typing import Iterable, List, Optional, Tuple

from chart_engine.config.display import DisplayPreferences
from chart_engine.models.drawing import Drawing, DrawingTool
from chart_engine.models.position import PendingOrder, Position
from chart_engine.models.tick import Tick
from chart_engine.overlays.primitives import (
    LINE_DASHED,
    LINE_SOLID,
    OverlayPrimitive,
    PriceLine,
    Segment,
    Zone,
)

logger = logging.getLogger(__name__)

LONG_COLOR = "#26a69a"
SHORT_COLOR = "#ef5350"
TAKE_PROFIT_COLOR = "#22c55e"
STOP_LOSS_COLOR = "#ef4444"
TAKE_PROFIT_FILL = "rgba(34, 197, 94, 0.15)"
STOP_LOSS_FILL = "rgba(239, 68, 68, 0.15)"
PENDING_ORDER_COLOR = "#fbbf24"
BID_COLOR = "#2962ff"
ASK_COLOR = "#f23645"

# One color per Fibonacci ratio, 0 → 1
FIBONACCI_COLORS = ("#808080", "#FF6B6B", "#4ECDC4", "#45B7D1", "#96CEB4", "#FFEAA7", "#DDA15E")


def _format_quantity(quantity: float) -> str:
    return f"{quantity:g}"


class OverlayLayer:
    """
    Builds overlay primitives for the active instrument.

    Usage:
        layer = OverlayLayer()
        primitives = layer.build("EUR/USD", positions, orders, drawings, prefs,
                                 visible_range=(first_time, last_time), last_tick=tick)
    """

    def build(
        self,
        instrument: str,
        positions: Iterable[Position],
        orders: Iterable[PendingOrder],
        drawings: Iterable[Drawing],
        prefs: DisplayPreferences,
        visible_range: Optional[Tuple[int, int]] = None,
        last_tick: Optional[Tick] = None,
    ) -> List[OverlayPrimitive]:
        """
        Args:
            instrument: Active instrument; positions/orders for others are ignored
            positions: Open positions
            orders: Pending limit orders
            drawings: Committed drawings for this chart
            prefs: Display toggles
            visible_range: (first, last) candle time for zones; None when no candles
            last_tick: Latest quote for bid/ask lines

        Returns:
            Primitives in render order
        """
        labels = prefs.show_price_labels
        primitives: List[OverlayPrimitive] = []

        if prefs.show_trade_markers:
            for position in positions:
                if position.symbol != instrument:
                    continue
                primitives.extend(self._position_primitives(position, prefs, visible_range))

            for order in orders:
                if order.symbol != instrument:
                    continue
                primitives.append(self._order_line(order, labels))

        for drawing in drawings:
            primitives.extend(self.drawing_primitives(drawing, labels))

        if prefs.show_bid_ask_lines and last_tick is not None and last_tick.instrument == instrument:
            primitives.extend(self.quote_lines(last_tick, labels))

        return primitives

    def _position_primitives(
        self,
        position: Position,
        prefs: DisplayPreferences,
        visible_range: Optional[Tuple[int, int]],
    ) -> List[OverlayPrimitive]:
        labels = prefs.show_price_labels
        arrow = "↑" if position.is_long else "↓"
        primitives: List[OverlayPrimitive] = [
            PriceLine(
                key=f"pos:{position.id}:entry",
                price=position.entry_price,
                color=LONG_COLOR if position.is_long else SHORT_COLOR,
                title=f"{arrow} {_format_quantity(position.quantity)} lots",
                line_width=2,
                line_style=LINE_DASHED,
                axis_label_visible=labels,
            )
        ]

        if not prefs.show_tpsl_lines:
            return primitives

        if position.take_profit is not None:
            primitives.append(
                PriceLine(
                    key=f"pos:{position.id}:tp",
                    price=position.take_profit,
                    color=TAKE_PROFIT_COLOR,
                    title="Take Profit",
                    line_style=LINE_SOLID,
                    axis_label_visible=labels,
                )
            )
        if position.stop_loss is not None:
            primitives.append(
                PriceLine(
                    key=f"pos:{position.id}:sl",
                    price=position.stop_loss,
                    color=STOP_LOSS_COLOR,
                    title="Stop Loss",
                    line_style=LINE_SOLID,
                    axis_label_visible=labels,
                )
            )

        if not prefs.zones_active:
            return primitives
        if visible_range is None:
            logger.debug("Skipping TP/SL zones for position %s: no candles", position.id)
            return primitives

        start_time, end_time = visible_range
        if position.take_profit is not None:
            primitives.append(
                Zone(
                    key=f"pos:{position.id}:tp_zone",
                    base_price=position.entry_price,
                    price=position.take_profit,
                    start_time=start_time,
                    end_time=end_time,
                    fill_color=TAKE_PROFIT_FILL,
                )
            )
        if position.stop_loss is not None:
            primitives.append(
                Zone(
                    key=f"pos:{position.id}:sl_zone",
                    base_price=position.entry_price,
                    price=position.stop_loss,
                    start_time=start_time,
                    end_time=end_time,
                    fill_color=STOP_LOSS_FILL,
                )
            )
        return primitives

    @staticmethod
    def _order_line(order: PendingOrder, labels: bool) -> PriceLine:
        return PriceLine(
            key=f"order:{order.id}",
            price=order.requested_price,
            color=PENDING_ORDER_COLOR,
            title=f"{order.side.upper()} LIMIT {_format_quantity(order.quantity)}",
            line_width=2,
            line_style=LINE_DASHED,
            axis_label_visible=labels,
        )

    @staticmethod
    def drawing_primitives(drawing: Drawing, labels: bool = True) -> List[OverlayPrimitive]:
        """Primitives for one committed drawing."""
        if drawing.tool is DrawingTool.TREND_LINE:
            start, end = drawing.points
            return [
                Segment(
                    key=f"drawing:{drawing.id}",
                    start_time=start.time,
                    start_price=start.price,
                    end_time=end.time,
                    end_price=end.price,
                    color=drawing.color,
                    line_width=drawing.line_width,
                    line_style=drawing.line_style,
                )
            ]

        if drawing.tool is DrawingTool.HORIZONTAL_LINE:
            return [
                PriceLine(
                    key=f"drawing:{drawing.id}",
                    price=drawing.points[0].price,
                    color=drawing.color,
                    title="H-Line",
                    line_width=drawing.line_width,
                    line_style=drawing.line_style,
                    axis_label_visible=labels,
                )
            ]

        return [
            PriceLine(
                key=f"drawing:{drawing.id}:fib:{ratio:g}",
                price=price,
                color=color,
                title=f"{ratio * 100:.1f}%",
                line_width=1,
                line_style=LINE_DASHED,
                axis_label_visible=labels,
            )
            for (ratio, price), color in zip(drawing.fibonacci_levels(), FIBONACCI_COLORS)
        ]

    @staticmethod
    def quote_lines(tick: Tick, labels: bool = True) -> List[PriceLine]:
        """Bid and ask lines from the latest tick."""
        return [
            PriceLine(
                key="quote:bid",
                price=tick.bid,
                color=BID_COLOR,
                title=f"BID {tick.bid:.5f}",
                line_width=3,
                axis_label_visible=labels,
            ),
            PriceLine(
                key="quote:ask",
                price=tick.ask,
                color=ASK_COLOR,
                title=f"ASK {tick.ask:.5f}",
                line_width=3,
                axis_label_visible=labels,
            ),
        ]
