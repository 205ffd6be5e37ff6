"""
Interactive drawing session (toolbar state machine).

    idle --select_tool--> collecting --click x required_points--> commit --> idle

Two-point tools (trend line, Fibonacci) commit on the second click, the
horizontal line on the first. A commit resets both the pending points and
the active tool. Clicks with no active tool are ignored.
"""

import itertools
import logging
from typing import Callable, Collection, List, Optional, Union

from chart_engine.models.drawing import AnchorPoint, Drawing, DrawingTool
from chart_engine.overlays.primitives import LINE_DASHED, LINE_SOLID

DEFAULT_DRAWING_COLOR = "#2962ff"


class DrawingSession:
    """
    Collects anchor clicks for the active tool and emits committed Drawings.

    Usage:
        session = DrawingSession(on_commit=engine.add_drawing)
        session.select_tool("fibonacci")
        session.click(t1, p1)
        drawing = session.click(t2, p2)   # committed, tool reset to None
    """

    def __init__(
        self,
        on_commit: Optional[Callable[[Drawing], None]] = None,
        taken_ids: Optional[Callable[[], Collection[str]]] = None,
    ):
        """
        Args:
            on_commit: Called with each committed Drawing
            taken_ids: Ids already in use (e.g. restored drawings); new ids skip them
        """
        self._on_commit = on_commit
        self._taken_ids = taken_ids
        self._counter = itertools.count(1)
        self._active_tool: Optional[DrawingTool] = None
        self._points: List[AnchorPoint] = []
        self.logger = logging.getLogger(__name__)

    @property
    def active_tool(self) -> Optional[DrawingTool]:
        return self._active_tool

    @property
    def pending_points(self) -> List[AnchorPoint]:
        return list(self._points)

    def select_tool(self, tool: Union[DrawingTool, str, None]) -> None:
        """Activate a tool (or None to deselect). Pending points are discarded."""
        if isinstance(tool, str):
            tool = DrawingTool(tool)
        self._active_tool = tool
        self._points = []

    def cancel(self) -> None:
        self._active_tool = None
        self._points = []

    def click(self, time: Optional[int], price: Optional[float]) -> Optional[Drawing]:
        """
        Register an anchor click.

        Returns:
            The committed Drawing when this click completes it, else None
        """
        if self._active_tool is None:
            self.logger.debug("Click ignored: no active drawing tool")
            return None
        if time is None or price is None:
            self.logger.debug("Click ignored: missing time or price")
            return None

        self._points.append(AnchorPoint(time=int(time), price=float(price)))
        if len(self._points) < self._active_tool.required_points:
            return None

        drawing = self._build(self._active_tool, tuple(self._points))
        self._active_tool = None
        self._points = []
        self.logger.info("Committed %s drawing %s", drawing.tool.value, drawing.id)
        if self._on_commit is not None:
            self._on_commit(drawing)
        return drawing

    def _next_id(self) -> str:
        taken = self._taken_ids() if self._taken_ids is not None else ()
        while True:
            drawing_id = f"drawing_{next(self._counter)}"
            if drawing_id not in taken:
                return drawing_id

    def _build(self, tool: DrawingTool, points) -> Drawing:
        drawing_id = self._next_id()
        if tool is DrawingTool.FIBONACCI:
            return Drawing(
                id=drawing_id, tool=tool, points=points,
                color=DEFAULT_DRAWING_COLOR, line_width=1, line_style=LINE_DASHED,
            )
        return Drawing(
            id=drawing_id, tool=tool, points=points,
            color=DEFAULT_DRAWING_COLOR, line_width=2, line_style=LINE_SOLID,
        )
