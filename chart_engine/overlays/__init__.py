"""
Overlay/annotation layer and render reconciliation
"""

from .drawing_tools import DrawingSession
from .layer import OverlayLayer
from .primitives import LINE_DASHED, LINE_DOTTED, LINE_SOLID, OverlayPrimitive, PriceLine, Segment, Zone
from .reconcile import CreateOp, DeleteOp, Reconciler, RenderSink, UpdateOp, diff_primitives

__all__ = [
    "DrawingSession",
    "OverlayLayer",
    "LINE_DASHED",
    "LINE_DOTTED",
    "LINE_SOLID",
    "OverlayPrimitive",
    "PriceLine",
    "Segment",
    "Zone",
    "CreateOp",
    "DeleteOp",
    "Reconciler",
    "RenderSink",
    "UpdateOp",
    "diff_primitives",
]
