"""
Chart-type transforms
"""

from .base import TransformSettings, build_representation, transform
from .heikin_ashi import HeikinAshiState, heikin_ashi_step, to_heikin_ashi
from .point_figure import (
    ColumnDirection,
    PointFigureParams,
    PointFigureState,
    point_figure_step,
    to_point_figure,
)
from .renko import RenkoParams, RenkoState, renko_step, to_renko

__all__ = [
    "TransformSettings",
    "build_representation",
    "transform",
    "HeikinAshiState",
    "heikin_ashi_step",
    "to_heikin_ashi",
    "ColumnDirection",
    "PointFigureParams",
    "PointFigureState",
    "point_figure_step",
    "to_point_figure",
    "RenkoParams",
    "RenkoState",
    "renko_step",
    "to_renko",
]
