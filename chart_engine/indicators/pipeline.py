"""
Indicator pipeline: recompute every enabled indicator over a chart representation.

Each indicator is computed on a private DataFrame copy with ``close``
replaced by the configured price source, then shifted by its offset and
filtered by its visibility flags. One failing indicator never blocks the
others.
"""

import logging
from typing import Dict, Iterable, Optional

from chart_engine.config.indicator_spec import IndicatorSpecBase
from chart_engine.core.exceptions import IndicatorError
from chart_engine.indicators import bands, levels, moving_average, oscillators, trend  # noqa: F401 (registration)
from chart_engine.indicators.base import (
    IndicatorRegistry,
    apply_offset,
    apply_price_source,
    candles_to_frame,
    filter_visible,
)
from chart_engine.models.chart import ChartRepresentation
from chart_engine.models.indicator_series import IndicatorSeries
from chart_engine.utils.logger import log_execution_time


class IndicatorPipeline:
    """
    Computes IndicatorSeries for a list of specs.

    Usage:
        pipeline = IndicatorPipeline()
        series_by_id = pipeline.compute_all(representation, specs)
    """

    def __init__(self, registry: Optional[IndicatorRegistry] = None):
        self._registry = registry or IndicatorRegistry.get_instance()
        self.logger = logging.getLogger(__name__)

    def compute(
        self,
        representation: ChartRepresentation,
        spec: IndicatorSpecBase,
        frame=None,
    ) -> IndicatorSeries:
        """
        Compute one indicator.

        Raises:
            IndicatorError: If no compute function is registered for the type
        """
        compute_fn = self._registry.get(spec.type)
        if compute_fn is None:
            raise IndicatorError(
                f"No indicator registered for type '{spec.type}'. "
                f"Available: {self._registry.available()}"
            )

        if frame is None:
            frame = candles_to_frame(representation.candles)
        source_frame = apply_price_source(frame, spec.price_source)
        output = compute_fn(spec, source_frame)

        points = apply_offset(output.points, spec.offset)
        points = filter_visible(points, spec.visibility)

        return IndicatorSeries(
            indicator_id=spec.id,
            indicator_type=spec.type,
            display_type=spec.display_type,
            pane=spec.pane,
            points=tuple(points),
            threshold_levels=spec.threshold_levels,
            horizontal_levels=tuple(output.horizontal_levels),
            style=spec.style.model_dump(),
        )

    def compute_all(
        self,
        representation: ChartRepresentation,
        specs: Iterable[IndicatorSpecBase],
    ) -> Dict[str, IndicatorSeries]:
        """
        Recompute all enabled specs from scratch.

        Returns:
            Series keyed by spec id, in spec order. Specs that fail are logged
            and omitted.
        """
        specs = [spec for spec in specs if spec.enabled]
        results: Dict[str, IndicatorSeries] = {}
        frame = candles_to_frame(representation.candles)

        with log_execution_time(f"indicators[{representation.instrument}/{representation.timeframe}]"):
            for spec in specs:
                try:
                    results[spec.id] = self.compute(representation, spec, frame)
                except Exception as e:
                    self.logger.error(
                        "Indicator %s (%s) failed: %s", spec.id, spec.type, e, exc_info=True
                    )

        self.logger.debug(
            "Computed %d/%d indicators over %d bars",
            len(results), len(specs), len(representation),
        )
        return results
