"""
Chart engine orchestration.

Wires the candle aggregator, chart-type transform, indicator pipeline,
signal scheduler and overlay layer for one active (instrument, timeframe)
and pushes every result to a render sink.
"""

import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from chart_engine.config.display import DisplayPreferences
from chart_engine.config.indicator_spec import IndicatorSpecBase, parse_indicator_specs
from chart_engine.config.strategy_spec import StrategySpec, parse_strategy_specs
from chart_engine.core.candle_aggregator import CandleAggregator, TickOutcome
from chart_engine.core.exceptions import ChartEngineError, DataLoadError, RenderDisposedError
from chart_engine.data.base import HistoricalCandleSource, PriceStream
from chart_engine.indicators.pipeline import IndicatorPipeline
from chart_engine.models.chart import ChartRepresentation, ChartType
from chart_engine.models.drawing import Drawing
from chart_engine.models.indicator_series import IndicatorSeries
from chart_engine.models.position import PendingOrder, Position
from chart_engine.models.signal import Signal
from chart_engine.models.tick import Tick
from chart_engine.overlays.drawing_tools import DrawingSession
from chart_engine.overlays.layer import OverlayLayer
from chart_engine.overlays.primitives import OverlayPrimitive
from chart_engine.overlays.reconcile import Reconciler, RenderSink
from chart_engine.signals.engine import SignalEngine, SignalMarker, SignalScheduler
from chart_engine.transforms.base import build_representation
from chart_engine.utils.config import EngineConfig

REPRESENTATION_SERIES = "representation"
MARKER_SERIES = "markers"


class EngineState(Enum):
    """Lifecycle of the active chart."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


def indicator_series_key(indicator_id: str) -> str:
    return f"indicator:{indicator_id}"


def _dedupe_by_id(items: List[Any], kind: str, logger: logging.Logger) -> List[Any]:
    """Keep the first item per ``id``, in order."""
    seen: Set[str] = set()
    unique = []
    for item in items:
        if item.id in seen:
            logger.warning("Duplicate %s id %r, skipping", kind, item.id)
            continue
        seen.add(item.id)
        unique.append(item)
    return unique


class ChartEngine:
    """
    Real-time chart engine for one active instrument/timeframe.

    Data flow:
        PriceStream tick → CandleAggregator → (throttled commit)
        → transform → IndicatorPipeline → RenderSink
        raw candles → SignalScheduler (interval) → markers
        positions / orders / drawings / quote → OverlayLayer → Reconciler

    Every switch of instrument or timeframe is a hard reset: the stream is
    detached, every render object torn down, the aggregator reset and the
    history reloaded before anything is recomputed. A failed load leaves
    the engine in ERROR, detached, until ``retry()``.

    Usage:
        engine = ChartEngine(source, stream, sink, config, prefs)
        await engine.open("EUR/USD", "5m", ChartType.CANDLESTICK)
        engine.set_indicator_specs([{"type": "sma", "period": 20}])
        await engine.switch_timeframe("1h")
    """

    def __init__(
        self,
        history_source: HistoricalCandleSource,
        price_stream: PriceStream,
        sink: RenderSink,
        config: Optional[EngineConfig] = None,
        prefs: Optional[DisplayPreferences] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            history_source: Bulk historical candle loader
            price_stream: Live tick feed
            sink: Render surface receiving series data and overlay primitives
            config: Engine configuration (defaults if None)
            prefs: Display toggles; built from ``config.display`` if None
            clock: Monotonic clock for the commit and signal throttles
        """
        self.logger = logging.getLogger(__name__)
        self.config = config or EngineConfig()
        self.prefs = prefs or DisplayPreferences.from_dict(self.config.display)

        self._history_source = history_source
        self._price_stream = price_stream
        self._sink = sink

        agg_cfg = self.config.aggregator
        self.aggregator = CandleAggregator(
            history_source,
            max_candles=agg_cfg.max_candles,
            history_count=agg_cfg.history_count,
            commit_interval=agg_cfg.commit_interval,
            clock=clock,
        )
        self.pipeline = IndicatorPipeline()
        self.scheduler = SignalScheduler(
            SignalEngine(min_history=self.config.signals.min_history),
            interval=self.config.signals.interval,
            on_update=self._publish_markers,
            clock=clock,
        )
        self.layer = OverlayLayer()
        self.reconciler = Reconciler(sink)
        self.drawing_session = DrawingSession(on_commit=self.add_drawing, taken_ids=self._drawing_ids)

        self._state = EngineState.IDLE
        self._error: Optional[str] = None
        self._instrument: Optional[str] = None
        self._timeframe: Optional[str] = None
        self._chart_type = ChartType.CANDLESTICK
        self._subscribed: Optional[str] = None
        self._market_open: Optional[bool] = None

        self._indicator_specs: List[IndicatorSpecBase] = parse_indicator_specs(self.config.indicators)
        self.scheduler.set_strategies(parse_strategy_specs(self.config.strategies))

        self._positions: List[Position] = []
        self._orders: List[PendingOrder] = []
        self._drawings: Dict[str, List[Drawing]] = {}

        self._representation: Optional[ChartRepresentation] = None
        self._indicator_series: Dict[str, IndicatorSeries] = {}
        self._overlays: List[OverlayPrimitive] = []

    # ------------------------------------------------------------------
    # Published state
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def error(self) -> Optional[str]:
        """Message of the last failed load, None otherwise."""
        return self._error

    @property
    def instrument(self) -> Optional[str]:
        return self._instrument

    @property
    def timeframe(self) -> Optional[str]:
        return self._timeframe

    @property
    def market_open(self) -> Optional[bool]:
        """Market status reported by the price stream at the last open; None if not loaded."""
        return self._market_open

    @property
    def chart_type(self) -> ChartType:
        return self._chart_type

    @property
    def representation(self) -> Optional[ChartRepresentation]:
        return self._representation

    @property
    def indicator_series(self) -> Dict[str, IndicatorSeries]:
        return dict(self._indicator_series)

    @property
    def signals(self) -> Dict[str, List[Signal]]:
        return self.scheduler.signals

    @property
    def markers(self) -> List[SignalMarker]:
        return self.scheduler.markers()

    @property
    def overlays(self) -> List[OverlayPrimitive]:
        return list(self._overlays)

    @property
    def indicator_specs(self) -> List[IndicatorSpecBase]:
        return list(self._indicator_specs)

    @property
    def drawings(self) -> List[Drawing]:
        """Committed drawings for the active instrument."""
        if self._instrument is None:
            return []
        return list(self._drawings.get(self._instrument, []))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(
        self,
        instrument: str,
        timeframe: str,
        chart_type: Union[ChartType, str, None] = None,
    ) -> bool:
        """
        Bind to a pair and load it (hard reset).

        Returns:
            True if the chart is READY, False on a failed or superseded load
        """
        if isinstance(chart_type, str):
            chart_type = ChartType.parse(chart_type)
        if chart_type is not None:
            self._chart_type = chart_type

        self._detach()
        self._teardown()

        self._instrument = instrument
        self.aggregator.reset(instrument, timeframe)
        self._timeframe = self.aggregator.timeframe
        generation = self.aggregator.generation
        self._state = EngineState.LOADING
        self._error = None

        try:
            applied = await self.aggregator.load()
        except DataLoadError as e:
            if generation != self.aggregator.generation:
                self.logger.info("Ignoring failure of superseded load for %s/%s", instrument, timeframe)
                return False
            self._state = EngineState.ERROR
            self._error = str(e)
            self.logger.error("Chart load failed for %s/%s: %s", instrument, timeframe, e)
            return False

        if not applied:
            return False

        self._price_stream.subscribe(instrument, self.on_tick)
        self._subscribed = instrument
        self._market_open = self._price_stream.is_market_open(instrument)
        if not self._market_open:
            self.logger.info("Market closed for %s; showing history only", instrument)

        self._state = EngineState.READY
        self._recompute_all()
        self.logger.info(
            "Chart ready: %s/%s %s (%d candles)",
            instrument, self._timeframe, self._chart_type.value, len(self.aggregator.candles),
        )
        return True

    async def retry(self) -> bool:
        """Re-run the last open (manual recovery from ERROR)."""
        if self._instrument is None or self.aggregator.timeframe is None:
            raise ChartEngineError("Nothing to retry: no chart has been opened")
        return await self.open(self._instrument, self.aggregator.timeframe)

    async def switch_timeframe(self, timeframe: str) -> bool:
        if self._instrument is None:
            raise ChartEngineError("Cannot switch timeframe before a chart is opened")
        return await self.open(self._instrument, timeframe)

    async def switch_instrument(self, instrument: str) -> bool:
        if self._timeframe is None:
            raise ChartEngineError("Cannot switch instrument before a chart is opened")
        return await self.open(instrument, self._timeframe)

    def close(self) -> None:
        """Detach from the stream and remove everything from the sink."""
        self._detach()
        self._teardown()
        self._state = EngineState.IDLE

    def set_chart_type(self, chart_type: Union[ChartType, str]) -> None:
        """Switch representation without reloading history."""
        if isinstance(chart_type, str):
            chart_type = ChartType.parse(chart_type)
        if chart_type is self._chart_type:
            return
        self._chart_type = chart_type
        self._clear_series()
        if self._state is EngineState.READY:
            self._recompute_chart()
            self._refresh_overlays()

    # ------------------------------------------------------------------
    # Live updates
    # ------------------------------------------------------------------

    def on_tick(self, tick: Tick) -> TickOutcome:
        """Stream callback: apply the tick, refresh quote lines, commit when due."""
        outcome = self.aggregator.on_tick(tick)
        if tick.instrument != self._instrument:
            return outcome

        if self.prefs.show_bid_ask_lines:
            self._refresh_overlays()
        if outcome.mutated and self.aggregator.should_commit():
            self._recompute_chart()
            if outcome is TickOutcome.APPENDED:
                # New bar changes the zone time range
                self._refresh_overlays()
        return outcome

    def flush(self) -> bool:
        """Publish a pending live mutation immediately, ignoring the throttle."""
        if self._state is not EngineState.READY or not self.aggregator.flush():
            return False
        self._recompute_chart()
        return True

    def tick_signals(self, now: Optional[float] = None) -> bool:
        """Periodic hook for signal recomputation."""
        if self._state is not EngineState.READY:
            return False
        return self.scheduler.tick(self.aggregator.snapshot(), now)

    def refresh_market_status(self) -> Optional[bool]:
        """Re-query the price stream for the open/closed status of the active instrument."""
        if self._subscribed is None:
            return None
        self._market_open = self._price_stream.is_market_open(self._subscribed)
        return self._market_open

    # ------------------------------------------------------------------
    # Configuration inputs
    # ------------------------------------------------------------------

    def set_indicator_specs(self, specs: Iterable[Union[IndicatorSpecBase, Dict[str, Any]]]) -> None:
        """
        Replace the indicator configuration.

        Raw dicts are validated in place (bad ones skipped). Order is kept;
        a repeated id is logged and the later entry dropped.
        """
        merged: List[IndicatorSpecBase] = []
        for spec in specs:
            if isinstance(spec, dict):
                merged.extend(parse_indicator_specs([spec]))
            else:
                merged.append(spec)
        self._indicator_specs = _dedupe_by_id(merged, "indicator", self.logger)
        if self._state is EngineState.READY:
            self._recompute_indicators()

    def set_strategies(self, strategies: Iterable[Union[StrategySpec, Dict[str, Any]]]) -> None:
        """Replace strategies; recomputes now, or clears markers when none is active."""
        merged: List[StrategySpec] = []
        for strategy in strategies:
            if isinstance(strategy, dict):
                merged.extend(parse_strategy_specs([strategy]))
            else:
                merged.append(strategy)
        self.scheduler.set_strategies(_dedupe_by_id(merged, "strategy", self.logger))
        if self._state is EngineState.READY:
            self.scheduler.recompute(self.aggregator.snapshot())
        else:
            self.scheduler.clear()

    def set_positions(self, positions: Iterable[Position]) -> None:
        self._positions = list(positions)
        self._refresh_overlays()

    def set_orders(self, orders: Iterable[PendingOrder]) -> None:
        self._orders = list(orders)
        self._refresh_overlays()

    def set_drawings(self, drawings: Iterable[Drawing]) -> None:
        """Replace the drawings of the active instrument; repeated ids are dropped."""
        if self._instrument is None:
            raise ChartEngineError("Cannot set drawings before a chart is opened")
        self._drawings[self._instrument] = _dedupe_by_id(list(drawings), "drawing", self.logger)
        self._refresh_overlays()

    def add_drawing(self, drawing: Drawing) -> None:
        """
        Raises:
            ChartEngineError: Before a chart is opened
            ValueError: If the active instrument already has a drawing with this id
        """
        if self._instrument is None:
            raise ChartEngineError("Cannot add a drawing before a chart is opened")
        if any(d.id == drawing.id for d in self._drawings.get(self._instrument, [])):
            raise ValueError(f"Drawing id already in use: {drawing.id}")
        self._drawings.setdefault(self._instrument, []).append(drawing)
        self._refresh_overlays()

    def remove_drawing(self, drawing_id: str) -> bool:
        drawings = self._drawings.get(self._instrument or "", [])
        remaining = [d for d in drawings if d.id != drawing_id]
        if len(remaining) == len(drawings):
            return False
        self._drawings[self._instrument] = remaining
        self._refresh_overlays()
        return True

    def set_display_preference(self, name: str, value: bool) -> None:
        """
        Toggle one display preference and rebuild overlays.

        Args:
            name: Attribute name, e.g. 'show_bid_ask_lines'
        """
        setter = getattr(self.prefs, f"set_{name}", None)
        if setter is None:
            raise ValueError(f"Unknown display preference: {name}")
        setter(value)
        self._refresh_overlays()

    # ------------------------------------------------------------------
    # Recompute / publish
    # ------------------------------------------------------------------

    def _recompute_all(self) -> None:
        self._recompute_chart()
        self.scheduler.recompute(self.aggregator.snapshot())
        self._refresh_overlays()

    def _recompute_chart(self) -> None:
        self._representation = build_representation(
            self._instrument,
            self._timeframe,
            self._chart_type,
            self.aggregator.snapshot(),
            self.config.transforms,
        )
        self._set_series(REPRESENTATION_SERIES, self._representation.to_payload())
        self._recompute_indicators()

    def _recompute_indicators(self) -> None:
        if self._representation is None:
            return
        series = self.pipeline.compute_all(self._representation, self._indicator_specs)
        for stale_id in set(self._indicator_series) - set(series):
            self._set_series(indicator_series_key(stale_id), None)
        self._indicator_series = series
        for indicator_id, result in series.items():
            self._set_series(indicator_series_key(indicator_id), result.to_payload())

    def _refresh_overlays(self) -> None:
        if self._instrument is None:
            return
        visible_range: Optional[Tuple[int, int]] = None
        if self._representation is not None and not self._representation.is_empty:
            visible_range = self._representation.time_range

        self._overlays = self.layer.build(
            self._instrument,
            self._positions,
            self._orders,
            self._drawings.get(self._instrument, []),
            self.prefs,
            visible_range=visible_range,
            last_tick=self.aggregator.last_tick,
        )
        self.reconciler.reconcile(self._overlays)

    def _drawing_ids(self) -> Set[str]:
        """Ids of stored drawings across all instruments."""
        return {d.id for drawings in self._drawings.values() for d in drawings}

    def _publish_markers(self, signals: Dict[str, List[Signal]]) -> None:
        self._set_series(MARKER_SERIES, [m.to_dict() for m in self.scheduler.markers()])

    def _set_series(self, kind: str, payload: Any) -> None:
        try:
            self._sink.set_series(kind, payload)
        except RenderDisposedError as e:
            self.logger.debug("Series %s already disposed: %s", kind, e)

    def _clear_series(self) -> None:
        self._set_series(REPRESENTATION_SERIES, None)
        for indicator_id in self._indicator_series:
            self._set_series(indicator_series_key(indicator_id), None)
        self._representation = None
        self._indicator_series = {}

    def _detach(self) -> None:
        self._market_open = None
        if self._subscribed is not None:
            self._price_stream.unsubscribe(self._subscribed)
            self.logger.debug("Detached from %s", self._subscribed)
            self._subscribed = None

    def _teardown(self) -> None:
        """Remove every render object owned by the engine."""
        self.reconciler.teardown()
        self._overlays = []
        self._clear_series()
        self.scheduler.clear()
