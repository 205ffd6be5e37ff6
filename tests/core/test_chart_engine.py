"""
Unit tests for the ChartEngine orchestrator

Tests load/switch lifecycle, live tick propagation, indicator and signal
recomputation, and overlay reconciliation against a recording sink.
"""

import asyncio
import logging

import pytest

from chart_engine.config.indicator_spec import parse_indicator_spec
from chart_engine.core.chart_engine import ChartEngine, EngineState
from chart_engine.core.exceptions import ChartEngineError, DataLoadError, RenderDisposedError
from chart_engine.data.base import HistoricalCandleSource
from chart_engine.data.historical import InMemoryCandleSource, ManualPriceStream
from chart_engine.models.candle import Candle
from chart_engine.models.chart import ChartType
from chart_engine.models.drawing import AnchorPoint, Drawing, DrawingTool
from chart_engine.models.position import Position
from chart_engine.models.tick import Tick
from chart_engine.utils.config import EngineConfig

INSTRUMENT = "EUR/USD"

BUY_EVERYTHING = {
    "id": "always",
    "rules": [
        {
            "id": "r1",
            "signal": "buy",
            "conditions": [{"indicator": "price", "operator": "above", "compare_value": 0}],
        }
    ],
}


def _make_candle(index: int, width: int, close: float = 1.1) -> Candle:
    """Helper to create history candles aligned to ``width``."""
    return Candle(
        time=index * width,
        open=close - 0.0002,
        high=close + 0.0005,
        low=close - 0.0005,
        close=close,
        volume=3.0,
        is_closed=True,
    )


def _history(count: int, width: int):
    return [_make_candle(i, width, close=1.1 + (i % 10) * 0.0001) for i in range(count)]


def _tick(timestamp: float, mid: float, instrument: str = INSTRUMENT) -> Tick:
    return Tick(instrument=instrument, bid=mid - 0.0001, ask=mid + 0.0001, timestamp=timestamp)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingSink:
    """RenderSink double keeping the live object set and series payloads."""

    def __init__(self):
        self.objects = {}
        self.series = {}
        self.disposed_series = set()

    def create(self, primitive):
        self.objects[primitive.key] = primitive

    def update(self, primitive):
        self.objects[primitive.key] = primitive

    def delete(self, key):
        self.objects.pop(key, None)

    def set_series(self, kind, payload):
        if kind in self.disposed_series:
            raise RenderDisposedError(f"{kind} disposed")
        if payload is None:
            self.series.pop(kind, None)
        else:
            self.series[kind] = payload


class GatedSource(HistoricalCandleSource):
    """Source whose responses are released manually, to interleave loads."""

    def __init__(self):
        self.pending = {}

    async def get_recent_candles(self, instrument, timeframe, count=300):
        future = asyncio.get_running_loop().create_future()
        self.pending[(instrument, timeframe)] = future
        return await future


@pytest.fixture
def source():
    return InMemoryCandleSource({
        INSTRUMENT: {"5m": _history(60, 300), "1h": _history(30, 3600)},
        "GBP/USD": {"5m": _history(60, 300)},
    })


@pytest.fixture
def stream():
    return ManualPriceStream()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(source, stream, sink, clock):
    return ChartEngine(source, stream, sink, EngineConfig(), clock=clock)


@pytest.fixture
def position():
    return Position(
        id="p1", symbol=INSTRUMENT, side="long", entry_price=1.1000,
        quantity=1, take_profit=1.1050, stop_loss=1.0980,
    )


class TestEngineLifecycle:
    """Test open / switch / retry / close"""

    @pytest.mark.asyncio
    async def test_open(self, engine, stream, sink):
        assert engine.state is EngineState.IDLE

        assert await engine.open(INSTRUMENT, "5m") is True

        assert engine.state is EngineState.READY
        assert engine.timeframe == "5m"
        assert len(engine.representation) == 60
        assert stream.subscriptions == [INSTRUMENT]
        assert len(sink.series["representation"]) == 60
        assert sink.series["markers"] == []

    @pytest.mark.asyncio
    async def test_open_with_chart_type_name(self, engine):
        await engine.open(INSTRUMENT, "5", "heikinashi")

        assert engine.chart_type is ChartType.HEIKIN_ASHI
        assert engine.representation.chart_type is ChartType.HEIKIN_ASHI

    @pytest.mark.asyncio
    async def test_timeframe_switch_recomputes_indicators(self, engine, sink):
        await engine.open(INSTRUMENT, "5m")
        engine.set_indicator_specs([{"type": "sma", "period": 20}])

        five_minute = engine.indicator_series["sma"]
        assert len(five_minute) == 41
        assert five_minute.points[0].time == 19 * 300

        assert await engine.switch_timeframe("1h") is True

        hourly = engine.indicator_series["sma"]
        assert len(hourly) == 11
        assert hourly.points[0].time == 19 * 3600
        assert sink.series["indicator:sma"]["points"][0]["time"] == 19 * 3600
        assert all(c.time % 3600 == 0 for c in engine.representation.candles)

    @pytest.mark.asyncio
    async def test_load_failure_then_retry(self, source, engine, stream):
        source.fail_with = DataLoadError("upstream unavailable")

        assert await engine.open(INSTRUMENT, "5m") is False
        assert engine.state is EngineState.ERROR
        assert "upstream unavailable" in engine.error
        assert stream.subscriptions == []
        assert engine.representation is None

        source.fail_with = None
        assert await engine.retry() is True
        assert engine.state is EngineState.READY
        assert engine.error is None
        assert stream.subscriptions == [INSTRUMENT]

    @pytest.mark.asyncio
    async def test_unknown_pair_is_error(self, engine):
        assert await engine.open("USD/JPY", "5m") is False
        assert engine.state is EngineState.ERROR

    @pytest.mark.asyncio
    async def test_retry_before_open(self, engine):
        with pytest.raises(ChartEngineError):
            await engine.retry()

    @pytest.mark.asyncio
    async def test_switch_before_open(self, engine):
        with pytest.raises(ChartEngineError):
            await engine.switch_timeframe("1h")

    @pytest.mark.asyncio
    async def test_superseded_load_discarded(self, stream, sink, clock):
        source = GatedSource()
        engine = ChartEngine(source, stream, sink, clock=clock)

        first = asyncio.create_task(engine.open(INSTRUMENT, "5m"))
        await asyncio.sleep(0)
        assert engine.state is EngineState.LOADING

        second = asyncio.create_task(engine.switch_timeframe("1h"))
        await asyncio.sleep(0)

        source.pending[(INSTRUMENT, "1h")].set_result(_history(30, 3600))
        assert await second is True

        source.pending[(INSTRUMENT, "5m")].set_result(_history(60, 300))
        assert await first is False

        assert engine.timeframe == "1h"
        assert engine.state is EngineState.READY
        assert len(engine.representation) == 30

    @pytest.mark.asyncio
    async def test_switch_instrument_detaches(self, engine, stream):
        await engine.open(INSTRUMENT, "5m")

        await engine.switch_instrument("GBP/USD")

        assert stream.subscriptions == ["GBP/USD"]
        assert engine.instrument == "GBP/USD"
        assert engine.timeframe == "5m"

    @pytest.mark.asyncio
    async def test_close(self, engine, stream, sink, position):
        await engine.open(INSTRUMENT, "5m")
        engine.set_positions([position])

        engine.close()

        assert engine.state is EngineState.IDLE
        assert stream.subscriptions == []
        assert sink.objects == {}
        assert "representation" not in sink.series

    @pytest.mark.asyncio
    async def test_market_closed_still_loads(self, source, sink, clock):
        stream = ManualPriceStream(market_open=False)
        engine = ChartEngine(source, stream, sink, clock=clock)
        assert await engine.open(INSTRUMENT, "5m") is True
        assert engine.market_open is False

        stream.set_market_open(True)
        assert engine.market_open is False
        assert engine.refresh_market_status() is True
        assert engine.market_open is True

    @pytest.mark.asyncio
    async def test_market_status_cleared_on_close(self, engine):
        assert engine.market_open is None
        assert engine.refresh_market_status() is None

        await engine.open(INSTRUMENT, "5m")
        assert engine.market_open is True

        engine.close()
        assert engine.market_open is None


class TestLiveTicks:
    """Test tick → representation propagation"""

    @pytest.mark.asyncio
    async def test_tick_commits_and_throttles(self, engine, stream, clock):
        await engine.open(INSTRUMENT, "5m")
        tail = engine.representation.candles[-1]

        stream.push(_tick(tail.time + 10, 1.2))
        assert engine.representation.candles[-1].close == pytest.approx(1.2)

        clock.now = 0.5
        stream.push(_tick(tail.time + 20, 1.3))
        assert engine.representation.candles[-1].close == pytest.approx(1.2)

        assert engine.flush() is True
        assert engine.representation.candles[-1].close == pytest.approx(1.3)

    @pytest.mark.asyncio
    async def test_new_bucket_appends(self, engine, stream):
        await engine.open(INSTRUMENT, "5m")
        tail = engine.representation.candles[-1]

        stream.push(_tick(tail.time + 300, 1.25))

        assert len(engine.representation) == 61
        assert engine.representation.candles[-2].is_closed is True

    @pytest.mark.asyncio
    async def test_stale_tick_dropped(self, engine, stream):
        await engine.open(INSTRUMENT, "5m")
        before = [c.to_dict() for c in engine.representation.candles]

        stream.push(_tick(0, 9.0))

        assert [c.to_dict() for c in engine.representation.candles] == before

    @pytest.mark.asyncio
    async def test_quote_lines(self, engine, stream, sink):
        await engine.open(INSTRUMENT, "5m")
        tail = engine.representation.candles[-1]

        stream.push(_tick(tail.time + 10, 1.2))

        assert {"quote:bid", "quote:ask"} <= set(sink.objects)
        engine.set_display_preference("show_bid_ask_lines", False)
        assert "quote:bid" not in sink.objects

    @pytest.mark.asyncio
    async def test_disposed_series_swallowed(self, engine, stream, sink):
        await engine.open(INSTRUMENT, "5m")
        sink.disposed_series.add("representation")
        tail = engine.representation.candles[-1]

        stream.push(_tick(tail.time + 10, 1.2))

        assert engine.representation.candles[-1].close == pytest.approx(1.2)


class TestChartType:
    """Test representation switch without reload"""

    @pytest.mark.asyncio
    async def test_set_chart_type_does_not_reload(self, engine, source, sink):
        await engine.open(INSTRUMENT, "5m")
        requests = source.request_count

        engine.set_chart_type(ChartType.LINE)

        assert source.request_count == requests
        assert engine.representation.chart_type is ChartType.LINE
        assert set(sink.series["representation"][0]) == {"time", "value"}

    @pytest.mark.asyncio
    async def test_indicators_follow_representation(self, engine):
        await engine.open(INSTRUMENT, "5m")
        engine.set_indicator_specs([{"type": "sma", "period": 5}])

        engine.set_chart_type("renko")

        assert len(engine.indicator_series["sma"]) == max(0, len(engine.representation) - 4)


class TestIndicatorsAndSignals:
    """Test indicator/strategy configuration changes"""

    @pytest.mark.asyncio
    async def test_removed_indicator_cleared_from_sink(self, engine, sink):
        await engine.open(INSTRUMENT, "5m")
        engine.set_indicator_specs([{"type": "sma"}, {"type": "rsi"}])
        assert {"indicator:sma", "indicator:rsi"} <= set(sink.series)

        engine.set_indicator_specs([{"type": "rsi"}])

        assert "indicator:sma" not in sink.series
        assert list(engine.indicator_series) == ["rsi"]

    @pytest.mark.asyncio
    async def test_mixed_specs_keep_order_and_unique_ids(self, engine, caplog):
        await engine.open(INSTRUMENT, "5m")
        specs = [
            {"type": "rsi"},
            parse_indicator_spec({"type": "sma", "period": 5}),
            {"type": "ema"},
            {"type": "sma", "period": 30},
            parse_indicator_spec({"type": "rsi", "period": 7}),
        ]

        with caplog.at_level(logging.WARNING):
            engine.set_indicator_specs(specs)

        assert [s.id for s in engine.indicator_specs] == ["rsi", "sma", "ema"]
        assert engine.indicator_specs[0].period == 14
        assert engine.indicator_specs[1].period == 5
        assert list(engine.indicator_series) == ["rsi", "sma", "ema"]
        assert len(engine.indicator_series["sma"]) == 56
        assert "Duplicate indicator id" in caplog.text

    @pytest.mark.asyncio
    async def test_invalid_indicator_skipped(self, engine):
        await engine.open(INSTRUMENT, "5m")
        engine.set_indicator_specs([{"type": "sma"}, {"type": "nope"}])
        assert list(engine.indicator_series) == ["sma"]

    @pytest.mark.asyncio
    async def test_strategies_publish_markers(self, engine, sink):
        await engine.open(INSTRUMENT, "5m")

        engine.set_strategies([BUY_EVERYTHING])

        assert len(engine.signals["always"]) == 10
        assert len(sink.series["markers"]) == 10
        assert sink.series["markers"][0]["shape"] == "arrow_up"

        engine.set_strategies([])
        assert engine.signals == {}
        assert sink.series["markers"] == []

    @pytest.mark.asyncio
    async def test_tick_signals_interval(self, engine, clock):
        await engine.open(INSTRUMENT, "5m")
        engine.set_strategies([BUY_EVERYTHING])

        assert engine.tick_signals(now=1.0) is False
        assert engine.tick_signals(now=10.0) is True

    def test_tick_signals_idle(self, engine):
        assert engine.tick_signals(now=100.0) is False

    @pytest.mark.asyncio
    async def test_specs_from_config(self, source, stream, sink, clock):
        config = EngineConfig.from_dict({
            "indicators": [{"type": "ema", "period": 10}],
            "strategies": [BUY_EVERYTHING],
        })
        engine = ChartEngine(source, stream, sink, config, clock=clock)

        await engine.open(INSTRUMENT, "5m")

        assert list(engine.indicator_series) == ["ema"]
        assert len(engine.signals["always"]) == 10


class TestOverlays:
    """Test overlay reconciliation through the engine"""

    @pytest.mark.asyncio
    async def test_position_add_remove(self, engine, sink, position):
        await engine.open(INSTRUMENT, "5m")

        engine.set_positions([position])
        assert sorted(sink.objects) == [
            "pos:p1:entry", "pos:p1:sl", "pos:p1:sl_zone", "pos:p1:tp", "pos:p1:tp_zone",
        ]
        zone = sink.objects["pos:p1:tp_zone"]
        assert (zone.start_time, zone.end_time) == engine.representation.time_range

        engine.set_positions([])
        assert sink.objects == {}

    @pytest.mark.asyncio
    async def test_instrument_switch_removes_overlays(self, engine, sink, position):
        await engine.open(INSTRUMENT, "5m")
        engine.set_positions([position])

        await engine.switch_instrument("GBP/USD")

        assert sink.objects == {}

    @pytest.mark.asyncio
    async def test_zone_toggle(self, engine, sink, position):
        await engine.open(INSTRUMENT, "5m")
        engine.set_positions([position])

        engine.set_display_preference("show_tpsl_zones", False)

        assert "pos:p1:tp_zone" not in sink.objects
        assert "pos:p1:tp" in sink.objects

    @pytest.mark.asyncio
    async def test_unknown_preference(self, engine):
        await engine.open(INSTRUMENT, "5m")
        with pytest.raises(ValueError):
            engine.set_display_preference("show_everything", True)

    @pytest.mark.asyncio
    async def test_drawings_per_instrument(self, engine, sink):
        await engine.open(INSTRUMENT, "5m")

        engine.drawing_session.select_tool("horizontal-line")
        engine.drawing_session.click(300, 1.1)
        assert "drawing:drawing_1" in sink.objects

        await engine.switch_instrument("GBP/USD")
        assert engine.drawings == []
        assert "drawing:drawing_1" not in sink.objects

        await engine.switch_instrument(INSTRUMENT)
        assert [d.id for d in engine.drawings] == ["drawing_1"]
        assert "drawing:drawing_1" in sink.objects

    @pytest.mark.asyncio
    async def test_remove_drawing(self, engine, sink):
        await engine.open(INSTRUMENT, "5m")
        engine.drawing_session.select_tool("trend-line")
        engine.drawing_session.click(0, 1.1)
        engine.drawing_session.click(600, 1.2)

        assert engine.remove_drawing("drawing_1") is True
        assert engine.remove_drawing("drawing_1") is False
        assert sink.objects == {}

    def test_drawing_before_open(self, engine):
        engine.drawing_session.select_tool("horizontal-line")
        with pytest.raises(ChartEngineError):
            engine.drawing_session.click(0, 1.0)

    @pytest.mark.asyncio
    async def test_restored_drawing_ids_not_reused(self, engine, stream, sink):
        await engine.open(INSTRUMENT, "5m")
        restored = Drawing(id="drawing_1", tool=DrawingTool.HORIZONTAL_LINE, points=(AnchorPoint(60, 1.1),))
        engine.set_drawings([restored])

        engine.drawing_session.select_tool("horizontal-line")
        drawn = engine.drawing_session.click(120, 1.2)

        assert drawn.id == "drawing_2"
        assert {"drawing:drawing_1", "drawing:drawing_2"} <= set(sink.objects)

        tail = engine.representation.candles[-1]
        stream.push(_tick(tail.time + 10, 1.2))
        assert "quote:bid" in sink.objects

    @pytest.mark.asyncio
    async def test_duplicate_drawing_rejected(self, engine, stream, sink):
        await engine.open(INSTRUMENT, "5m")
        first = Drawing(id="d", tool=DrawingTool.HORIZONTAL_LINE, points=(AnchorPoint(60, 1.1),))
        clash = Drawing(id="d", tool=DrawingTool.HORIZONTAL_LINE, points=(AnchorPoint(60, 1.3),))
        engine.add_drawing(first)

        with pytest.raises(ValueError, match="already in use"):
            engine.add_drawing(clash)

        assert engine.drawings == [first]
        tail = engine.representation.candles[-1]
        stream.push(_tick(tail.time + 10, 1.2))
        assert sink.objects["drawing:d"].price == 1.1

    @pytest.mark.asyncio
    async def test_set_drawings_drops_repeated_ids(self, engine, sink):
        await engine.open(INSTRUMENT, "5m")
        first = Drawing(id="d", tool=DrawingTool.HORIZONTAL_LINE, points=(AnchorPoint(60, 1.1),))
        clash = Drawing(id="d", tool=DrawingTool.HORIZONTAL_LINE, points=(AnchorPoint(60, 1.3),))

        engine.set_drawings([first, clash])

        assert engine.drawings == [first]
        assert "drawing:d" in sink.objects
