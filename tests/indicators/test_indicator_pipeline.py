"""
Unit tests for IndicatorPipeline and the indicator registry
"""

import logging

import pytest

from chart_engine.config.indicator_spec import INDICATOR_TYPES, parse_indicator_spec, parse_indicator_specs
from chart_engine.core.exceptions import IndicatorError
from chart_engine.indicators.base import (
    IndicatorOutput,
    IndicatorRegistry,
    apply_offset,
    apply_price_source,
    candles_to_frame,
    filter_visible,
)
from chart_engine.indicators.pipeline import IndicatorPipeline
from chart_engine.models.candle import Candle
from chart_engine.models.chart import ChartRepresentation, ChartType
from chart_engine.models.indicator_series import IndicatorPoint


def _make_candle(index: int, close: float) -> Candle:
    """Helper to create 1m candles."""
    return Candle(
        time=index * 60,
        open=close - 0.5,
        high=close + 1.0,
        low=close - 1.0,
        close=close,
        volume=5.0,
        is_closed=True,
    )


def _representation(count: int) -> ChartRepresentation:
    candles = tuple(_make_candle(i, 100.0 + i) for i in range(count))
    return ChartRepresentation("EUR/USD", "1m", ChartType.CANDLESTICK, candles)


@pytest.fixture
def pipeline():
    return IndicatorPipeline()


class TestFrameHelpers:
    """Test DataFrame helpers"""

    def test_candles_to_frame(self):
        frame = candles_to_frame([_make_candle(0, 10.0), _make_candle(1, 11.0)])

        assert list(frame.columns) == ["time", "open", "high", "low", "close", "volume"]
        assert frame["time"].tolist() == [0, 60]

    def test_empty_frame(self):
        assert candles_to_frame([]).empty

    def test_price_source_does_not_mutate(self):
        frame = candles_to_frame([_make_candle(0, 10.0)])
        result = apply_price_source(frame, "hl2")

        assert result["close"].iloc[0] == pytest.approx(10.0)
        assert frame["close"].iloc[0] == 10.0
        assert apply_price_source(frame, "high")["close"].iloc[0] == 11.0

    def test_unknown_price_source(self):
        with pytest.raises(ValueError):
            apply_price_source(candles_to_frame([_make_candle(0, 10.0)]), "median")

    def test_apply_offset(self):
        points = [IndicatorPoint(time=i, values={"value": float(i)}) for i in range(6)]

        assert [p.time for p in apply_offset(points, 3)] == [0, 1, 2]
        assert [p.time for p in apply_offset(points, -2)] == [2, 3, 4, 5]
        assert apply_offset(points, 10) == []
        assert len(apply_offset(points, 0)) == 6

    def test_filter_visible(self):
        points = [IndicatorPoint(time=0, values={"upper": 2.0, "lower": 1.0})]

        assert filter_visible(points, {"upper": False})[0].values == {"lower": 1.0}
        assert filter_visible(points, {"upper": False, "lower": False}) == []


class TestIndicatorRegistry:
    """Test registry lookups"""

    def test_builtin_kinds_registered(self, pipeline):
        registry = IndicatorRegistry.get_instance()
        for kind in ("sma", "ema", "wma", "bb", "keltner", "psar", "pivot", "vwap",
                     "support_resistance", "rsi", "macd", "stoch", "williams_r",
                     "cci", "adx", "mfi", "atr"):
            assert kind in registry

    def test_isolated_registry(self):
        registry = IndicatorRegistry()
        registry.register("noop", lambda spec, frame: IndicatorOutput())

        assert registry.available() == ["noop"]
        assert registry.get("sma") is None

    def test_unregistered_type_raises(self):
        pipeline = IndicatorPipeline(registry=IndicatorRegistry())
        with pytest.raises(IndicatorError, match="No indicator registered"):
            pipeline.compute(_representation(30), parse_indicator_spec({"type": "sma"}))


class TestIndicatorPipeline:
    """Test IndicatorPipeline.compute / compute_all"""

    def test_sma_short_series_empty(self, pipeline):
        series = pipeline.compute(_representation(15), parse_indicator_spec({"type": "sma", "period": 20}))
        assert len(series) == 0

    def test_sma_point_count(self, pipeline):
        series = pipeline.compute(_representation(25), parse_indicator_spec({"type": "sma", "period": 20}))

        assert len(series) == 6
        assert series.points[0].time == 19 * 60
        assert series.points[0].value == pytest.approx(sum(100.0 + i for i in range(20)) / 20)

    def test_positive_offset_drops_last_points(self, pipeline):
        rep = _representation(30)
        plain = pipeline.compute(rep, parse_indicator_spec({"type": "sma", "period": 20}))
        shifted = pipeline.compute(rep, parse_indicator_spec({"type": "sma", "period": 20, "offset": 3}))

        assert len(shifted) == len(plain) - 3
        assert shifted.points == plain.points[:-3]

    def test_rsi_first_point(self, pipeline):
        series = pipeline.compute(_representation(40), parse_indicator_spec({"type": "rsi", "period": 14}))

        assert series.points[0].time == 15 * 60
        assert series.pane == "osc:rsi"
        assert series.threshold_levels == {"overbought": 70.0, "oversold": 30.0}

    def test_multi_line_visibility(self, pipeline):
        spec = parse_indicator_spec({"type": "bb", "visibility": {"upper": False}})
        series = pipeline.compute(_representation(30), spec)

        assert series.line_names == ["middle", "lower"]

    def test_style_forwarded(self, pipeline):
        spec = parse_indicator_spec({"type": "ema", "style": {"color": "#ff0000", "line_width": 3}})
        series = pipeline.compute(_representation(30), spec)

        assert series.style["color"] == "#ff0000"
        assert series.style["line_width"] == 3

    def test_support_resistance_levels_only(self, pipeline):
        spec = parse_indicator_spec({"type": "support_resistance", "period": 4})
        series = pipeline.compute(_representation(30), spec)

        assert series.points == ()

    def test_compute_all_keyed_by_id(self, pipeline):
        specs = parse_indicator_specs([
            {"type": "sma", "id": "fast", "period": 5},
            {"type": "sma", "id": "slow", "period": 20},
            {"type": "macd", "enabled": False},
        ])
        results = pipeline.compute_all(_representation(30), specs)

        assert list(results) == ["fast", "slow"]
        assert len(results["fast"]) == 26
        assert len(results["slow"]) == 11

    def test_failing_indicator_does_not_block_others(self, caplog):
        registry = IndicatorRegistry()

        def broken(spec, frame):
            raise RuntimeError("division exploded")

        registry.register("sma", broken)
        registry.register("ema", IndicatorRegistry.get_instance().get("ema"))
        pipeline = IndicatorPipeline(registry=registry)

        specs = parse_indicator_specs([{"type": "sma"}, {"type": "ema"}])
        with caplog.at_level(logging.ERROR):
            results = pipeline.compute_all(_representation(30), specs)

        assert list(results) == ["ema"]
        assert "division exploded" in caplog.text

    @pytest.mark.parametrize("chart_type", [ChartType.HEIKIN_ASHI, ChartType.LINE])
    def test_runs_on_transformed_series(self, pipeline, chart_type):
        rep = ChartRepresentation("EUR/USD", "1m", chart_type, _representation(25).candles)
        results = pipeline.compute_all(rep, parse_indicator_specs([{"type": "sma"}]))
        assert len(results["sma"]) == 6

    def test_empty_representation(self, pipeline):
        rep = ChartRepresentation("EUR/USD", "1m", ChartType.RENKO, ())
        specs = parse_indicator_specs([{"type": t} for t in ("sma", "rsi", "macd", "pivot", "sr")])

        results = pipeline.compute_all(rep, specs)

        assert all(len(series) == 0 for series in results.values())

    @pytest.mark.parametrize("count", [0, 1, 2, 3])
    @pytest.mark.parametrize("kind", sorted(INDICATOR_TYPES))
    def test_short_series_never_raises(self, pipeline, kind, count):
        series = pipeline.compute(_representation(count), parse_indicator_spec({"type": kind}))

        assert series.id == kind
        assert len(series) <= count
        assert [p.time for p in series.points] == sorted({p.time for p in series.points})
