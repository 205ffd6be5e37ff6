"""
Unit tests for indicator and strategy configuration models
"""

import logging

import pytest
from pydantic import ValidationError

from chart_engine.config.indicator_spec import (
    INDICATOR_TYPES,
    BollingerSpec,
    MacdSpec,
    RsiSpec,
    SmaSpec,
    parse_indicator_spec,
    parse_indicator_specs,
)
from chart_engine.config.strategy_spec import StrategySpec, parse_strategy_spec, parse_strategy_specs
from chart_engine.core.exceptions import StrategyError
from chart_engine.models.signal import SignalType


class TestIndicatorSpec:
    """Test single indicator spec validation"""

    def test_defaults(self):
        spec = parse_indicator_spec({"type": "sma"})

        assert isinstance(spec, SmaSpec)
        assert spec.id == "sma"
        assert spec.period == 20
        assert spec.offset == 0
        assert spec.price_source == "close"
        assert spec.pane == "main"
        assert spec.display_type == "overlay"

    def test_oscillator_pane_and_levels(self):
        spec = parse_indicator_spec({"type": "rsi", "id": "rsi_fast", "period": 7})

        assert isinstance(spec, RsiSpec)
        assert spec.is_oscillator is True
        assert spec.pane == "osc:rsi_fast"
        assert spec.threshold_levels == {"overbought": 70.0, "oversold": 30.0}

    def test_custom_levels_override_defaults(self):
        spec = parse_indicator_spec({"type": "rsi", "levels": {"overbought": 80, "oversold": 20}})
        assert spec.threshold_levels == {"overbought": 80.0, "oversold": 20.0}

    @pytest.mark.parametrize(
        "alias,cls",
        [("bollinger", BollingerSpec), ("bb", BollingerSpec), ("macd", MacdSpec)],
    )
    def test_aliases(self, alias, cls):
        assert isinstance(parse_indicator_spec({"type": alias}), cls)

    def test_every_type_has_defaults(self):
        for kind in INDICATOR_TYPES:
            assert parse_indicator_spec({"type": kind}).type == kind

    @pytest.mark.parametrize(
        "raw",
        [
            {"type": "sma", "period": 0},
            {"type": "macd", "fast": 26, "slow": 12},
            {"type": "psar", "acceleration": 0.5, "maximum": 0.2},
            {"type": "sma", "offset": 1000},
            {"type": "sma", "price_source": "median"},
            {"type": "kagi"},
        ],
    )
    def test_invalid_rejected(self, raw):
        with pytest.raises(ValidationError):
            parse_indicator_spec(raw)

    def test_visibility(self):
        spec = parse_indicator_spec({"type": "bb", "visibility": {"upper": False}})

        assert spec.is_visible("upper") is False
        assert spec.is_visible("lower") is True


class TestParseIndicatorSpecs:
    """Test list parsing: bad entries skipped, never fatal"""

    def test_skips_invalid_entries(self, caplog):
        raw = [
            {"type": "sma", "period": 10},
            {"type": "unknown_kind"},
            {"type": "rsi", "period": -1},
            "not a dict",
            {"type": "ema"},
        ]
        with caplog.at_level(logging.WARNING):
            specs = parse_indicator_specs(raw)

        assert [s.type for s in specs] == ["sma", "ema"]
        assert "unknown_kind" in caplog.text

    def test_duplicate_ids_skipped(self):
        specs = parse_indicator_specs([
            {"type": "sma", "id": "ma", "period": 10},
            {"type": "ema", "id": "ma"},
        ])
        assert len(specs) == 1
        assert specs[0].type == "sma"


class TestStrategySpec:
    """Test strategy rule validation"""

    def test_parse_strategy(self):
        strategy = StrategySpec.model_validate({
            "id": "s1",
            "rules": [
                {
                    "id": "r1",
                    "signal": "strong_buy",
                    "logic": "or",
                    "conditions": [{"indicator": "rsi", "operator": "below", "compare_value": 30}],
                }
            ],
        })

        rule = strategy.rules[0]
        assert strategy.enabled is True
        assert rule.signal is SignalType.STRONG_BUY
        assert rule.logic == "OR"
        assert rule.strength is None
        assert rule.conditions[0].compare_with == "value"

    def test_invalid_strategies_skipped(self, caplog):
        raw = [
            {"id": "ok", "rules": []},
            {"id": "bad_signal", "rules": [{"id": "r", "signal": "hold"}]},
            {"id": "bad_strength", "rules": [{"id": "r", "signal": "buy", "strength": 9}]},
        ]
        with caplog.at_level(logging.WARNING):
            strategies = parse_strategy_specs(raw)

        assert [s.id for s in strategies] == ["ok"]
        assert "bad_signal" in caplog.text

    def test_parse_single_strategy_raises(self):
        with pytest.raises(StrategyError, match="bad_logic"):
            parse_strategy_spec({"id": "bad_logic", "rules": [{"id": "r", "signal": "buy", "logic": "XOR"}]})

        with pytest.raises(StrategyError, match="mapping"):
            parse_strategy_spec(["not", "a", "dict"])
