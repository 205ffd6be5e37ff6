"""
Chart engine configuration models
"""

from .display import STORAGE_KEYS, DisplayPreferences
from .indicator_spec import (
    INDICATOR_TYPES,
    IndicatorSpec,
    IndicatorSpecBase,
    IndicatorStyle,
    parse_indicator_spec,
    parse_indicator_specs,
)
from .strategy_spec import Condition, StrategyRule, StrategySpec, parse_strategy_spec, parse_strategy_specs

__all__ = [
    "STORAGE_KEYS",
    "DisplayPreferences",
    "INDICATOR_TYPES",
    "IndicatorSpec",
    "IndicatorSpecBase",
    "IndicatorStyle",
    "parse_indicator_spec",
    "parse_indicator_specs",
    "Condition",
    "StrategyRule",
    "StrategySpec",
    "parse_strategy_spec",
    "parse_strategy_specs",
]
