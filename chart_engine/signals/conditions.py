"""
Condition operands and operators for strategy rules.

Operands are computed once per evaluation into index-aligned numpy arrays
(NaN during warm-up) and cached by (operand, params). Multi-line indicators
(Bollinger, MACD, Stochastic) cache all of their lines on first use.
"""

import logging
from typing import Callable, Dict, FrozenSet, Optional, Set, Tuple

import numpy as np
import pandas as pd

from chart_engine.config.strategy_spec import Condition
from chart_engine.indicators.bands import bollinger_bands
from chart_engine.indicators.moving_average import ema, sma, wma
from chart_engine.indicators.oscillators import cci, macd, rsi, stochastic, williams_r
from chart_engine.indicators.trend import atr

logger = logging.getLogger(__name__)

EQUALS_TOLERANCE = 1e-4

PRICE_OPERANDS = {
    "price": "close",
    "close": "close",
    "open": "open",
    "high": "high",
    "low": "low",
    "volume": "volume",
}

INDICATOR_OPERANDS = (
    "sma", "ema", "wma", "rsi", "atr", "cci", "williams_r",
    "bb_upper", "bb_middle", "bb_lower",
    "macd_line", "macd_signal", "macd_histogram",
    "stoch_k", "stoch_d",
)

CacheKey = Tuple[str, FrozenSet[Tuple[str, float]]]


def _param(params: Dict[str, float], name: str, default: float, *aliases: str) -> float:
    """Look up a parameter by snake_case name or dashboard camelCase alias."""
    for key in (name, *aliases):
        if key in params and params[key] is not None:
            return params[key]
    return default


class OperandResolver:
    """
    Resolves operand identifiers to per-index value arrays for one candle
    frame. Create one per evaluation; the cache is not invalidated.
    """

    def __init__(self, frame: pd.DataFrame):
        self.frame = frame
        self._cache: Dict[CacheKey, np.ndarray] = {}
        self._warned: Set[str] = set()

    def __len__(self) -> int:
        return len(self.frame)

    def resolve(self, operand: str, params: Optional[Dict[str, float]] = None) -> Optional[np.ndarray]:
        """
        Value array for an operand, or None if the identifier is unknown.
        """
        params = params or {}
        if operand in PRICE_OPERANDS:
            return self.frame[PRICE_OPERANDS[operand]].to_numpy(dtype=float)

        if operand not in INDICATOR_OPERANDS:
            if operand not in self._warned:
                logger.warning("Unknown condition operand %r; condition evaluates false", operand)
                self._warned.add(operand)
            return None

        key = (operand, frozenset(params.items()))
        if key not in self._cache:
            self._compute(operand, params)
        return self._cache[key]

    def _store(self, operand: str, params: Dict[str, float], values: pd.Series) -> None:
        self._cache[(operand, frozenset(params.items()))] = values.to_numpy(dtype=float)

    def _compute(self, operand: str, params: Dict[str, float]) -> None:
        close = self.frame["close"]
        period = int(_param(params, "period", 20))

        if operand == "sma":
            self._store(operand, params, sma(close, period))
        elif operand == "ema":
            self._store(operand, params, ema(close, period))
        elif operand == "wma":
            self._store(operand, params, wma(close, period))
        elif operand == "rsi":
            self._store(operand, params, rsi(close, int(_param(params, "period", 14))))
        elif operand == "atr":
            self._store(operand, params, atr(self.frame, int(_param(params, "period", 14))))
        elif operand == "cci":
            self._store(operand, params, cci(self.frame, period))
        elif operand == "williams_r":
            self._store(operand, params, williams_r(self.frame, int(_param(params, "period", 14))))
        elif operand.startswith("bb_"):
            bands = bollinger_bands(close, period, float(_param(params, "std_dev", 2.0, "stdDev")))
            for line in ("upper", "middle", "lower"):
                self._store(f"bb_{line}", params, bands[line])
        elif operand.startswith("macd_"):
            lines = macd(
                close,
                int(_param(params, "fast", 12)),
                int(_param(params, "slow", 26)),
                int(_param(params, "signal", 9)),
            )
            self._store("macd_line", params, lines["macd"])
            self._store("macd_signal", params, lines["signal"])
            self._store("macd_histogram", params, lines["histogram"])
        elif operand.startswith("stoch_"):
            lines = stochastic(
                self.frame,
                int(_param(params, "k_period", 14, "kPeriod")),
                int(_param(params, "d_period", 3, "dPeriod")),
            )
            self._store("stoch_k", params, lines["k"])
            self._store("stoch_d", params, lines["d"])


def _above(value, target, prev_value, prev_target) -> bool:
    return value > target


def _below(value, target, prev_value, prev_target) -> bool:
    return value < target


def _equals(value, target, prev_value, prev_target) -> bool:
    return abs(value - target) < EQUALS_TOLERANCE


def _crosses_above(value, target, prev_value, prev_target) -> bool:
    return prev_value <= prev_target and value > target


def _crosses_below(value, target, prev_value, prev_target) -> bool:
    return prev_value >= prev_target and value < target


OPERATORS: Dict[str, Callable[..., bool]] = {
    "above": _above,
    "below": _below,
    "equals": _equals,
    "crosses_above": _crosses_above,
    "crosses_below": _crosses_below,
}

_CROSSING = ("crosses_above", "crosses_below")


class ConditionEvaluator:
    """Evaluates Conditions at candle indices against an OperandResolver."""

    def __init__(self, resolver: OperandResolver):
        self.resolver = resolver
        self._warned: Set[str] = set()
        self._constants: Dict[float, np.ndarray] = {}

    def _target(self, condition: Condition) -> Optional[np.ndarray]:
        if condition.compare_with == "value":
            value = float(condition.compare_value) if condition.compare_value is not None else 0.0
            if value not in self._constants:
                self._constants[value] = np.full(len(self.resolver), value)
            return self._constants[value]
        return self.resolver.resolve(condition.compare_indicator or "sma", condition.compare_params)

    def evaluate(self, condition: Condition, index: int) -> bool:
        """
        True if the condition holds at ``index``.

        Unknown operands/operators and NaN operands evaluate False.
        """
        op = OPERATORS.get(condition.operator)
        if op is None:
            if condition.operator not in self._warned:
                logger.warning("Unknown condition operator %r; condition evaluates false", condition.operator)
                self._warned.add(condition.operator)
            return False

        values = self.resolver.resolve(condition.indicator, condition.params)
        target = self._target(condition)
        if values is None or target is None:
            return False

        value, compare = values[index], target[index]
        if np.isnan(value) or np.isnan(compare):
            return False

        prev_value = prev_compare = np.nan
        if condition.operator in _CROSSING:
            if index == 0:
                return False
            prev_value, prev_compare = values[index - 1], target[index - 1]
            if np.isnan(prev_value) or np.isnan(prev_compare):
                return False

        return bool(op(value, compare, prev_value, prev_compare))
