"""
Strategy signal evaluation and marker mapping.

Signals are advisory: they are evaluated over the raw candle series (never a
transformed representation) and rendered as markers on the main series.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from chart_engine.config.strategy_spec import StrategyRule, StrategySpec
from chart_engine.indicators.base import candles_to_frame
from chart_engine.models.candle import Candle
from chart_engine.models.signal import Signal, SignalType
from chart_engine.signals.conditions import ConditionEvaluator, OperandResolver
from chart_engine.utils.logger import EngineLogger, log_execution_time

DEFAULT_MIN_HISTORY = 50
DEFAULT_SIGNAL_INTERVAL = 5.0

SIGNAL_COLORS: Dict[SignalType, str] = {
    SignalType.STRONG_BUY: "#00ff00",
    SignalType.BUY: "#4ade80",
    SignalType.SELL: "#f87171",
    SignalType.STRONG_SELL: "#ff0000",
}


@dataclass(frozen=True)
class SignalMarker:
    """Render-ready marker for one signal."""
    time: int
    position: str  # 'below_bar' or 'above_bar'
    shape: str  # 'arrow_up' or 'arrow_down'
    color: str
    text: str
    size: int
    strategy_id: str

    def to_dict(self) -> dict:
        return {
            "time": self.time,
            "position": self.position,
            "shape": self.shape,
            "color": self.color,
            "text": self.text,
            "size": self.size,
        }


def marker_size(strength: int) -> int:
    """3 for strength >= 4, 2 for >= 2, else 1."""
    if strength >= 4:
        return 3
    if strength >= 2:
        return 2
    return 1


def signal_marker(signal: Signal) -> SignalMarker:
    """Map a signal to its marker: buys below the bar pointing up, sells above pointing down."""
    is_buy = signal.signal_type.is_buy
    return SignalMarker(
        time=signal.time,
        position="below_bar" if is_buy else "above_bar",
        shape="arrow_up" if is_buy else "arrow_down",
        color=SIGNAL_COLORS[signal.signal_type],
        text=signal.signal_type.label,
        size=marker_size(signal.strength),
        strategy_id=signal.strategy_id,
    )


class SignalEngine:
    """
    Evaluates strategy rules over a candle series.

    A rule fires at candle i when all (AND) or any (OR) of its conditions
    hold. Evaluation starts at ``min_history``; shorter series yield nothing.
    """

    def __init__(self, min_history: int = DEFAULT_MIN_HISTORY):
        if min_history < 1:
            raise ValueError(f"min_history must be >= 1, got {min_history}")
        self.min_history = min_history
        self.logger = logging.getLogger(__name__)

    def evaluate(
        self, candles: Sequence[Candle], strategies: Iterable[StrategySpec]
    ) -> Dict[str, List[Signal]]:
        """
        Evaluate every enabled strategy.

        Returns:
            Signals per strategy id (enabled strategies only; may be empty lists)
        """
        enabled = [s for s in strategies if s.enabled]
        results: Dict[str, List[Signal]] = {s.id: [] for s in enabled}
        if not enabled or len(candles) < self.min_history:
            return results

        frame = candles_to_frame(candles)
        evaluator = ConditionEvaluator(OperandResolver(frame))
        times = frame["time"].tolist()

        with log_execution_time(f"signals[{len(enabled)} strategies, {len(candles)} candles]"):
            for strategy in enabled:
                results[strategy.id] = self._evaluate_strategy(strategy, evaluator, times)

        return results

    def _evaluate_strategy(
        self, strategy: StrategySpec, evaluator: ConditionEvaluator, times: List[int]
    ) -> List[Signal]:
        signals: List[Signal] = []
        for i in range(self.min_history, len(times)):
            for rule in strategy.rules:
                strength = self._evaluate_rule(rule, evaluator, i)
                if strength is None:
                    continue
                signals.append(
                    Signal(
                        time=times[i],
                        signal_type=rule.signal,
                        strength=strength,
                        strategy_id=strategy.id,
                        rule_id=rule.id,
                        rule_name=rule.name,
                    )
                )
        return signals

    @staticmethod
    def _evaluate_rule(rule: StrategyRule, evaluator: ConditionEvaluator, index: int) -> Optional[int]:
        """Signal strength if the rule fires at ``index``, else None."""
        if not rule.conditions:
            return None

        matched = sum(1 for condition in rule.conditions if evaluator.evaluate(condition, index))
        if rule.logic == "AND":
            fired = matched == len(rule.conditions)
        else:
            fired = matched > 0
        if not fired:
            return None
        return rule.strength if rule.strength is not None else matched


class SignalScheduler:
    """
    Drives signal recomputation: on every series load and at most once per
    ``interval`` seconds thereafter.

    Usage:
        scheduler = SignalScheduler(engine, on_update=publish)
        scheduler.set_strategies(strategies)
        scheduler.recompute(candles)          # after a load
        scheduler.tick(candles)               # from a periodic timer
    """

    def __init__(
        self,
        engine: SignalEngine,
        interval: float = DEFAULT_SIGNAL_INTERVAL,
        on_update: Optional[Callable[[Dict[str, List[Signal]]], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.engine = engine
        self.interval = interval
        self._on_update = on_update
        self._clock = clock
        self._strategies: List[StrategySpec] = []
        self._signals: Dict[str, List[Signal]] = {}
        self._last_run: Optional[float] = None
        self._last_count = 0
        self.logger = logging.getLogger(__name__)

    @property
    def signals(self) -> Dict[str, List[Signal]]:
        return self._signals

    @property
    def has_active_strategies(self) -> bool:
        return any(s.enabled for s in self._strategies)

    def markers(self) -> List[SignalMarker]:
        """All current markers, time-ordered (required by render surfaces)."""
        markers = [signal_marker(s) for signals in self._signals.values() for s in signals]
        return sorted(markers, key=lambda m: m.time)

    def set_strategies(self, strategies: Iterable[StrategySpec]) -> None:
        self._strategies = list(strategies)

    def clear(self) -> None:
        """Drop all signals (e.g. on instrument switch or no active strategy)."""
        had_signals = any(self._signals.values())
        self._signals = {}
        self._last_run = None
        self._last_count = 0
        if had_signals:
            EngineLogger.log_signal("SIGNALS_CLEARED", {})
        self._publish()

    def recompute(self, candles: Sequence[Candle], now: Optional[float] = None) -> Dict[str, List[Signal]]:
        """Recompute immediately; clears markers when no strategy is active."""
        self._last_run = self._clock() if now is None else now
        if not self.has_active_strategies:
            self.clear()
            return self._signals

        self._signals = self.engine.evaluate(candles, self._strategies)
        total = sum(len(s) for s in self._signals.values())
        if total != self._last_count:
            self.logger.info(
                "Generated %d signals from %d strategies", total, len(self._signals)
            )
            EngineLogger.log_signal(
                "SIGNALS_UPDATED",
                {"total": total, "per_strategy": {k: len(v) for k, v in self._signals.items()}},
            )
            self._last_count = total
        self._publish()
        return self._signals

    def tick(self, candles: Sequence[Candle], now: Optional[float] = None) -> bool:
        """
        Interval hook. Recomputes if ``interval`` has elapsed since the last run.

        Returns:
            True if a recompute happened
        """
        now = self._clock() if now is None else now
        if not self.has_active_strategies:
            return False
        if self._last_run is not None and now - self._last_run < self.interval:
            return False
        self.recompute(candles, now)
        return True

    def _publish(self) -> None:
        if self._on_update is not None:
            self._on_update(self._signals)
