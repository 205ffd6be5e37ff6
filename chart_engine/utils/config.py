"""
Configuration management with YAML files and environment overrides
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from chart_engine.config.display import DisplayPreferences
from chart_engine.config.indicator_spec import IndicatorSpecBase, parse_indicator_specs
from chart_engine.config.strategy_spec import StrategySpec, parse_strategy_specs
from chart_engine.core.exceptions import ConfigurationError
from chart_engine.transforms.base import TransformSettings

logger = logging.getLogger(__name__)


@dataclass
class AggregatorConfig:
    """Candle aggregation configuration"""
    max_candles: int = 500
    history_count: int = 300
    commit_interval: float = 1.0

    def __post_init__(self):
        if self.max_candles < 1:
            raise ConfigurationError(f"max_candles must be >= 1, got {self.max_candles}")
        if self.history_count < 1:
            raise ConfigurationError(f"history_count must be >= 1, got {self.history_count}")
        if self.commit_interval < 0:
            raise ConfigurationError(
                f"commit_interval must be >= 0, got {self.commit_interval}"
            )


@dataclass
class SignalConfig:
    """Strategy signal evaluation configuration"""
    interval: float = 5.0
    min_history: int = 50

    def __post_init__(self):
        if self.interval <= 0:
            raise ConfigurationError(f"Signal interval must be > 0, got {self.interval}")
        if self.min_history < 1:
            raise ConfigurationError(f"min_history must be >= 1, got {self.min_history}")


@dataclass
class LoggingConfig:
    """Logging system configuration"""
    log_level: str = "INFO"
    log_dir: str = "logs"
    signal_retention_days: int = 30

    def __post_init__(self):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_levels:
            raise ConfigurationError(
                f"Invalid log level: {self.log_level}. "
                f"Must be one of {valid_levels}"
            )

    def to_dict(self) -> dict:
        return {
            "log_level": self.log_level,
            "log_dir": self.log_dir,
            "signal_retention_days": self.signal_retention_days,
        }


@dataclass
class EngineConfig:
    """
    Complete engine configuration.

    Indicator and strategy lists are kept raw here; they are validated
    (and bad entries skipped) by ConfigManager.indicator_specs/strategy_specs.
    """
    aggregator: AggregatorConfig = field(default_factory=AggregatorConfig)
    signals: SignalConfig = field(default_factory=SignalConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    transforms: TransformSettings = field(default_factory=TransformSettings)
    display: Dict[str, Any] = field(default_factory=dict)
    indicators: List[Dict[str, Any]] = field(default_factory=list)
    strategies: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """
        Build from the ``engine`` section of engine.yaml.

        Raises:
            ConfigurationError: If a section has unknown keys or invalid values
        """
        try:
            return cls(
                aggregator=AggregatorConfig(**(data.get("aggregator") or {})),
                signals=SignalConfig(**(data.get("signals") or {})),
                logging=LoggingConfig(**(data.get("logging") or {})),
                transforms=TransformSettings.model_validate(data.get("transforms") or {}),
                display=dict(data.get("display") or {}),
                indicators=list(data.get("indicators") or []),
                strategies=list(data.get("strategies") or []),
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid engine configuration: {e}") from e
        except ValidationError as e:
            raise ConfigurationError(f"Invalid transform configuration: {e}") from e


class ConfigManager:
    """
    Loads configs/engine.yaml with environment overrides

    Priority: ENV > YAML file > defaults

    Environment overrides:
        CHART_ENGINE_LOG_LEVEL: logging.log_level
        CHART_ENGINE_LOG_DIR: logging.log_dir
        CHART_ENGINE_RETENTION: aggregator.max_candles
    """

    def __init__(self, config_dir: str = "configs", filename: str = "engine.yaml"):
        self.config_dir = Path(config_dir)
        self.config_file = self.config_dir / filename
        self.display_file = self.config_dir / "display.yaml"
        self._engine_config = self._load_engine_config()

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML config {path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Invalid YAML config {path}: top level must be a mapping")
        return data

    def _load_engine_config(self) -> EngineConfig:
        data = self._load_yaml(self.config_file)
        if not data:
            logger.info("No engine config at %s, using defaults", self.config_file)

        section = dict(data.get("engine", data) or {})
        self._apply_env_overrides(section)
        config = EngineConfig.from_dict(section)

        # Display preferences persisted separately take precedence
        persisted = self._load_yaml(self.display_file)
        if persisted:
            config.display.update(persisted)
        return config

    @staticmethod
    def _apply_env_overrides(section: Dict[str, Any]) -> None:
        log_level = os.getenv("CHART_ENGINE_LOG_LEVEL")
        log_dir = os.getenv("CHART_ENGINE_LOG_DIR")
        retention = os.getenv("CHART_ENGINE_RETENTION")

        if log_level or log_dir:
            logging_section = dict(section.get("logging") or {})
            if log_level:
                logging_section["log_level"] = log_level
            if log_dir:
                logging_section["log_dir"] = log_dir
            section["logging"] = logging_section

        if retention:
            try:
                max_candles = int(retention)
            except ValueError as e:
                raise ConfigurationError(
                    f"CHART_ENGINE_RETENTION must be an integer, got {retention!r}"
                ) from e
            aggregator_section = dict(section.get("aggregator") or {})
            aggregator_section["max_candles"] = max_candles
            section["aggregator"] = aggregator_section

    @property
    def engine_config(self) -> EngineConfig:
        return self._engine_config

    @property
    def aggregator_config(self) -> AggregatorConfig:
        return self._engine_config.aggregator

    @property
    def signal_config(self) -> SignalConfig:
        return self._engine_config.signals

    @property
    def logging_config(self) -> LoggingConfig:
        return self._engine_config.logging

    @property
    def indicator_specs(self) -> List[IndicatorSpecBase]:
        """Validated indicator specs; invalid entries are logged and skipped."""
        return parse_indicator_specs(self._engine_config.indicators)

    @property
    def strategy_specs(self) -> List[StrategySpec]:
        """Validated strategy specs; invalid entries are logged and skipped."""
        return parse_strategy_specs(self._engine_config.strategies)

    def display_preferences(self, persist: bool = True) -> DisplayPreferences:
        """
        Display preferences from config.

        Args:
            persist: Write every later change back to display.yaml
        """
        on_change = self.save_display_preferences if persist else None
        return DisplayPreferences.from_dict(self._engine_config.display, on_change=on_change)

    def save_display_preferences(self, prefs: DisplayPreferences) -> None:
        """Persist display preferences to display.yaml."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.display_file, "w", encoding="utf-8") as f:
            yaml.safe_dump(prefs.to_dict(), f, default_flow_style=False, sort_keys=True)
        self._engine_config.display = prefs.to_dict()
        logger.debug("Saved display preferences to %s", self.display_file)
