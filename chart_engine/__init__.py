"""
Real-time chart analysis engine
Main package initialization
"""

__version__ = "0.1.0"

from chart_engine.core.chart_engine import ChartEngine, EngineState
from chart_engine.utils.config import ConfigManager, EngineConfig
from chart_engine.utils.logger import EngineLogger

__all__ = ["ChartEngine", "EngineState", "ConfigManager", "EngineConfig", "EngineLogger"]
