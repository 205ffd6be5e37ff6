"""
Custom exceptions for the chart engine
"""


class ChartEngineError(Exception):
    """Base exception for chart engine errors"""


class ConfigurationError(ChartEngineError):
    """Configuration related errors"""


class DataLoadError(ChartEngineError):
    """Historical candle load failed for an instrument/timeframe pair"""


class IndicatorError(ChartEngineError):
    """Indicator computation errors"""


class StrategyError(ChartEngineError):
    """Invalid strategy definition"""


class RenderDisposedError(ChartEngineError):
    """
    Render object was already disposed.

    Raised by render sinks when an update races a teardown during an
    instrument/timeframe/chart-type switch. Callers swallow it.
    """
