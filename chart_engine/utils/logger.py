"""
Logging configuration with multi-handler setup and structured signal logging
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Generator, List

SIGNAL_LOGGER_NAME = "signals"

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


class SignalLogFilter(logging.Filter):
    """
    Filter to isolate strategy signal events from general logging

    Only records from the 'signals' logger reach the signal handler, so the
    signal log stays pure JSON lines.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name == SIGNAL_LOGGER_NAME


class EngineLogger:
    """
    Centralized logging setup for the chart engine

    Features:
    - Console handler (INFO+)
    - Rotating file handler (DEBUG+, 10MB x 5)
    - Signal-only JSON log with daily rotation
    """

    def __init__(self, config: dict):
        """
        Install the engine handlers on the root logger

        Args:
            config: Configuration dictionary with keys:
                - log_level: str (DEBUG, INFO, WARNING, ERROR)
                - log_dir: str (directory path for log files)
                - signal_retention_days: int (daily signal log backups)

        Raises:
            OSError: If the log directory cannot be created
        """
        self.log_level = config.get("log_level", "INFO")
        self.log_dir = Path(config.get("log_dir", "logs"))
        self.signal_retention_days = int(config.get("signal_retention_days", 30))
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.handlers: List[logging.Handler] = []
        self._setup_logging()

    def _setup_logging(self) -> None:
        """
        Attach console, rotating file and signal handlers.

        Handlers from an earlier EngineLogger are replaced; foreign handlers
        (e.g. pytest caplog) are left alone.
        """
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, self.log_level.upper()))

        # Replace handlers from a previous setup to avoid duplicates
        for handler in root_logger.handlers[:]:
            if getattr(handler, "_chart_engine", False):
                root_logger.removeHandler(handler)
                handler.close()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter(_FORMAT))

        file_handler = RotatingFileHandler(
            self.log_dir / "chart_engine.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FORMAT))

        signal_handler = TimedRotatingFileHandler(
            self.log_dir / "signals.log",
            when="midnight",
            backupCount=self.signal_retention_days,
        )
        signal_handler.setLevel(logging.INFO)
        signal_handler.addFilter(SignalLogFilter())

        for handler in (console_handler, file_handler, signal_handler):
            handler._chart_engine = True
            root_logger.addHandler(handler)
            self.handlers.append(handler)

    def close(self) -> None:
        """Detach and close the handlers installed by this instance."""
        root_logger = logging.getLogger()
        for handler in self.handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self.handlers = []

    @staticmethod
    def log_signal(action: str, data: dict) -> None:
        """
        Write one JSON line to the signal log

        Args:
            action: Event name (SIGNALS_UPDATED, SIGNALS_CLEARED)
            data: Extra JSON fields merged into the entry

        Example:
            EngineLogger.log_signal('SIGNALS_UPDATED', {'total': 12, 'per_strategy': {'rsi_reversal': 12}})
        """
        logger = logging.getLogger(SIGNAL_LOGGER_NAME)
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action,
            **data,
        }
        logger.info(json.dumps(log_entry))


@contextmanager
def log_execution_time(operation: str) -> Generator[None, None, None]:
    """
    Context manager for measuring and logging execution time

    Usage:
        with log_execution_time('indicator_calculation'):
            result = pipeline.compute_all(...)

    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logging.getLogger(__name__).debug("%s completed in %.3fs", operation, elapsed)
