"""
Structured logging configuration for the companion framework.

All components log through `get_logger(<component>)` so every line carries a
component column (e.g. "vad", "barge_in", "coordinator", "summarizer").
"""

import logging
import sys
from typing import Optional
from pathlib import Path
from datetime import datetime


ROOT_LOGGER_NAME = 'companion_framework'


class StructuredFormatter(logging.Formatter):
    """Formatter producing `[time] [level] [component] message` lines."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'
    }

    EMOJIS = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️ ',
        'WARNING': '⚠️ ',
        'ERROR': '❌',
        'CRITICAL': '💀'
    }

    def __init__(self, use_colors: bool = True, use_emojis: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.use_emojis = use_emojis

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        level = record.levelname
        level_str = f"{self.EMOJIS.get(level, '')} {level}" if self.use_emojis else level

        if self.use_colors and sys.stdout.isatty():
            level_str = f"{self.COLORS.get(level, '')}{level_str}{self.COLORS['RESET']}"

        component = getattr(record, 'component', 'general')
        session_id = getattr(record, 'session_id', None)
        component_str = f"{component}:{session_id[:8]}" if session_id else component

        parts = [
            f"[{timestamp}]",
            f"[{level_str:15}]",
            f"[{component_str:20}]",
            record.getMessage()
        ]

        if record.exc_info:
            parts.append('\n' + self.formatException(record.exc_info))

        return ' '.join(parts)


class ComponentLogger:
    """
    Logger wrapper that stamps every record with a component name.

    A session id can be bound with `bind_session()` so that log lines from
    overlapping sessions stay distinguishable.
    """

    def __init__(self, logger: logging.Logger, component: str, session_id: Optional[str] = None):
        self.logger = logger
        self.component = component
        self.session_id = session_id

    def bind_session(self, session_id: Optional[str]) -> 'ComponentLogger':
        """Return a logger for the same component tagged with `session_id`."""
        return ComponentLogger(self.logger, self.component, session_id)

    def is_debug_enabled(self) -> bool:
        return self.logger.isEnabledFor(logging.DEBUG)

    def _log(self, level: int, msg: str, *args, **kwargs):
        extra = kwargs.get('extra', {})
        extra['component'] = self.component
        if self.session_id:
            extra['session_id'] = self.session_id
        kwargs['extra'] = extra
        self.logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self._log(logging.CRITICAL, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        """Log an error together with the active traceback."""
        kwargs['exc_info'] = True
        self._log(logging.ERROR, msg, *args, **kwargs)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    use_colors: bool = True,
    use_emojis: bool = True
) -> logging.Logger:
    """
    Setup structured logging for the framework.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path to also write logs to
        use_colors: Use ANSI colors in console output
        use_emojis: Use emojis in console output

    Returns:
        The configured framework root logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(
        StructuredFormatter(use_colors=use_colors, use_emojis=use_emojis)
    )
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        # Plain text in files
        file_handler.setFormatter(
            StructuredFormatter(use_colors=False, use_emojis=False)
        )
        logger.addHandler(file_handler)

    return logger


def get_logger(component: str) -> ComponentLogger:
    """
    Get a component-specific logger.

    Args:
        component: Component name (e.g., "vad", "recognition", "pipeline")

    Returns:
        ComponentLogger instance
    """
    return ComponentLogger(logging.getLogger(ROOT_LOGGER_NAME), component)
