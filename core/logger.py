"""
==================================================
Centralized logging configuration for the builders.
==================================================

Provides consistent logging setup across all modules with:
- File and console output
- Log level, file and colors taken from core.config by default
- Colored console output with emojis
- Module-specific loggers

Builders never install handlers themselves; they only ask for a named
logger. Applications call setup_logging() once, or rely on the default
configuration installed at import time (disable with LOG_AUTO_CONFIGURE=false).

Example:
    >>> from core.logger import get_logger, setup_logging
    >>>
    >>> setup_logging(log_level='DEBUG', log_file='builders.log')
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.debug("Rendered SELECT statement")
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from core.config import config

DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
COLORED_FORMAT = '%(emoji)s %(asctime)s - %(name)s - %(levelname)s - %(message)s'


class ColoredFormatter(logging.Formatter):
    """Console formatter adding ANSI colors and an emoji per level.

    The record is copied before decoration so that other handlers sharing
    the same record still see the undecorated level name.
    """

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }
    RESET = '\033[0m'

    EMOJI = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️ ',
        'WARNING': '⚠️ ',
        'ERROR': '❌',
        'CRITICAL': '🔥'
    }

    def format(self, record: logging.LogRecord) -> str:
        decorated = logging.makeLogRecord(record.__dict__)
        levelname = record.levelname
        decorated.emoji = self.EMOJI.get(levelname, '')
        if levelname in self.COLORS:
            decorated.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        return super().format(decorated)


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a logger instance for the specified module.

    Args:
        name: Logger name (typically __name__ of calling module)
        level: Optional logging level override (DEBUG/INFO/WARNING/ERROR/CRITICAL)

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if level:
        logger.setLevel(getattr(logging, level.upper()))

    return logger


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_dir: Optional[str] = None,
    console_output: bool = True,
    use_colors: Optional[bool] = None
) -> None:
    """Setup centralized logging configuration.

    Configures the root logger with console and/or file handlers. Any
    argument left as None falls back to ``config.logging``.

    Args:
        log_level: Logging level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
        log_file: Optional log file name (e.g., 'builders.log')
        log_dir: Optional log directory path
        console_output: If True, output to console (stdout)
        use_colors: If True, use colored output for console

    Example:
        >>> setup_logging(log_level='DEBUG', log_file='builders.log', log_dir='logs')
    """
    settings = config.logging
    level = getattr(logging, (log_level or settings.level).upper())
    log_file = log_file if log_file is not None else settings.log_file
    log_dir = log_dir if log_dir is not None else settings.log_dir
    use_colors = settings.use_colors if use_colors is None else use_colors

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        if use_colors:
            console_handler.setFormatter(ColoredFormatter(COLORED_FORMAT, datefmt=DATE_FORMAT))
        else:
            console_handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_dir or 'logs')
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path / log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)


def _init_default_logging():
    """Install the configured defaults if nobody configured logging yet."""
    if config.logging.auto_configure and not logging.getLogger().handlers:
        setup_logging()


# Auto-initialize on import
_init_default_logging()
