"""
===============================================
Core infrastructure package for the builders.
===============================================

This package provides centralized configuration management and logging
infrastructure used by the SQL statement builders.

Modules:
    config: Configuration management from environment variables
    logger: Centralized logging configuration and utilities

Example:
    >>> from core.config import config
    >>> from core.logger import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info(f"Default INSERT batch size: {config.builder.insert_row_limit}")
"""

__version__ = "0.1.0"
__all__ = ['get_logger', 'setup_logging', 'config', 'Config', 'ConfigurationError']

from core.config import Config, ConfigurationError, config
from core.logger import get_logger, setup_logging
