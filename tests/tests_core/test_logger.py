"""
============================================
Comprehensive pytest suite for core/logger.py
============================================

Sections:
---------
1. Unit tests - Logger retrieval and formatting
2. Integration tests - Handler setup on the root logger

Available markers:
------------------
unit, integration

Test Coverage:
--------------
- get_logger: named loggers and level overrides
- ColoredFormatter: emoji/color decoration without mutating records
- setup_logging: console and file handlers

How to Execute:
---------------
All tests:          pytest tests/tests_core/test_logger.py -v

Note: Use 'python -m pytest' (not just 'pytest') to ensure correct Python path resolution.
"""

import logging

import pytest

from core.logger import COLORED_FORMAT, ColoredFormatter, get_logger, setup_logging

# ===============
# 1. UNIT TESTS
# ===============

@pytest.mark.unit
def test_get_logger_returns_named_logger():
    logger = get_logger('sql.test_named')

    assert logger is logging.getLogger('sql.test_named')


@pytest.mark.unit
def test_get_logger_level_override():
    logger = get_logger('sql.test_level', level='warning')

    assert logger.level == logging.WARNING


@pytest.mark.unit
def test_colored_formatter_keeps_record_untouched():
    """The formatter decorates a copy, so other handlers see the plain level name."""
    record = logging.LogRecord('sql', logging.ERROR, __file__, 1, 'boom', None, None)
    formatter = ColoredFormatter(COLORED_FORMAT)

    output = formatter.format(record)

    assert 'boom' in output
    assert '❌' in output
    assert '\033[31m' in output
    assert record.levelname == 'ERROR'
    assert not hasattr(record, 'emoji')


# ======================
# 2. INTEGRATION TESTS
# ======================

@pytest.mark.integration
def test_setup_logging_console_handler(restore_root_logging):
    setup_logging(log_level='DEBUG', log_file='', use_colors=True)

    root = restore_root_logging
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, ColoredFormatter)


@pytest.mark.integration
def test_setup_logging_plain_console(restore_root_logging):
    setup_logging(log_level='INFO', log_file='', use_colors=False)

    formatter = restore_root_logging.handlers[0].formatter
    assert not isinstance(formatter, ColoredFormatter)


@pytest.mark.integration
def test_setup_logging_writes_file(restore_root_logging, tmp_path):
    setup_logging(log_level='INFO', log_file='builders.log', log_dir=str(tmp_path), console_output=False)

    get_logger('sql.test_file').info("Flushed 3 INSERT rows")
    for handler in restore_root_logging.handlers:
        handler.flush()

    content = (tmp_path / 'builders.log').read_text(encoding='utf-8')
    assert 'Flushed 3 INSERT rows' in content
    assert 'sql.test_file' in content
