"""
============================================
Comprehensive pytest suite for core/config.py
============================================

Sections:
---------
1. Unit tests - Environment parsing helpers
2. Integration tests - Config assembled from environment variables
3. Edge case tests - Malformed settings

Available markers:
------------------
unit, integration, edge_case

Test Coverage:
--------------
- _env_positive_int / _env_flag: parsing and defaults
- Config: database, builder and logging sections
- DatabaseConfig: connection string and parameters

How to Execute:
---------------
All tests:          pytest tests/tests_core/test_config.py -v
By category:        pytest tests/tests_core/test_config.py -m unit

Note: Use 'python -m pytest' (not just 'pytest') to ensure correct Python path resolution.
"""

import pytest

from core.config import (
    BuilderConfig,
    Config,
    ConfigurationError,
    DatabaseConfig,
    _env_flag,
    _env_positive_int,
)

BUILDER_VARS = ('QB_IN_LIST_LIMIT', 'QB_INSERT_ROW_LIMIT', 'QB_LOG_SQL')


# ====================
# Fixtures
# ====================

@pytest.fixture
def clean_env(monkeypatch):
    """Remove builder and database variables from the environment."""
    for name in BUILDER_VARS + ('POSTGRES_HOST', 'POSTGRES_PORT', 'POSTGRES_USER',
                                'POSTGRES_PASSWORD', 'POSTGRES_DB', 'LOG_LEVEL', 'LOG_FILE'):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ===============
# 1. UNIT TESTS
# ===============

@pytest.mark.unit
def test_env_positive_int_default_when_unset(clean_env):
    assert _env_positive_int('QB_IN_LIST_LIMIT', 1000) == 1000


@pytest.mark.unit
def test_env_positive_int_parses_value(clean_env):
    clean_env.setenv('QB_IN_LIST_LIMIT', ' 250 ')

    assert _env_positive_int('QB_IN_LIST_LIMIT', 1000) == 250


@pytest.mark.unit
@pytest.mark.parametrize("raw,expected", [
    ('true', True),
    ('1', True),
    ('Yes', True),
    ('off', False),
    ('0', False),
])
def test_env_flag_values(clean_env, raw, expected):
    clean_env.setenv('QB_LOG_SQL', raw)

    assert _env_flag('QB_LOG_SQL', not expected) is expected


@pytest.mark.unit
def test_env_flag_default_when_blank(clean_env):
    clean_env.setenv('QB_LOG_SQL', '  ')

    assert _env_flag('QB_LOG_SQL', True) is True


@pytest.mark.unit
def test_database_config_connection_helpers():
    db = DatabaseConfig(host='db', port=5433, user='app', password='pw', database='sales')

    assert db.get_connection_string() == 'postgresql://app:pw@db:5433/sales'
    assert db.get_connection_params() == {
        'host': 'db', 'port': 5433, 'user': 'app', 'password': 'pw', 'database': 'sales'
    }


@pytest.mark.unit
def test_builder_config_defaults():
    builder = BuilderConfig()

    assert builder.in_list_limit == 1000
    assert builder.insert_row_limit == 558
    assert builder.log_rendered_sql is False


# ======================
# 2. INTEGRATION TESTS
# ======================

@pytest.mark.integration
def test_config_defaults(clean_env):
    cfg = Config()

    assert cfg.builder == BuilderConfig()
    assert cfg.db_host == 'localhost'
    assert cfg.db_port == 5432
    assert cfg.db_name == 'postgres'
    assert cfg.logging.level == 'INFO'
    assert cfg.logging.log_file is None


@pytest.mark.integration
def test_config_reads_environment(clean_env):
    clean_env.setenv('QB_IN_LIST_LIMIT', '500')
    clean_env.setenv('QB_INSERT_ROW_LIMIT', '100')
    clean_env.setenv('QB_LOG_SQL', 'true')
    clean_env.setenv('POSTGRES_HOST', 'warehouse.local')
    clean_env.setenv('POSTGRES_PORT', '6543')
    clean_env.setenv('LOG_LEVEL', 'debug')

    cfg = Config()

    assert cfg.builder.in_list_limit == 500
    assert cfg.builder.insert_row_limit == 100
    assert cfg.builder.log_rendered_sql is True
    assert cfg.db_host == 'warehouse.local'
    assert cfg.db_port == 6543
    assert cfg.logging.level == 'DEBUG'
    assert cfg.get_connection_params()['host'] == 'warehouse.local'


# ====================
# 3. EDGE CASE TESTS
# ====================

@pytest.mark.edge_case
@pytest.mark.parametrize("raw", ['abc', '0', '-5', '1.5'])
def test_malformed_integer_setting_raises(clean_env, raw):
    clean_env.setenv('QB_INSERT_ROW_LIMIT', raw)

    with pytest.raises(ConfigurationError, match="QB_INSERT_ROW_LIMIT"):
        Config()


@pytest.mark.edge_case
def test_configuration_error_is_value_error():
    assert issubclass(ConfigurationError, ValueError)
