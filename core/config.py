"""
==============================================
Configuration management for the SQL builders.
==============================================

Loads all configuration from environment variables (.env file) and provides
a centralized Config singleton for application-wide access.

The configuration covers:
- Database connection settings used by the statement executor
- Builder defaults (IN-list chunk size, INSERT batch row limit)
- Logging settings consumed by core.logger

Example:
    >>> from core.config import config
    >>>
    >>> # Builder defaults
    >>> print(config.builder.insert_row_limit)
    558
    >>>
    >>> # Database connection
    >>> engine_url = config.get_connection_string()
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

TRUE_VALUES = ('1', 'true', 'yes', 'on')


class ConfigurationError(ValueError):
    """Exception raised when an environment setting cannot be used."""
    pass


def _env_positive_int(name: str, default: int) -> int:
    """Read a positive integer from the environment.

    Args:
        name: Environment variable name
        default: Value used when the variable is unset or blank

    Returns:
        Parsed integer value

    Raises:
        ConfigurationError: If the value is not an integer or is below 1
    """
    raw = os.getenv(name, '').strip()
    if not raw:
        return default

    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'")

    if value < 1:
        raise ConfigurationError(f"{name} must be greater than 0, got {value}")

    return value


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in TRUE_VALUES


@dataclass
class DatabaseConfig:
    """Database configuration settings.

    Attributes:
        host: PostgreSQL server hostname or IP address
        port: PostgreSQL server port number
        user: Database username
        password: Database password
        database: Database that rendered statements run against
    """

    host: str
    port: int
    user: str
    password: str
    database: str

    def get_connection_string(self) -> str:
        """Get PostgreSQL connection string.

        Returns:
            SQLAlchemy-compatible PostgreSQL connection string
        """
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"

    def get_connection_params(self) -> dict:
        """Get connection parameters as dictionary.

        Returns:
            Dictionary with keys: host, port, user, password, database
        """
        return {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'database': self.database
        }


@dataclass
class BuilderConfig:
    """Defaults applied by the statement builders.

    Attributes:
        in_list_limit: Maximum number of items per ``col IN(...)`` group
        insert_row_limit: Buffered INSERT rows before an automatic flush
        log_rendered_sql: Include the SQL text in render debug logs
    """

    in_list_limit: int = 1000
    insert_row_limit: int = 558
    log_rendered_sql: bool = False


@dataclass
class LoggingConfig:
    """Logging settings used by core.logger.setup_logging.

    Attributes:
        level: Root log level name
        log_file: Optional log file name
        log_dir: Directory for the log file
        use_colors: Colored console output
        auto_configure: Install default handlers when core.logger is imported
    """

    level: str = 'INFO'
    log_file: Optional[str] = None
    log_dir: str = 'logs'
    use_colors: bool = True
    auto_configure: bool = True


class Config:
    """Centralized configuration manager.

    Attributes:
        db: DatabaseConfig instance with database connection settings
        builder: BuilderConfig instance with builder defaults
        logging: LoggingConfig instance with logging settings

    Example:
        >>> config = Config()
        >>> conn_str = config.get_connection_string()
        >>> print(f"Connecting to {config.db_host}:{config.db_port}")
    """

    def __init__(self):
        """Initialize configuration from environment variables.

        Raises:
            ConfigurationError: If an integer setting is malformed
        """
        self.db = DatabaseConfig(
            host=os.getenv('POSTGRES_HOST', 'localhost'),
            port=_env_positive_int('POSTGRES_PORT', 5432),
            user=os.getenv('POSTGRES_USER', 'postgres'),
            password=os.getenv('POSTGRES_PASSWORD', ''),
            database=os.getenv('POSTGRES_DB', 'postgres')
        )

        self.builder = BuilderConfig(
            in_list_limit=_env_positive_int('QB_IN_LIST_LIMIT', 1000),
            insert_row_limit=_env_positive_int('QB_INSERT_ROW_LIMIT', 558),
            log_rendered_sql=_env_flag('QB_LOG_SQL', False)
        )

        self.logging = LoggingConfig(
            level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            log_file=os.getenv('LOG_FILE') or None,
            log_dir=os.getenv('LOG_DIR', 'logs'),
            use_colors=_env_flag('LOG_COLORS', True),
            auto_configure=_env_flag('LOG_AUTO_CONFIGURE', True)
        )

    @property
    def db_host(self) -> str:
        """Get database server hostname."""
        return self.db.host

    @property
    def db_port(self) -> int:
        """Get database server port number."""
        return self.db.port

    @property
    def db_user(self) -> str:
        """Get database username."""
        return self.db.user

    @property
    def db_password(self) -> str:
        """Get database password."""
        return self.db.password

    @property
    def db_name(self) -> str:
        """Get database name."""
        return self.db.database

    def get_connection_string(self) -> str:
        """Get database connection string.

        Returns:
            SQLAlchemy-compatible PostgreSQL connection string
        """
        return self.db.get_connection_string()

    def get_connection_params(self) -> dict:
        """Get database connection parameters.

        Returns:
            Dictionary with keys: host, port, user, password, database
        """
        return self.db.get_connection_params()


# Global configuration instance
config = Config()
