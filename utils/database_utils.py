"""
==================================================
Statement execution utilities for rendered SQL.
==================================================

Provides the execution collaborator used by ``StatementBuilder.run()``:
the builders only render SQL text, this module prepares it and executes it
with a positional parameter list on a SQLAlchemy engine.

Key Features:
    - Connection string and engine building from config
    - StatementExecutor protocol (prepare + execute)
    - SQLAlchemyExecutor backed by Connection.exec_driver_sql
    - Driver errors wrapped in StatementExecutionError

Example:
    >>> from sql.query_builder import Select
    >>> from utils.database_utils import SQLAlchemyExecutor
    >>>
    >>> executor = SQLAlchemyExecutor()
    >>> result = (
    ...     Select('customers')
    ...     .where(['status = %s'])
    ...     .set_params(['active'])
    ...     .set_executor(executor)
    ...     .run()
    ... )
    >>> print(result.rowcount, result.rows[:5])

Placeholders follow the DBAPI driver's paramstyle (``%s`` for psycopg2).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, Sequence

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError

from core.config import config

logger = logging.getLogger(__name__)


class StatementExecutionError(Exception):
    """Exception raised when the database rejects or fails a statement."""
    pass


@dataclass(frozen=True)
class PreparedStatement:
    """SQL text accepted by an executor, ready to run with parameters."""

    sql: str


@dataclass
class ExecutionResult:
    """Outcome of one executed statement.

    Attributes:
        rows: Fetched rows (empty for statements that return none)
        rowcount: Rows affected as reported by the driver
    """

    rows: List[Any] = field(default_factory=list)
    rowcount: int = -1


class StatementExecutor(Protocol):
    """Interface the builders expect from an execution collaborator."""

    def prepare(self, sql: str) -> Any:
        ...

    def execute(self, statement: Any, params: Sequence[Any]) -> Any:
        ...


def get_connection_string(
    host: str = None,
    port: int = None,
    user: str = None,
    password: str = None,
    database: str = None
) -> str:
    """
    Build PostgreSQL connection string.

    Args:
        host: Database hostname (defaults to config.db_host)
        port: Database port (defaults to config.db_port)
        user: Database user (defaults to config.db_user)
        password: Database password (defaults to config.db_password)
        database: Database name (defaults to config.db_name)

    Returns:
        PostgreSQL connection string with the password URL-encoded
    """
    url = URL.create(
        drivername='postgresql',
        username=user if user is not None else config.db_user,
        password=password if password is not None else config.db_password,
        host=host if host is not None else config.db_host,
        port=port if port is not None else config.db_port,
        database=database if database is not None else config.db_name
    )
    return url.render_as_string(hide_password=False)


def create_sqlalchemy_engine(
    host: str = None,
    port: int = None,
    user: str = None,
    password: str = None,
    database: str = None,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10
) -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    Args:
        host: Database hostname
        port: Database port
        user: Database user
        password: Database password
        database: Database name
        echo: Enable SQL statement logging
        pool_size: Connection pool size
        max_overflow: Maximum overflow connections

    Returns:
        Configured SQLAlchemy Engine
    """
    connection_url = URL.create(
        drivername='postgresql',
        username=user or config.db_user,
        password=password or config.db_password,
        host=host or config.db_host,
        port=port or config.db_port,
        database=database or config.db_name
    )

    return create_engine(
        connection_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True  # Verify connections before using
    )


class SQLAlchemyExecutor:
    """Execution collaborator running rendered SQL on a SQLAlchemy engine.

    Each ``execute`` call runs in its own transaction (``engine.begin()``),
    committed on success and rolled back on failure.

    Attributes:
        engine: Engine in use (created from config on first use if not given)
    """

    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_sqlalchemy_engine()
        return self._engine

    def prepare(self, sql: str) -> PreparedStatement:
        """
        Raises:
            StatementExecutionError: If the SQL text is empty
        """
        if not sql or not sql.strip():
            raise StatementExecutionError("Cannot prepare an empty statement")
        return PreparedStatement(sql=sql)

    def execute(self, statement: PreparedStatement, params: Sequence[Any] = ()) -> ExecutionResult:
        """
        Execute a prepared statement with positional parameters.

        Args:
            statement: Statement returned by prepare()
            params: Positional parameter values

        Returns:
            ExecutionResult with fetched rows and the affected row count

        Raises:
            StatementExecutionError: If the driver raises a SQLAlchemyError
        """
        parameters = tuple(params) if params else None
        logger.debug(f"Executing statement with {len(params or ())} params: {statement.sql}")

        try:
            with self.engine.begin() as conn:
                result = conn.exec_driver_sql(statement.sql, parameters)
                rows = list(result.fetchall()) if result.returns_rows else []
                return ExecutionResult(rows=rows, rowcount=result.rowcount)
        except SQLAlchemyError as e:
            logger.error(f"❌ Statement execution failed: {e}")
            raise StatementExecutionError(f"Statement execution failed: {e}") from e

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
