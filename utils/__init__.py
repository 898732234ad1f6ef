"""
==========================
Utility Functions Package.
==========================

Execution helpers that run rendered statements against a database.

Modules:
    database_utils: SQLAlchemy engine helpers and the statement executor
"""

__version__ = "1.0.0"
__all__ = [
    'ExecutionResult',
    'PreparedStatement',
    'SQLAlchemyExecutor',
    'StatementExecutionError',
    'StatementExecutor',
    'create_sqlalchemy_engine',
    'get_connection_string',
]

from .database_utils import (
    ExecutionResult,
    PreparedStatement,
    SQLAlchemyExecutor,
    StatementExecutionError,
    StatementExecutor,
    create_sqlalchemy_engine,
    get_connection_string,
)
