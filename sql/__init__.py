"""
=====================================================
SQL statement builders with fluent configuration.
=====================================================

This package assembles SELECT/INSERT/UPDATE/DELETE command text from fluent
mutator calls. Rendered SQL can be paired with a positional parameter list
and handed to an execution collaborator (see utils.database_utils).

The package follows a clear organization:
    - conditions.py: condition chains (nodes, groups) and IN/BETWEEN helpers
    - query_builder.py: shared render contract, joins, errors and SELECT
    - dml.py: INSERT (with batch buffering), UPDATE and DELETE

Architecture:
    - conditions.py has no dependency on the builders
    - dml.py imports from query_builder.py (not vice versa)
    - Builders cache their SQL and re-render after any mutation

Example:
    >>> from sql import ConditionNode as Cond, Select
    >>>
    >>> active = Cond('u.status').equals("'active'").and_(Cond('u.deleted_at').is_null())
    >>> Select('users', 'u').columns(['u.id']).where(active).get_query()
    "SELECT u.id FROM users u WHERE u.status = 'active' AND u.deleted_at IS NULL"
"""

__version__ = "1.0.0"
__all__ = [
    # Conditions
    'Operator', 'Connector', 'ChainElement', 'ConditionNode', 'Group',
    'ConditionChain', 'where_in', 'where_between',
    # Builders
    'StatementBuilder', 'ConditionalStatementBuilder', 'Select',
    'BatchInsertBuffer', 'Insert', 'Update', 'Delete',
    'JoinType', 'JoinSpec', 'TableRef', 'TableRefKind',
    # Errors
    'QueryBuilderError', 'InvalidConfigurationError', 'MissingStateError',
]

from .conditions import (
    ChainElement,
    ConditionChain,
    ConditionNode,
    Connector,
    Group,
    Operator,
    where_between,
    where_in,
)
from .dml import BatchInsertBuffer, Delete, Insert, Update
from .query_builder import (
    ConditionalStatementBuilder,
    InvalidConfigurationError,
    JoinSpec,
    JoinType,
    MissingStateError,
    QueryBuilderError,
    Select,
    StatementBuilder,
    TableRef,
    TableRefKind,
)
