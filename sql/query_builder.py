"""
============================
SQL Statement Builder Core.
============================

This module provides the shared machinery of the fluent statement builders
and the SELECT builder itself.

Every builder collects its clauses through mutator methods and renders them
into one command string on demand:
- render(): always rebuilds the ordered token list ("commands") and caches
  the space-joined result
- get_query(): returns the cached SQL, rendering first when the builder (or
  any builder nested inside it) changed since the last render

Builders:
- StatementBuilder: render/get_query contract, table reference, execution
- ConditionalStatementBuilder: joins, WHERE conditions, ORDER BY, LIMIT
- Select: SELECT statements with WITH, DISTINCT, aggregates, HAVING, OFFSET

The INSERT/UPDATE/DELETE builders live in sql.dml.

Usage:
    from sql.query_builder import Select

    query = (
        Select('users', 'u')
        .columns(['id', 'name'])
        .where(['u.age > 18'])
        .order_by(['u.name'])
        .limit(10)
        .get_query()
    )
    # 'SELECT id,name FROM users u WHERE u.age > 18 ORDER BY u.name LIMIT 10'

A builder is not thread-safe: build one statement per builder instance.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from core.config import config
from core.logger import get_logger
from sql.conditions import ChainElement, ConditionChain, where_between, where_in

logger = get_logger(__name__)

COMMAND_SEPARATOR = ','
NULL_LITERALS = ('null',)

ConditionLike = Union[str, ChainElement, ConditionChain]


class QueryBuilderError(Exception):
    """Base exception for statement builder failures."""
    pass


class InvalidConfigurationError(QueryBuilderError, ValueError):
    """Raised by a mutator that receives an unusable setting.

    Covers unknown join types or connectors, invalid limits, offsets,
    execution times and batch sizes.
    """
    pass


class MissingStateError(QueryBuilderError):
    """Raised when a builder lacks required state at render or run time."""
    pass


def render_value(value: Any) -> str:
    """Render a value token, mapping empty and null values to ``NULL``.

    Values are emitted verbatim; quoting is the caller's responsibility.
    """
    if value is None:
        return 'NULL'
    text = str(value)
    if not text or text.strip().lower() in NULL_LITERALS:
        return 'NULL'
    return text


def render_condition(condition: ConditionLike) -> str:
    """Snapshot a condition item (string, chain element or chain) as text."""
    if isinstance(condition, (ChainElement, ConditionChain)):
        return condition.render()
    if condition is None:
        return ''
    return str(condition).strip()


class JoinType(Enum):
    """Supported join types and their SQL keywords."""

    INNER = 'INNER JOIN'
    LEFT = 'LEFT JOIN'
    RIGHT = 'RIGHT JOIN'
    OUTER = 'FULL OUTER JOIN'
    NATURAL = 'NATURAL JOIN'

    @classmethod
    def parse(cls, value: Union['JoinType', str]) -> 'JoinType':
        """Resolve a join type from its name, case-insensitively.

        ``OUTTER`` and ``FULL`` are accepted as aliases of OUTER.

        Raises:
            InvalidConfigurationError: If the name is not recognized
        """
        if isinstance(value, JoinType):
            return value

        name = str(value).strip().upper()
        if name.endswith(' JOIN'):
            name = name[:-len(' JOIN')].strip()
        name = {'OUTTER': 'OUTER', 'FULL': 'OUTER', 'FULL OUTER': 'OUTER'}.get(name, name)

        try:
            return cls[name]
        except KeyError:
            raise InvalidConfigurationError(f"Join type not recognized: {value!r}")


class TableRefKind(Enum):
    NAME = 'name'
    SUBQUERY = 'subquery'


@dataclass(frozen=True)
class TableRef:
    """A table reference: either a plain name or a nested builder.

    Attributes:
        kind: TableRefKind tag
        name: Table name when kind is NAME
        subquery: Nested builder when kind is SUBQUERY
    """

    kind: TableRefKind
    name: Optional[str] = None
    subquery: Optional['StatementBuilder'] = None

    @classmethod
    def named(cls, name: str) -> 'TableRef':
        return cls(kind=TableRefKind.NAME, name=name)

    @classmethod
    def nested(cls, builder: 'StatementBuilder') -> 'TableRef':
        return cls(kind=TableRefKind.SUBQUERY, subquery=builder)

    @classmethod
    def coerce(cls, target: Union[str, 'StatementBuilder', 'TableRef']) -> 'TableRef':
        """Wrap a name or builder given by the caller into a TableRef."""
        if isinstance(target, TableRef):
            return target
        if isinstance(target, StatementBuilder):
            return cls.nested(target)
        if isinstance(target, str):
            return cls.named(target)
        raise TypeError(f"Table must be a name or a statement builder, got {type(target).__name__}")

    @property
    def is_empty(self) -> bool:
        return self.kind is TableRefKind.NAME and not (self.name or '').strip()

    def render(self) -> str:
        if self.kind is TableRefKind.SUBQUERY:
            return f"({self.subquery.get_query()})"
        return self.name.strip()


@dataclass
class JoinSpec:
    """One JOIN clause.

    Attributes:
        type: JoinType
        target: Joined table or nested builder
        alias: Optional alias of the joined target
        predicate: ON predicate text, None for NATURAL joins
    """

    type: JoinType
    target: TableRef
    alias: Optional[str] = None
    predicate: Optional[str] = None

    def render_tokens(self) -> List[str]:
        tokens = [self.type.value, self.target.render()]

        if self.alias:
            tokens.append(self.alias)

        if self.type is not JoinType.NATURAL and self.predicate:
            tokens.extend(['ON', self.predicate])

        return tokens


class StatementBuilder:
    """Base class implementing the lazy render contract.

    Every mutator calls ``_mark_dirty()``, which bumps a revision counter.
    ``render()`` records the revision fingerprint of the builder and of every
    builder nested inside it; the cached SQL is served by ``get_query()``
    only while that fingerprint is unchanged.
    """

    STATEMENT = ''

    def __init__(self):
        self._table: Optional[TableRef] = None
        self._commands: List[str] = []
        self._sql: Optional[str] = None
        self._revision = 0
        self._rendered_fingerprint: Optional[Tuple] = None
        self._params: List[Any] = []
        self._executor = None

    def _mark_dirty(self) -> None:
        self._revision += 1

    def _subqueries(self) -> List['StatementBuilder']:
        """Builders nested in this one whose changes invalidate the cache."""
        if self._table is not None and self._table.kind is TableRefKind.SUBQUERY:
            return [self._table.subquery]
        return []

    def _fingerprint(self) -> Tuple:
        return (self._revision, tuple(child._fingerprint() for child in self._subqueries()))

    @property
    def is_rendered(self) -> bool:
        return self._sql is not None and self._rendered_fingerprint == self._fingerprint()

    # ------------------------------------------------------------------
    # Table
    # ------------------------------------------------------------------

    def set_table_name(self, table: Union[str, 'StatementBuilder', TableRef, None]) -> 'StatementBuilder':
        self._table = None if table is None else TableRef.coerce(table)
        self._mark_dirty()
        return self

    def get_table_name(self) -> Optional[str]:
        """Return the table name, or None for nested or unset tables."""
        if self._table is None or self._table.kind is not TableRefKind.NAME:
            return None
        return self._table.name

    def get_table(self) -> Optional[TableRef]:
        return self._table

    def _require_table(self) -> TableRef:
        if self._table is None or self._table.is_empty:
            raise MissingStateError(f"Table name is required to render {self.STATEMENT}")
        return self._table

    # ------------------------------------------------------------------
    # Render contract
    # ------------------------------------------------------------------

    def _build_commands(self) -> List[str]:
        raise NotImplementedError

    @staticmethod
    def _strip_last_command_separator(commands: List[str]) -> None:
        """Remove the trailing separator of the last command, in place."""
        if commands:
            commands[-1] = commands[-1].rstrip(COMMAND_SEPARATOR)

    def render(self) -> 'StatementBuilder':
        """Rebuild the SQL text from the current clause state."""
        commands = [str(command) for command in self._build_commands()]
        commands = [command for command in commands if command.strip()]

        self._commands = commands
        self._sql = ' '.join(commands)
        self._rendered_fingerprint = self._fingerprint()

        if config.builder.log_rendered_sql:
            logger.debug(f"Rendered {self.STATEMENT} statement: {self._sql}")
        else:
            logger.debug(f"Rendered {self.STATEMENT} statement ({len(commands)} commands)")

        return self

    def get_query(self) -> str:
        """Return the SQL text, rendering first if the cache is stale."""
        if not self.is_rendered:
            self.render()
        return self._sql

    def get_commands(self) -> List[str]:
        return list(self._commands)

    def __str__(self) -> str:
        return self.get_query()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def set_executor(self, executor) -> 'StatementBuilder':
        """Attach the collaborator used by run() (see utils.database_utils)."""
        self._executor = executor
        return self

    def set_params(self, params: Sequence[Any]) -> 'StatementBuilder':
        self._params = list(params)
        return self

    def get_params(self) -> List[Any]:
        return list(self._params)

    def run(self) -> Any:
        """Prepare the rendered SQL with the executor and execute it.

        Returns:
            Whatever the executor returns for the executed statement

        Raises:
            MissingStateError: If no executor was attached
        """
        if self._executor is None:
            raise MissingStateError("No executor set; call set_executor() before run()")

        sql = self.get_query()
        logger.debug(f"Running {self.STATEMENT} statement with {len(self._params)} params")
        statement = self._executor.prepare(sql)
        return self._executor.execute(statement, self.get_params())


class ConditionalStatementBuilder(StatementBuilder):
    """Adds joins, WHERE conditions, ORDER BY and LIMIT handling.

    Conditions are kept as a flat token list: each condition text preceded
    by its connector literal, except the first one.
    """

    PERMITTED_COND_CONNECTORS = ('AND', 'OR')

    where_in = staticmethod(where_in)
    where_between = staticmethod(where_between)

    def __init__(self, table: Union[str, StatementBuilder, None] = None, alias: Optional[str] = None):
        super().__init__()
        self._table_alias: Optional[str] = None
        self._joins: Dict[str, JoinSpec] = {}
        self._conditions: List[str] = []
        self._order_by: List[str] = []
        self._limit: Optional[int] = None
        self._max_execution_time: Optional[int] = None

        if table is not None:
            self.from_(table, alias)

    def _subqueries(self) -> List[StatementBuilder]:
        children = super()._subqueries()
        for join in self._joins.values():
            if join.target.kind is TableRefKind.SUBQUERY:
                children.append(join.target.subquery)
        return children

    # ------------------------------------------------------------------
    # Table
    # ------------------------------------------------------------------

    def from_(self, table: Union[str, StatementBuilder, TableRef], alias: Optional[str] = None):
        self.set_table_name(table)
        self.set_table_alias(alias)
        return self

    def set_table_alias(self, alias: Optional[str] = None):
        self._table_alias = alias or None
        self._mark_dirty()
        return self

    def get_table_alias(self) -> Optional[str]:
        return self._table_alias

    # ------------------------------------------------------------------
    # Joins
    # ------------------------------------------------------------------

    def join(
        self,
        join_type: Union[JoinType, str],
        target: Union[str, StatementBuilder, TableRef],
        alias: Optional[str] = None,
        conditions: Union[ConditionLike, Sequence[ConditionLike], None] = None
    ):
        """
        Add or replace a join, keyed by alias.

        Args:
            join_type: INNER, LEFT, RIGHT, OUTER or NATURAL (case-insensitive)
            target: Table name or nested builder
            alias: Alias of the joined target; a later join with the same
                alias replaces this one
            conditions: ON predicate(s); several items are joined by AND

        Raises:
            InvalidConfigurationError: For an unknown join type, or a
                non-natural join without conditions
        """
        join_type = JoinType.parse(join_type)
        table_ref = TableRef.coerce(target)

        predicate = None
        if join_type is not JoinType.NATURAL:
            predicate = self._join_conditions(conditions)
            if not predicate:
                raise InvalidConfigurationError(f"{join_type.value} requires ON conditions")

        key = alias or (table_ref.name if table_ref.kind is TableRefKind.NAME else str(id(table_ref.subquery)))
        self._joins[key] = JoinSpec(type=join_type, target=table_ref, alias=alias or None, predicate=predicate)
        self._mark_dirty()
        return self

    @staticmethod
    def _join_conditions(conditions) -> str:
        if conditions is None:
            return ''
        if isinstance(conditions, (str, ChainElement, ConditionChain)):
            conditions = [conditions]
        texts = [render_condition(condition) for condition in conditions]
        return ' AND '.join(text for text in texts if text)

    def inner_join(self, target, alias: Optional[str], conditions):
        return self.join(JoinType.INNER, target, alias, conditions)

    def left_join(self, target, alias: Optional[str], conditions):
        return self.join(JoinType.LEFT, target, alias, conditions)

    def right_join(self, target, alias: Optional[str], conditions):
        return self.join(JoinType.RIGHT, target, alias, conditions)

    def outer_join(self, target, alias: Optional[str], conditions):
        return self.join(JoinType.OUTER, target, alias, conditions)

    def natural_join(self, target, alias: Optional[str] = None):
        return self.join(JoinType.NATURAL, target, alias)

    def remove_join(self, alias: str):
        if alias in self._joins:
            del self._joins[alias]
            self._mark_dirty()
        return self

    def clear_joins(self):
        self._joins = {}
        self._mark_dirty()
        return self

    def get_joins(self) -> Dict[str, JoinSpec]:
        return dict(self._joins)

    # ------------------------------------------------------------------
    # Conditions
    # ------------------------------------------------------------------

    def where(self, conditions: Union[ConditionLike, Sequence[ConditionLike]]):
        """Replace the WHERE conditions; several items are joined by AND."""
        self._conditions = []
        self._mark_dirty()
        if isinstance(conditions, (str, ChainElement, ConditionChain)):
            conditions = [conditions]
        return self.add_conditions(conditions, 'AND')

    def add_condition(self, condition: ConditionLike, connector: str = 'AND'):
        """
        Append one condition with the given connector.

        An empty condition is ignored. Chains are rendered at call time.

        Raises:
            InvalidConfigurationError: If connector is not AND or OR
        """
        connector = str(connector).strip().upper()
        if connector not in self.PERMITTED_COND_CONNECTORS:
            raise InvalidConfigurationError(f"Condition connector not recognized: {connector!r}")

        text = render_condition(condition)
        if not text:
            return self

        if self._conditions:
            self._conditions.append(connector)
        self._conditions.append(text)
        self._mark_dirty()
        return self

    def add_conditions(self, conditions: Sequence[ConditionLike], connector: str = 'AND'):
        for condition in conditions:
            self.add_condition(condition, connector)
        return self

    def add_condition_and(self, conditions: Sequence[ConditionLike]):
        return self.add_conditions(conditions, 'AND')

    def add_condition_or(self, conditions: Sequence[ConditionLike]):
        return self.add_conditions(conditions, 'OR')

    def where_and(self, conditions: Sequence[ConditionLike]):
        return self.add_condition_and(conditions)

    def where_or(self, conditions: Sequence[ConditionLike]):
        return self.add_condition_or(conditions)

    def clear_conditions(self):
        self._conditions = []
        self._mark_dirty()
        return self

    def get_conditions(self) -> List[str]:
        return list(self._conditions)

    # ------------------------------------------------------------------
    # ORDER BY / LIMIT
    # ------------------------------------------------------------------

    def order_by(self, columns: Sequence[str]):
        """Append ORDER BY expressions (e.g. ``'name DESC'``)."""
        if isinstance(columns, str):
            columns = [columns]
        for column in columns:
            self._order_by.append(f"{column}{COMMAND_SEPARATOR}")
        self._mark_dirty()
        return self

    def clear_order_by(self):
        self._order_by = []
        self._mark_dirty()
        return self

    def limit(self, limit: int):
        """Set LIMIT; 0 removes it.

        Raises:
            InvalidConfigurationError: If limit is negative
        """
        if limit < 0:
            raise InvalidConfigurationError(f"Limit must be 0 or greater, got {limit}")
        self._limit = limit or None
        self._mark_dirty()
        return self

    def set_max_execution_time(self, milliseconds: int):
        """
        Set the maximum execution time in milliseconds.

        The value is not enforced here. SELECT writes it into the SQL as the
        optimizer hint ``/*+ MAX_EXECUTION_TIME(ms) */``; UPDATE and DELETE
        only keep it for the caller, as the hint is SELECT-only. 0 removes it.

        Raises:
            InvalidConfigurationError: If the value is not a non-negative integer
        """
        if isinstance(milliseconds, bool) or not isinstance(milliseconds, int) or milliseconds < 0:
            raise InvalidConfigurationError(
                f"Max execution time must be an integer of 0 or more milliseconds, got {milliseconds!r}"
            )
        self._max_execution_time = milliseconds or None
        self._mark_dirty()
        return self

    def get_max_execution_time(self) -> Optional[int]:
        return self._max_execution_time

    # ------------------------------------------------------------------
    # Clause rendering
    # ------------------------------------------------------------------

    def _render_table(self, commands: List[str]) -> None:
        commands.append(self._require_table().render())
        if self._table_alias:
            commands.append(self._table_alias)

    def _render_joins(self, commands: List[str]) -> None:
        for join in self._joins.values():
            commands.extend(join.render_tokens())

    def _render_where_clause(self, commands: List[str]) -> None:
        if not self._conditions:
            return
        commands.append('WHERE')
        commands.append(' '.join(self._conditions))

    def _render_order_by_clause(self, commands: List[str]) -> None:
        if not self._order_by:
            return
        commands.append('ORDER BY')
        commands.append(' '.join(self._order_by))
        self._strip_last_command_separator(commands)

    def _render_limit_clause(self, commands: List[str]) -> None:
        if not self._limit:
            return
        commands.append('LIMIT')
        commands.append(str(self._limit))


class Select(ConditionalStatementBuilder):
    """
    SELECT statement builder.

    Clause order: WITH, SELECT [hint] [DISTINCT] columns, FROM, joins,
    WHERE, GROUP BY, HAVING, ORDER BY, LIMIT, OFFSET.

    Columns given as a list are positional and render as-is; columns given as
    a mapping render ``expression AS alias`` (keys are aliases). GROUP BY is
    emitted when aggregation is flagged or aggregate columns exist, and lists
    the plain (non-aggregate) column expressions.
    """

    STATEMENT = 'SELECT'

    def __init__(self, table: Union[str, StatementBuilder, None] = None, alias: Optional[str] = None):
        self._columns: List[Tuple[str, Optional[str]]] = []
        self._columns_aliases: Dict[str, str] = {}
        self._aggregates: List[Tuple[str, str, Optional[str]]] = []
        self._aggregation = False
        self._having: List[str] = []
        self._with: Dict[str, TableRef] = {}
        self._recursive = False
        self._distinct = False
        self._offset: Optional[int] = None
        super().__init__(table, alias)

    def _subqueries(self) -> List[StatementBuilder]:
        children = super()._subqueries()
        for query in self._with.values():
            if query.kind is TableRefKind.SUBQUERY:
                children.append(query.subquery)
        return children

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def columns(self, columns: Union[Sequence[str], Mapping[str, str]]):
        """Replace the column list.

        Args:
            columns: List of expressions, or mapping of alias -> expression
        """
        self._columns = []
        if isinstance(columns, Mapping):
            for alias, expression in columns.items():
                self._columns.append((expression, alias))
        else:
            if isinstance(columns, str):
                columns = [columns]
            for expression in columns:
                self._columns.append((expression, None))
        self._mark_dirty()
        return self

    def set_columns(self, columns: Union[Sequence[str], Mapping[str, str]]):
        return self.columns(columns)

    def add_column(self, expression: str, alias: Optional[str] = None):
        self._columns.append((expression, alias))
        self._mark_dirty()
        return self

    def set_columns_aliases(self, aliases: Mapping[str, str]):
        """Alias positional columns: mapping of expression -> alias."""
        self._columns_aliases = dict(aliases)
        self._mark_dirty()
        return self

    def add_aggregate(self, function: str, column: str, alias: Optional[str] = None):
        """Add an aggregated column such as ``COUNT(id) AS total``."""
        self._aggregates.append((function.strip().upper(), column, alias))
        self._mark_dirty()
        return self

    def aggregate(self, enabled: bool = True):
        """Flag the query as aggregated so GROUP BY is emitted."""
        self._aggregation = enabled
        self._mark_dirty()
        return self

    def distinct(self, enabled: bool = True):
        self._distinct = enabled
        self._mark_dirty()
        return self

    # ------------------------------------------------------------------
    # WITH / HAVING / OFFSET / hints
    # ------------------------------------------------------------------

    def with_query(self, name: str, query: Union[str, StatementBuilder]):
        """Add a named sub-query to the WITH clause (string or builder)."""
        self._with[name] = TableRef.coerce(query)
        self._mark_dirty()
        return self

    def recursive(self, enabled: bool = True):
        """Render ``WITH RECURSIVE`` instead of ``WITH``."""
        self._recursive = enabled
        self._mark_dirty()
        return self

    def clear_with(self):
        self._with = {}
        self._mark_dirty()
        return self

    def having(self, conditions: Union[ConditionLike, Sequence[ConditionLike]]):
        """Replace the HAVING conditions; several items are joined by AND."""
        self._having = []
        self._mark_dirty()
        if isinstance(conditions, (str, ChainElement, ConditionChain)):
            conditions = [conditions]
        for condition in conditions:
            self.add_having(condition)
        return self

    def add_having(self, condition: ConditionLike, connector: str = 'AND'):
        connector = str(connector).strip().upper()
        if connector not in self.PERMITTED_COND_CONNECTORS:
            raise InvalidConfigurationError(f"Condition connector not recognized: {connector!r}")

        text = render_condition(condition)
        if not text:
            return self

        if self._having:
            self._having.append(connector)
        self._having.append(text)
        self._mark_dirty()
        return self

    def offset(self, offset: int):
        """Set OFFSET; 0 removes it.

        Raises:
            InvalidConfigurationError: If offset is negative
        """
        if offset < 0:
            raise InvalidConfigurationError(f"Offset must be 0 or greater, got {offset}")
        self._offset = offset or None
        self._mark_dirty()
        return self

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _column_tokens(self) -> List[str]:
        tokens = []
        for expression, alias in self._columns:
            alias = alias or self._columns_aliases.get(expression)
            if alias and alias != expression:
                tokens.append(f"{expression} AS {alias}")
            else:
                tokens.append(expression)

        for function, column, alias in self._aggregates:
            aggregate = f"{function}({column})"
            tokens.append(f"{aggregate} AS {alias}" if alias else aggregate)

        return tokens

    def _render_with_clause(self, commands: List[str]) -> None:
        if not self._with:
            return
        commands.append('WITH RECURSIVE' if self._recursive else 'WITH')
        for name, query in self._with.items():
            body = query.render() if query.kind is TableRefKind.SUBQUERY else f"({query.name})"
            commands.append(f"{name} AS {body}{COMMAND_SEPARATOR}")
        self._strip_last_command_separator(commands)

    def _render_group_by_clause(self, commands: List[str]) -> None:
        if not (self._aggregation or self._aggregates):
            return
        plain_columns = [expression for expression, _ in self._columns]
        if not plain_columns:
            return
        commands.append('GROUP BY')
        commands.append(COMMAND_SEPARATOR.join(plain_columns))

    def _build_commands(self) -> List[str]:
        self._require_table()
        commands: List[str] = []

        self._render_with_clause(commands)

        commands.append('SELECT')
        if self._max_execution_time:
            commands.append(f"/*+ MAX_EXECUTION_TIME({self._max_execution_time}) */")
        if self._distinct:
            commands.append('DISTINCT')
        commands.append(COMMAND_SEPARATOR.join(self._column_tokens()) or '*')

        commands.append('FROM')
        self._render_table(commands)

        self._render_joins(commands)
        self._render_where_clause(commands)
        self._render_group_by_clause(commands)

        if self._having:
            commands.append('HAVING')
            commands.append(' '.join(self._having))

        self._render_order_by_clause(commands)
        self._render_limit_clause(commands)

        if self._offset:
            commands.append('OFFSET')
            commands.append(str(self._offset))

        return commands
