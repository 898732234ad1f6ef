"""
===========================================
Data Manipulation Language (DML) Builders.
===========================================

This module provides the fluent INSERT, UPDATE and DELETE builders.

Classes:
- BatchInsertBuffer: pending INSERT rows with an overflow-triggered flush
- Insert: multi-row INSERT with column tracking and batch flushing
- Update: UPDATE with joins, SET list, WHERE (mandatory), ORDER BY, LIMIT
- Delete: DELETE with joins, WHERE, ORDER BY, LIMIT

Usage:
    from sql.dml import Insert, Update, Delete

    # Batched insert, flushed every 500 rows through a callback
    insert = Insert('staging_customers').set_column_tracking(True)
    insert.set_row_limit(500).on_flush(lambda builder: execute(builder.get_query()))
    insert.add_rows(rows)
    final_sql = insert.get_query()

    # Update with a mandatory WHERE
    sql = (
        Update('customers', 'c')
        .add_set_item('status', "'inactive'")
        .where(['c.last_login < :cutoff'])
        .get_query()
    )
    # "UPDATE customers c SET status='inactive' WHERE c.last_login < :cutoff"

Values are emitted verbatim. In INSERT rows None, '' and 'null' render as
NULL; in UPDATE SET items only None does.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd

from core.config import config
from core.logger import get_logger
from sql.query_builder import (
    COMMAND_SEPARATOR,
    ConditionalStatementBuilder,
    InvalidConfigurationError,
    MissingStateError,
    StatementBuilder,
    render_value,
)

logger = get_logger(__name__)

Row = Union[Mapping[str, Any], Sequence[Any]]
FlushCallback = Callable[[Any], None]


class BatchInsertBuffer:
    """Accumulates INSERT rows and flushes them in batches.

    A single in-progress row is filled column by column (``set_value``) and
    moved into the pending rows by ``prepare_row``. Adding a row while the
    buffer already holds ``row_limit`` rows flushes first.

    Attributes:
        pending_row: Column -> value mapping of the row being built
        pending_rows: Rows waiting for the next flush
        row_limit: Rows held before an automatic flush
        total_flushed: Rows handed to flush so far
        on_flush: Optional callback receiving ``owner`` on each flush
        owner: Object passed to the callback (the buffer itself by default)
    """

    DEFAULT_ROW_LIMIT = 558

    def __init__(
        self,
        row_limit: Optional[int] = None,
        on_flush: Optional[FlushCallback] = None,
        owner: Any = None
    ):
        self.pending_row: Dict[str, Any] = {}
        self.pending_rows: List[Row] = []
        self.row_limit = self.DEFAULT_ROW_LIMIT
        self.total_flushed = 0
        self.on_flush = on_flush
        self.owner = owner if owner is not None else self

        self.set_row_limit(row_limit if row_limit is not None else config.builder.insert_row_limit)

    @property
    def pending_count(self) -> int:
        return len(self.pending_rows)

    def set_row_limit(self, limit: int) -> None:
        """
        Raises:
            InvalidConfigurationError: If limit is not a positive integer
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise InvalidConfigurationError(f"Row limit must be greater than 0, got {limit!r}")
        self.row_limit = limit

    def set_value(self, column: str, value: Any) -> None:
        self.pending_row[column] = value

    def add_row(self, row: Row) -> None:
        if self.pending_count >= self.row_limit:
            self.flush()
        self.pending_rows.append(row)

    def prepare_row(self) -> bool:
        """Move the in-progress row into the pending rows.

        Returns:
            True if a row was moved
        """
        if not self.pending_row:
            return False
        row = self.pending_row
        self.pending_row = {}
        self.add_row(row)
        return True

    def flush(self) -> int:
        """
        Hand the pending rows to the callback, then clear them.

        The callback runs before the rows are cleared so it can render the
        batch. If it raises, the exception propagates and the rows stay.
        Rendering from the callback may itself flush (when it moves the
        in-progress row into a full buffer); only the rows still pending
        after the callback returns are counted here.

        Returns:
            Number of rows flushed
        """
        if not self.pending_rows:
            return 0

        if self.on_flush is not None:
            self.on_flush(self.owner)

        count = self.pending_count
        self.total_flushed += count
        self.pending_rows = []
        logger.info(f"Flushed {count} INSERT rows ({self.total_flushed} in total)")
        return count

    def clear_pending_row(self) -> None:
        self.pending_row = {}

    def clear_pending_rows(self) -> None:
        self.pending_rows = []

    def clear(self) -> None:
        self.clear_pending_row()
        self.clear_pending_rows()
        self.total_flushed = 0


class Insert(StatementBuilder):
    """
    INSERT statement builder with batched rows.

    Rows come from ``set(column, value)`` calls (one in-progress row) or
    from ``add_row``/``add_rows``/``add_dataframe``. With column tracking
    enabled, mapping rows register their keys as columns and every row is
    rendered in declared column order, missing keys becoming NULL; otherwise
    each row's values are used in their own order.
    """

    STATEMENT = 'INSERT'

    def __init__(self, table: Optional[str] = None, row_limit: Optional[int] = None):
        super().__init__()
        self._columns: List[str] = []
        self._track_columns = False
        self._buffer = BatchInsertBuffer(row_limit=row_limit, owner=self)

        if table:
            self.into(table)

    # ------------------------------------------------------------------
    # Table / columns
    # ------------------------------------------------------------------

    def into(self, table: str) -> 'Insert':
        return self.set_table_name(table)

    def set_table_name(self, table: Optional[str]) -> 'Insert':
        if table is not None and not isinstance(table, str):
            raise TypeError("INSERT target must be a table name")
        return super().set_table_name(table)

    def set_column_tracking(self, enabled: bool = True) -> 'Insert':
        self._track_columns = enabled
        self._mark_dirty()
        return self

    def is_tracking_columns(self) -> bool:
        return self._track_columns

    def set_columns(self, columns: Sequence[str]) -> 'Insert':
        self._columns = []
        for column in columns:
            self.add_column(column)
        self._mark_dirty()
        return self

    def get_columns(self) -> List[str]:
        return list(self._columns)

    def add_column(self, column: str) -> 'Insert':
        """
        Raises:
            InvalidConfigurationError: If the column name is empty
        """
        if not column or not str(column).strip():
            raise InvalidConfigurationError("Not a valid column name: empty value passed")
        if not self.is_column_set(column):
            self._columns.append(column)
            self._mark_dirty()
        return self

    def is_column_set(self, column: str) -> bool:
        return column in self._columns

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def set(self, column: str, value: Any) -> 'Insert':
        """Set one column of the in-progress row."""
        self.add_column(column)
        self._buffer.set_value(column, value)
        self._mark_dirty()
        return self

    def add_row(self, row: Row) -> 'Insert':
        """Queue one row, flushing first when the buffer is full."""
        if self._track_columns and isinstance(row, Mapping):
            for column in row:
                self.add_column(column)
        self._buffer.add_row(row)
        self._mark_dirty()
        return self

    def add_rows(self, rows: Sequence[Row]) -> 'Insert':
        for row in rows:
            self.add_row(row)
        return self

    def add_dataframe(self, frame: pd.DataFrame) -> 'Insert':
        """
        Queue every row of a DataFrame as a mapping row.

        Missing values (NaN/NA/NaT) become NULL. Column tracking is enabled
        so values line up with the frame's column order.
        """
        if not self._track_columns:
            self.set_column_tracking(True)
        cleaned = frame.astype(object).where(frame.notna(), None)
        return self.add_rows(cleaned.to_dict(orient='records'))

    def prepare_row(self) -> 'Insert':
        if self._buffer.prepare_row():
            self._mark_dirty()
        return self

    def clear_pending_row(self) -> 'Insert':
        self._buffer.clear_pending_row()
        self._mark_dirty()
        return self

    def clear_pending_rows(self) -> 'Insert':
        self._buffer.clear_pending_rows()
        self._mark_dirty()
        return self

    def clear_rows(self) -> 'Insert':
        """Drop all rows and reset the flushed-rows total."""
        self._buffer.clear()
        self._mark_dirty()
        return self

    # ------------------------------------------------------------------
    # Batching
    # ------------------------------------------------------------------

    def set_row_limit(self, limit: int) -> 'Insert':
        self._buffer.set_row_limit(limit)
        return self

    def on_flush(self, callback: FlushCallback) -> 'Insert':
        """
        Register the callback invoked with this builder on every flush.

        Raises:
            InvalidConfigurationError: If callback is not callable
        """
        if not callable(callback):
            raise InvalidConfigurationError("Flush callback must be callable")
        self._buffer.on_flush = callback
        return self

    def flush(self) -> 'Insert':
        self._buffer.flush()
        self._mark_dirty()
        return self

    @property
    def buffer(self) -> BatchInsertBuffer:
        return self._buffer

    @property
    def pending_row(self) -> Dict[str, Any]:
        return dict(self._buffer.pending_row)

    @property
    def pending_rows(self) -> List[Row]:
        return list(self._buffer.pending_rows)

    @property
    def pending_count(self) -> int:
        return self._buffer.pending_count

    @property
    def total_flushed(self) -> int:
        return self._buffer.total_flushed

    @property
    def row_limit(self) -> int:
        return self._buffer.row_limit

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _row_values(self, row: Row) -> List[Any]:
        if isinstance(row, Mapping):
            if self._track_columns:
                return [row.get(column) for column in self._columns]
            return list(row.values())
        return list(row)

    def render(self) -> 'Insert':
        self.prepare_row()
        return super().render()

    def _build_commands(self) -> List[str]:
        table = self._require_table()
        if not self._buffer.pending_rows:
            raise MissingStateError(f"No rows to insert into {table.name}")

        commands = ['INSERT INTO', table.render()]

        if self._columns:
            commands.append('(' + COMMAND_SEPARATOR.join(self._columns) + ')')

        commands.append('VALUES')
        for row in self._buffer.pending_rows:
            values = COMMAND_SEPARATOR.join(render_value(value) for value in self._row_values(row))
            commands.append(f"({values}){COMMAND_SEPARATOR}")
        self._strip_last_command_separator(commands)

        return commands


class Update(ConditionalStatementBuilder):
    """
    UPDATE statement builder.

    Clause order: UPDATE table [alias], joins, SET, WHERE, ORDER BY, LIMIT.
    SET values are written as given, None as NULL.
    Rendering without WHERE conditions fails: unbounded updates are rejected.
    """

    STATEMENT = 'UPDATE'

    def __init__(self, table: Optional[str] = None, alias: Optional[str] = None):
        self._set_list: Dict[str, Any] = {}
        super().__init__(table, alias)

    def add_set_item(self, column: str, value: Any) -> 'Update':
        """Set ``column=value``; re-setting a column moves it to the end."""
        if not column:
            return self
        self._set_list.pop(column, None)
        self._set_list[column] = value
        self._mark_dirty()
        return self

    def add_set_list(self, set_list: Mapping[str, Any]) -> 'Update':
        """Replace the SET list (ignored when empty)."""
        if not set_list:
            return self
        self._set_list = {}
        for column, value in set_list.items():
            self.add_set_item(column, value)
        return self

    def set_column(self, column: str, value: Any) -> 'Update':
        return self.add_set_item(column, value)

    def get_column(self, column: str) -> Any:
        return self._set_list[column]

    def get_set_list(self) -> Dict[str, Any]:
        return dict(self._set_list)

    def clear_set_list(self) -> 'Update':
        self._set_list = {}
        self._mark_dirty()
        return self

    def _render_set_list(self, commands: List[str]) -> None:
        if not self._conditions:
            raise MissingStateError("You must have a condition to make changes")
        if not self._set_list:
            raise MissingStateError("UPDATE needs at least one SET item")

        commands.append('SET')
        for column, value in self._set_list.items():
            value = 'NULL' if value is None else value
            commands.append(f"{column}={value}{COMMAND_SEPARATOR}")
        self._strip_last_command_separator(commands)

    def _build_commands(self) -> List[str]:
        commands = ['UPDATE']
        self._render_table(commands)
        self._render_joins(commands)
        self._render_set_list(commands)
        self._render_where_clause(commands)
        self._render_order_by_clause(commands)
        self._render_limit_clause(commands)
        return commands


class Delete(ConditionalStatementBuilder):
    """
    DELETE statement builder.

    Clause order: DELETE table [alias], joins, WHERE, ORDER BY, LIMIT.
    """

    STATEMENT = 'DELETE'

    def __init__(self, table: Optional[str] = None, alias: Optional[str] = None):
        super().__init__(table, alias)

    def _build_commands(self) -> List[str]:
        commands = ['DELETE']
        self._render_table(commands)
        self._render_joins(commands)
        self._render_where_clause(commands)
        self._render_order_by_clause(commands)
        self._render_limit_clause(commands)
        return commands
