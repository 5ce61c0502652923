"""Fluent statement builder bound to one table.

Clause methods mutate the builder in place and return it, so calls chain.
Executing methods render the accumulated statement, run it on the bound
connection (or the default database when none is bound) and then reset every
clause, so one instance can be reused for the next statement but never re-runs
the previous one.
"""

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Union

from typing_extensions import Self

from sqlchain.builder._audit import AuditMixin
from sqlchain.builder._dialect import DEFAULT_DIALECT, Dialect, get_dialect
from sqlchain.builder._expressions import (
    STAR,
    Comparison,
    Having,
    InList,
    Join,
    OrderBy,
    Predicate,
    PredicateGroup,
    SelectItem,
    SelectState,
    WhereTerm,
    like_any,
    looks_like_expression,
    render_where,
)
from sqlchain.context import current_database, get_default_database
from sqlchain.exceptions import MissingWhereClauseError, SQLBuilderError
from sqlchain.parameters import validate_parameter_count
from sqlchain.typing import Empty
from sqlchain.utils.logging import get_logger, log_with_context
from sqlchain.utils.type_guards import is_value_sequence

if TYPE_CHECKING:
    from sqlchain.driver import QueryResult
    from sqlchain.typing import ConnectionProtocol, DatabaseProtocol, DictRow, EmptyType, RowData

__all__ = ("Model", "Paginated")

logger = get_logger("builder")


@dataclass
class Paginated:
    """One page of rows plus the totals needed to render pagination."""

    data: "list[DictRow]"
    total: int
    page: int
    per_page: int
    last_page: int


def _resolve_dialect(
    dialect: Optional[str], connection: "Optional[ConnectionProtocol]", database: "Optional[DatabaseProtocol]"
) -> Dialect:
    candidates = (
        dialect,
        getattr(connection, "dialect", None),
        getattr(database, "dialect", None),
        getattr(current_database.get(), "dialect", None),
    )
    for candidate in candidates:
        if isinstance(candidate, str):
            return get_dialect(candidate)
    return get_dialect(DEFAULT_DIALECT)


class Model(AuditMixin):
    """Stateful SELECT/INSERT/UPDATE/DELETE builder for ``table``.

    Args:
        table: Table (or table expression such as ``"users u"``) the statements target.
        connection: Borrowed connection to run on, e.g. inside a transaction.
            The builder never opens, commits or releases it.
        database: Runner used when no connection is bound. Defaults to the
            process-wide database installed in :mod:`sqlchain.context`.
        dialect: sqlglot dialect name used for quoting and upserts. When omitted it
            follows the connection, then the database, then the default database,
            and falls back to MySQL.
    """

    def __init__(
        self,
        table: str,
        connection: "Optional[ConnectionProtocol]" = None,
        *,
        database: "Optional[DatabaseProtocol]" = None,
        dialect: Optional[str] = None,
    ) -> None:
        self.table = table
        self.connection = connection
        self.database = database
        self._dialect_name = dialect
        if dialect is not None:
            get_dialect(dialect)
        self._state = SelectState()
        self._audit = None

    @property
    def dialect(self) -> Dialect:
        return _resolve_dialect(self._dialect_name, self.connection, self.database)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(table={self.table!r}, sql={self.to_sql()!r}, parameters={self.parameters!r})"

    # -- select list / joins ------------------------------------------------

    def select(self, columns: "Union[str, Sequence[str], Mapping[str, str], None]" = "*") -> Self:
        """Set the select list.

        A string is used verbatim. Each entry of a list is quoted unless it is
        an expression or an ``alias.column`` reference. A mapping renders
        ``expression AS "alias"`` per item.
        """
        if isinstance(columns, str):
            items: tuple[SelectItem, ...] = (SelectItem(columns),)
        elif isinstance(columns, Mapping):
            items = tuple(
                SelectItem(column, alias=str(alias), quote=not looks_like_expression(column))
                for column, alias in columns.items()
            )
        elif is_value_sequence(columns) and columns:
            items = tuple(SelectItem(column, quote=not looks_like_expression(column)) for column in columns)
        else:
            items = (STAR,)
        self._state.select = items
        return self

    def join(self, table: str, on: str) -> Self:
        self._state.joins.append(Join("INNER", table, on))
        return self

    def left_join(self, table: str, on: str) -> Self:
        self._state.joins.append(Join("LEFT", table, on))
        return self

    # -- where ----------------------------------------------------------------

    def _add_where(self, connector: str, predicate: Predicate) -> Self:
        self._state.where.append(WhereTerm(connector, predicate))
        return self

    def where(self, column: str, value: Any) -> Self:
        return self._add_where("AND", Comparison(column, "=", value))

    def where_op(self, column: str, operator: Any, value: "Union[Any, EmptyType]" = Empty) -> Self:
        """``column <operator> ?``. ``where_op(col, value)`` means ``=``."""
        if value is Empty:
            operator, value = "=", operator
        return self._add_where("AND", Comparison(column, operator, value))

    def where_multi_op(self, conditions: "Sequence[Mapping[str, Any]]") -> Self:
        """AND every condition onto the WHERE clause.

        Each condition is a mapping with ``column``, ``value`` and an optional
        ``operator`` (default ``=``). ``IN`` with a list or tuple value binds
        one placeholder per element.
        """
        predicates: list[Predicate] = []
        for condition in conditions:
            column, operator, value = _unpack_condition(condition)
            if str(operator).upper() == "IN" and is_value_sequence(value):
                if not value:
                    msg = f"IN condition on {column!r} needs at least one value"
                    raise SQLBuilderError(msg)
                predicates.append(InList(column, tuple(value)))
            else:
                predicates.append(Comparison(column, operator, value))
        self._state.where.extend(WhereTerm("AND", predicate) for predicate in predicates)
        return self

    def or_where(self, column: str, value: Any) -> Self:
        return self._add_where("OR", Comparison(column, "=", value))

    def or_where_op(self, column: str, operator: Any, value: "Union[Any, EmptyType]" = Empty) -> Self:
        if value is Empty:
            operator, value = "=", operator
        return self._add_where("OR", Comparison(column, operator, value))

    def or_where_multi_op(self, conditions: "Sequence[Mapping[str, Any]]") -> Self:
        """AND a parenthesized OR-group of the conditions onto the WHERE clause.

        Unlike :meth:`where_multi_op`, ``IN`` is not expanded here: the value is
        bound as a single parameter.
        """
        if not conditions:
            return self
        group = PredicateGroup("OR", tuple(Comparison(*_unpack_condition(condition)) for condition in conditions))
        return self._add_where("AND", group)

    def where_in(self, column: str, values: Any) -> Self:
        """``column IN (?, ...)``; a no-op for an empty or non-list ``values``."""
        if not is_value_sequence(values) or not values:
            return self
        return self._add_where("AND", InList(column, tuple(values)))

    def where_like_any(self, columns: Any, search: Any) -> Self:
        """Match ``%search%`` against any of ``columns``; no-op without columns or search."""
        if not is_value_sequence(columns) or not columns or not search:
            return self
        return self._add_where("AND", like_any(columns, search))

    # -- grouping / ordering / limits -----------------------------------------

    def group_by(self, columns: "Union[str, Sequence[str]]") -> Self:
        self._state.group_by = (columns,) if isinstance(columns, str) else tuple(columns)
        return self

    def having(self, condition: str, value: "Union[Any, EmptyType]" = Empty) -> Self:
        self._state.having = Having(condition, () if value is Empty else (value,))
        return self

    def order_by(self, column: str, direction: str = "ASC") -> Self:
        self._state.order_by = OrderBy(column, direction.upper())
        return self

    def limit(self, count: Union[int, str]) -> Self:
        self._state.limit = int(count)
        return self

    def prepend_param(self, value: Any) -> Self:
        """Bind values ahead of every WHERE value.

        Needed when a hand-written subquery in :meth:`select` carries its own
        ``?`` placeholders. A list or tuple prepends all of its items in order.

        Example::

            users = make_model("users u")
            users.select({"u.name": "name", "(SELECT COUNT(*) FROM orders o WHERE o.status = ?)": "open"})
            users.where("u.id", 1).prepend_param("open")
            # SELECT u.name AS `name`, (SELECT ...) AS `open` FROM users u WHERE u.id = ?
            # parameters: ["open", 1]
        """
        if is_value_sequence(value):
            self._state.leading_parameters[:0] = list(value)
        else:
            self._state.leading_parameters.insert(0, value)
        return self

    def clone(self) -> "Model":
        """Independent copy of the clause state sharing the same connection and database."""
        duplicate = type(self)(self.table, self.connection, database=self.database, dialect=self._dialect_name)
        duplicate._state = self._state.copy()
        return duplicate

    # -- rendering ------------------------------------------------------------

    @property
    def has_where(self) -> bool:
        return bool(self._state.where)

    @property
    def parameters(self) -> "list[Any]":
        return self.build()[1]

    def _render_select(
        self, select_sql: Optional[str] = None, *, include_order: bool = True, include_limit: bool = True
    ) -> "tuple[str, list[Any]]":
        """Render the SELECT; an explicit ``select_sql`` drops the leading parameters."""
        state = self._state
        parameters: list[Any] = []
        if select_sql is None:
            select_sql = ", ".join(item.render(self.dialect) for item in state.select)
            parameters.extend(state.leading_parameters)

        where_sql, where_parameters = render_where(state.where)
        parameters.extend(where_parameters)

        parts = [f"SELECT {select_sql} FROM {self.table}"]
        parts.extend(join.render() for join in state.joins)
        if where_sql:
            parts.append(f" {where_sql}")
        if state.group_by:
            parts.append(f" GROUP BY {', '.join(state.group_by)}")
        if state.having is not None:
            parts.append(state.having.render())
            parameters.extend(state.having.parameters)
        if include_order and state.order_by is not None:
            parts.append(state.order_by.render())
        if include_limit and state.limit is not None:
            parts.append(f" LIMIT {state.limit}")
        return "".join(parts), parameters

    def build(self) -> "tuple[str, list[Any]]":
        """Render the SELECT statement and its parameters without executing it."""
        return self._render_select()

    def to_sql(self) -> str:
        return self._render_select()[0]

    def debug(self) -> Self:
        sql, parameters = self.build()
        logger.debug("%s\nparameters: %r", self.dialect.pretty(sql), parameters)
        return self

    # -- execution ------------------------------------------------------------

    def _runner(self) -> "ConnectionProtocol":
        if self.connection is not None:
            return self.connection
        if self.database is not None:
            return self.database
        return get_default_database()

    def _reset(self) -> None:
        self._state = SelectState()
        self._audit = None

    async def _execute(self, sql: str, parameters: "list[Any]") -> "QueryResult":
        validate_parameter_count(sql, parameters)
        log_with_context(logger, logging.DEBUG, "builder.execute", table=self.table, sql=sql)
        return await self._runner().query(sql, parameters)

    async def _run_and_reset(self, sql: str, parameters: "list[Any]") -> "QueryResult":
        try:
            return await self._execute(sql, parameters)
        finally:
            self._reset()

    def _require_where(self, operation: str) -> None:
        if not self._state.where:
            raise MissingWhereClauseError(operation)

    async def get(self) -> "list[DictRow]":
        """All rows matching the accumulated statement."""
        result = await self._run_and_reset(*self.build())
        return result.rows

    async def first(self) -> "Optional[DictRow]":
        rows = await self.limit(1).get()
        return rows[0] if rows else None

    async def _aggregate(self, function: str, column: str, alias: str) -> Any:
        result = await self._run_and_reset(*self._render_select(f"{function}({column}) AS {alias}"))
        return result.scalar(alias)

    async def count(self, column: str = "*") -> Any:
        value = await self._aggregate("COUNT", column, "total")
        return value if value is not None else 0

    async def sum(self, column: str) -> Any:
        value = await self._aggregate("SUM", column, "total")
        return value if value is not None else 0

    async def avg(self, column: str) -> Any:
        value = await self._aggregate("AVG", column, "average")
        return value if value is not None else 0

    async def min(self, column: str) -> Any:
        return await self._aggregate("MIN", column, "min")

    async def max(self, column: str) -> Any:
        return await self._aggregate("MAX", column, "max")

    async def exists(self) -> bool:
        """Whether any row matches. Leaves this builder untouched."""
        probe = self.clone().limit(1)
        result = await probe._execute(*probe._render_select("1"))
        return len(result) > 0

    async def pluck(self, column: str) -> "list[Any]":
        """Values of one column across every matching row."""
        rows = await self.select(column).get()
        key = column.rsplit(".", 1)[-1]
        return [row[column] if column in row else row.get(key) for row in rows]

    async def paginate(self, page: int = 1, per_page: int = 10) -> Paginated:
        """Fetch one page and the total number of matching rows.

        Raises:
            SQLBuilderError: ``page`` or ``per_page`` is below 1.
        """
        page, per_page = int(page), int(per_page)
        if page < 1 or per_page < 1:
            msg = f"paginate() needs page >= 1 and per_page >= 1, got page={page} per_page={per_page}"
            raise SQLBuilderError(msg)
        offset = (page - 1) * per_page

        data_sql, data_parameters = self._render_select(include_limit=False)
        data_sql = f"{data_sql} LIMIT ? OFFSET ?"
        data_parameters.extend((per_page, offset))
        count_sql, count_parameters = self._render_select(
            "COUNT(*) AS total", include_order=False, include_limit=False
        )

        try:
            data = await self._execute(data_sql, data_parameters)
            counted = await self._execute(count_sql, count_parameters)
        finally:
            self._reset()

        total = counted.scalar("total") or 0
        return Paginated(
            data=data.rows, total=total, page=page, per_page=per_page, last_page=math.ceil(total / per_page)
        )

    # -- writes ---------------------------------------------------------------

    def _insert_sql(self, columns: "Sequence[str]", row_count: int) -> str:
        row = f"({', '.join('?' for _ in columns)})"
        return f"INSERT INTO {self.table} ({', '.join(columns)}) VALUES {', '.join(row for _ in range(row_count))}"

    @staticmethod
    def _row_columns(rows: "Sequence[RowData]") -> "list[str]":
        columns = list(rows[0])
        if not columns:
            msg = "Rows must supply at least one column"
            raise SQLBuilderError(msg)
        for index, row in enumerate(rows[1:], start=1):
            if list(row) != columns:
                msg = f"Row {index} has columns {list(row)}, expected {columns} in that order"
                raise SQLBuilderError(msg)
        return columns

    async def insert(self, data: "RowData") -> Any:
        """Insert one row.

        Returns:
            The generated identifier, if the database reports one.
        """
        if not data:
            msg = "insert() requires at least one column"
            raise SQLBuilderError(msg)
        sql = self._insert_sql(list(data), 1)
        try:
            result = await self._execute(sql, list(data.values()))
            await self._log_audit("insert", record_id=result.last_inserted_id, after=dict(data))
        finally:
            self._reset()
        return result.last_inserted_id

    async def insert_many(self, rows: "Sequence[RowData]") -> int:
        """Insert every row in one statement. All rows need the first row's columns, in order.

        Returns:
            Number of rows inserted; ``0`` for no rows.
        """
        if not rows:
            return 0
        columns = self._row_columns(rows)
        values = [row[column] for row in rows for column in columns]
        result = await self._run_and_reset(self._insert_sql(columns, len(rows)), values)
        return result.rows_affected

    async def insert_update(self, data: "RowData", conflict_columns: "Sequence[str]" = ()) -> Any:
        """Insert one row, updating every non-conflict column if the row already exists.

        When every column is a conflict column this is a plain insert.

        Returns:
            The generated identifier, if the database reports one.
        """
        if not data:
            msg = "insert_update() requires at least one column"
            raise SQLBuilderError(msg)
        columns = list(data)
        update_columns = [column for column in columns if column not in conflict_columns]
        sql = self._insert_sql(columns, 1) + self.dialect.upsert_clause(update_columns, conflict_columns)
        try:
            result = await self._execute(sql, list(data.values()))
            await self._log_audit("insert", record_id=result.last_inserted_id, after=dict(data))
        finally:
            self._reset()
        return result.last_inserted_id

    async def upsert_many(self, rows: "Sequence[RowData]", update_columns: "Optional[Sequence[str]]" = None) -> int:
        """Bulk insert-or-update.

        Without ``update_columns`` every column except the first is updated;
        the first column of the first row is treated as the primary key.

        Returns:
            Rows affected as reported by the database.
        """
        if not rows:
            return 0
        columns = self._row_columns(rows)
        if not update_columns:
            update_columns = columns[1:]
        sql = self._insert_sql(columns, len(rows)) + self.dialect.upsert_clause(update_columns, columns[:1])
        values = [row[column] for row in rows for column in columns]
        result = await self._run_and_reset(sql, values)
        return result.rows_affected

    async def update(self, data: "RowData") -> int:
        """Update the rows matched by the WHERE clause.

        Raises:
            MissingWhereClauseError: no where condition was given.

        Returns:
            Number of rows affected.
        """
        self._require_where("update")
        if not data:
            msg = "update() requires at least one column"
            raise SQLBuilderError(msg)
        where_sql, where_parameters = render_where(self._state.where)
        assignments = ", ".join(f"{column} = ?" for column in data)
        sql = f"UPDATE {self.table} SET {assignments} {where_sql}"
        try:
            before = await self.clone().first() if self._audit is not None else None
            result = await self._execute(sql, [*data.values(), *where_parameters])
            await self._log_audit(
                "update",
                record_id=before.get("id") if before else None,
                before=before,
                after={**(before or {}), **data},
            )
        finally:
            self._reset()
        return result.rows_affected

    async def delete(self) -> int:
        """Delete the rows matched by the WHERE clause.

        Raises:
            MissingWhereClauseError: no where condition was given.

        Returns:
            Number of rows affected.
        """
        self._require_where("delete")
        where_sql, where_parameters = render_where(self._state.where)
        sql = f"DELETE FROM {self.table} {where_sql}"
        try:
            before = await self.clone().get() if self._audit is not None else None
            result = await self._execute(sql, where_parameters)
            await self._log_audit("delete", record_id=before[0].get("id") if before else None, before=before)
        finally:
            self._reset()
        return result.rows_affected

    async def increment(self, column: str, amount: Union[int, float] = 1) -> int:
        """``column = column + amount`` on the rows matched by the WHERE clause.

        Raises:
            MissingWhereClauseError: no where condition was given.
        """
        self._require_where("increment")
        where_sql, where_parameters = render_where(self._state.where)
        sql = f"UPDATE {self.table} SET {column} = {column} + ? {where_sql}"
        result = await self._run_and_reset(sql, [amount, *where_parameters])
        return result.rows_affected

    async def decrement(self, column: str, amount: Union[int, float] = 1) -> int:
        self._require_where("decrement")
        return await self.increment(column, -amount)


def _unpack_condition(condition: "Mapping[str, Any]") -> "tuple[str, str, Any]":
    try:
        column = condition["column"]
        value = condition["value"]
    except KeyError as exc:
        msg = f"Condition {dict(condition)!r} needs 'column' and 'value'"
        raise SQLBuilderError(msg) from exc
    return column, condition.get("operator") or "=", value
