"""aiosqlite driver."""

import datetime
from collections.abc import Callable
from decimal import Decimal
from typing import Any, Final, Optional

import aiosqlite

from sqlchain.driver import AsyncDriverAdapterBase, QueryResult
from sqlchain.exceptions import TransactionError
from sqlchain.parameters import ParameterStyle
from sqlchain.utils.serializers import to_json

__all__ = ("AiosqliteCursor", "AiosqliteDriver", "coerce_parameter", "type_coercion_map")

type_coercion_map: Final[dict[type, Callable[[Any], Any]]] = {
    bool: int,
    datetime.datetime: lambda v: v.isoformat(),
    datetime.date: lambda v: v.isoformat(),
    Decimal: str,
    dict: to_json,
    list: to_json,
    tuple: lambda v: to_json(list(v)),
}


def coerce_parameter(value: Any) -> Any:
    """Convert a value sqlite3 cannot bind natively."""
    converter = type_coercion_map.get(type(value))
    return converter(value) if converter is not None else value


class AiosqliteCursor:
    """Async context manager that always closes the cursor."""

    __slots__ = ("connection", "cursor")

    def __init__(self, connection: "aiosqlite.Connection") -> None:
        self.connection = connection
        self.cursor: Optional[aiosqlite.Cursor] = None

    async def __aenter__(self) -> "aiosqlite.Cursor":
        self.cursor = await self.connection.cursor()
        return self.cursor

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.cursor is not None:
            await self.cursor.close()


class AiosqliteDriver(AsyncDriverAdapterBase[aiosqlite.Connection]):
    """Runs statements on one pooled aiosqlite connection.

    Connections are opened in autocommit mode (``isolation_level=None``), so a
    statement outside :meth:`begin`/:meth:`commit` is committed on its own.
    """

    __slots__ = ()
    dialect = "sqlite"
    parameter_style = ParameterStyle.QMARK

    async def _execute(self, sql: str, parameters: "list[Any]") -> QueryResult:
        async with AiosqliteCursor(self.connection) as cursor:
            await cursor.execute(sql, [coerce_parameter(value) for value in parameters])
            if cursor.description:
                column_names = [column[0] for column in cursor.description]
                fetched = await cursor.fetchall()
                return QueryResult(rows=[dict(zip(column_names, row)) for row in fetched])
            affected_rows = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
            return QueryResult(rows_affected=affected_rows, last_inserted_id=cursor.lastrowid or None)

    async def begin(self) -> None:
        try:
            if not self.connection.in_transaction:
                await self.connection.execute("BEGIN")
        except aiosqlite.Error as e:
            msg = f"Failed to begin transaction: {e}"
            raise TransactionError(msg) from e

    async def commit(self) -> None:
        try:
            await self.connection.commit()
        except aiosqlite.Error as e:
            msg = f"Failed to commit transaction: {e}"
            raise TransactionError(msg) from e

    async def rollback(self) -> None:
        try:
            await self.connection.rollback()
        except aiosqlite.Error as e:
            msg = f"Failed to rollback transaction: {e}"
            raise TransactionError(msg) from e
