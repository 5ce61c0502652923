"""asyncmy (MySQL/MariaDB) driver."""

from typing import TYPE_CHECKING, Any, Optional

from asyncmy.cursors import DictCursor
from asyncmy.errors import MySQLError

from sqlchain.driver import AsyncDriverAdapterBase, QueryResult
from sqlchain.exceptions import TransactionError
from sqlchain.parameters import ParameterStyle

if TYPE_CHECKING:
    from asyncmy.connection import Connection

__all__ = ("AsyncmyCursor", "AsyncmyDriver")


class AsyncmyCursor:
    """Context manager for AsyncMy cursor operations.

    Rows come back as dicts keyed by column name.
    """

    __slots__ = ("connection", "cursor")

    def __init__(self, connection: "Connection") -> None:
        self.connection = connection
        self.cursor: Optional[DictCursor] = None

    async def __aenter__(self) -> DictCursor:
        self.cursor = self.connection.cursor(DictCursor)
        return self.cursor

    async def __aexit__(self, *_: Any) -> None:
        if self.cursor is not None:
            await self.cursor.close()


class AsyncmyDriver(AsyncDriverAdapterBase["Connection"]):
    """Runs statements on one pooled asyncmy connection.

    The builder's ``?`` placeholders are rewritten to ``%s`` before execution.
    """

    __slots__ = ()
    dialect = "mysql"
    parameter_style = ParameterStyle.POSITIONAL_PYFORMAT

    async def _execute(self, sql: str, parameters: "list[Any]") -> QueryResult:
        async with AsyncmyCursor(self.connection) as cursor:
            await cursor.execute(sql, parameters)
            if cursor.description:
                fetched = await cursor.fetchall()
                return QueryResult(rows=[dict(row) for row in fetched])
            affected_rows = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
            last_id = cursor.lastrowid if affected_rows else None
            return QueryResult(rows_affected=affected_rows, last_inserted_id=last_id or None)

    async def begin(self) -> None:
        """Begin a database transaction.

        Raises:
            TransactionError: If transaction initialization fails
        """
        try:
            await self.connection.begin()
        except MySQLError as e:
            msg = f"Failed to begin MySQL transaction: {e}"
            raise TransactionError(msg) from e

    async def commit(self) -> None:
        try:
            await self.connection.commit()
        except MySQLError as e:
            msg = f"Failed to commit MySQL transaction: {e}"
            raise TransactionError(msg) from e

    async def rollback(self) -> None:
        try:
            await self.connection.rollback()
        except MySQLError as e:
            msg = f"Failed to rollback MySQL transaction: {e}"
            raise TransactionError(msg) from e
