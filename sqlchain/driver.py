"""Async driver protocol implementation.

A driver wraps exactly one borrowed DB-API connection. It renders nothing
itself: it receives ``?``-placeholder SQL from the builder, converts the
placeholders to the module's paramstyle, runs the statement and normalizes the
outcome into a :class:`QueryResult`. Driver exceptions are not wrapped.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Iterator, Sequence
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Generic, Optional, TypeVar, Union

from sqlchain.exceptions import TransactionError
from sqlchain.parameters import ParameterStyle, convert_placeholders
from sqlchain.utils.logging import get_logger, log_with_context

if TYPE_CHECKING:
    from sqlchain.typing import DictRow

__all__ = ("AsyncDriverAdapterBase", "QueryResult")

ConnectionT = TypeVar("ConnectionT")

logger = get_logger("driver")


class QueryResult:
    """Rows and metadata produced by one statement.

    Args:
        rows: Result rows keyed by column name. Empty for DML.
        rows_affected: Number of rows affected by the operation (if applicable).
        last_inserted_id: Last inserted ID (if applicable).
    """

    __slots__ = ("last_inserted_id", "rows", "rows_affected")

    def __init__(
        self,
        rows: "Optional[list[DictRow]]" = None,
        rows_affected: int = 0,
        last_inserted_id: Optional[Union[int, str]] = None,
    ) -> None:
        self.rows: list[DictRow] = rows if rows is not None else []
        self.rows_affected = rows_affected
        self.last_inserted_id = last_inserted_id

    def get_first(self) -> "Optional[DictRow]":
        """First row, or None when the statement returned nothing."""
        return self.rows[0] if self.rows else None

    def scalar(self, key: str) -> Any:
        """Value of ``key`` in the first row, or None."""
        first = self.get_first()
        if first is None:
            return None
        return first.get(key)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> "Iterator[DictRow]":
        return iter(self.rows)

    def __getitem__(self, index: int) -> "DictRow":
        return self.rows[index]

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(rows={len(self.rows)}, rows_affected={self.rows_affected!r}, "
            f"last_inserted_id={self.last_inserted_id!r})"
        )


class AsyncDriverAdapterBase(ABC, Generic[ConnectionT]):
    """One borrowed connection plus the transaction verbs the builder needs."""

    __slots__ = ("_on_release", "_released", "connection")

    dialect: ClassVar[str]
    parameter_style: ClassVar[ParameterStyle] = ParameterStyle.QMARK

    def __init__(
        self,
        connection: ConnectionT,
        on_release: "Optional[Callable[[ConnectionT], Awaitable[None]]]" = None,
    ) -> None:
        self.connection = connection
        self._on_release = on_release
        self._released = False

    @property
    def is_released(self) -> bool:
        return self._released

    async def query(self, sql: str, parameters: "Optional[Sequence[Any]]" = None) -> QueryResult:
        """Execute one statement on this connection.

        Args:
            sql: SQL rendered with ``?`` placeholders.
            parameters: Positional values for the placeholders.

        Raises:
            TransactionError: The connection was already released.

        Returns:
            The normalized statement result.
        """
        if self._released:
            msg = "Connection has already been released back to its pool"
            raise TransactionError(msg)
        bound = list(parameters) if parameters else []
        log_with_context(
            logger, logging.DEBUG, "driver.query", dialect=self.dialect, sql=sql, parameter_count=len(bound)
        )
        return await self._execute(convert_placeholders(sql, self.parameter_style), bound)

    @abstractmethod
    async def _execute(self, sql: str, parameters: "list[Any]") -> QueryResult:
        """Run ``sql`` (already in this driver's paramstyle) and build the result."""

    @abstractmethod
    async def begin(self) -> None:
        """Begin a database transaction on the current connection."""

    @abstractmethod
    async def commit(self) -> None:
        """Commit the current transaction on the current connection."""

    @abstractmethod
    async def rollback(self) -> None:
        """Rollback the current transaction on the current connection."""

    async def release(self) -> None:
        """Hand the connection back to its pool. Later calls do nothing."""
        if self._released:
            return
        self._released = True
        if self._on_release is not None:
            await self._on_release(self.connection)
