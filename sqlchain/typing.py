"""Shared type aliases, sentinels and runtime-checkable protocols.

The protocols describe the collaborators the builder talks to: anything with a
``query(sql, parameters)`` coroutine can run statements, and a database adds
``get_connection()`` for transactions.
"""

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any, Final, Literal, Optional, Protocol, runtime_checkable

from typing_extensions import TypeAlias

if TYPE_CHECKING:
    from sqlchain.driver import QueryResult

__all__ = (
    "ConnectionProtocol",
    "DatabaseProtocol",
    "DictRow",
    "Empty",
    "EmptyType",
    "RowData",
    "StatementParameters",
    "TransactionalConnectionProtocol",
)


class _EmptyEnum(Enum):
    """A sentinel enum used as placeholder."""

    EMPTY = 0


EmptyType = Literal[_EmptyEnum.EMPTY]
Empty: Final = _EmptyEnum.EMPTY

DictRow: TypeAlias = "dict[str, Any]"
"""A single result row keyed by column name."""

RowData: TypeAlias = "Mapping[str, Any]"
"""Column -> value mapping supplied to inserts and updates."""

StatementParameters: TypeAlias = "Sequence[Any]"
"""Positional values bound to ``?`` placeholders, in order."""


@runtime_checkable
class ConnectionProtocol(Protocol):
    """Anything able to run one parameterized statement."""

    dialect: Optional[str]

    async def query(self, sql: str, parameters: "Optional[StatementParameters]" = None) -> "QueryResult":
        """Execute ``sql`` with positional ``parameters``."""
        ...


@runtime_checkable
class TransactionalConnectionProtocol(ConnectionProtocol, Protocol):
    """A borrowed connection that can scope a transaction."""

    async def begin(self) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    async def release(self) -> None: ...


@runtime_checkable
class DatabaseProtocol(ConnectionProtocol, Protocol):
    """A pool-level runner: autocommitted queries plus connection checkout."""

    async def get_connection(self) -> "TransactionalConnectionProtocol":
        """Borrow a connection; the caller must ``release()`` it."""
        ...
