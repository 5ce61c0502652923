"""Bounded connection pool for aiosqlite."""

import asyncio
import logging
from contextlib import suppress
from typing import TYPE_CHECKING, Any, Optional

import aiosqlite

from sqlchain.exceptions import SQLChainError
from sqlchain.utils.logging import get_logger, log_with_context

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

__all__ = ("AiosqliteConnectTimeoutError", "AiosqliteConnectionPool", "AiosqlitePoolClosedError")

logger = get_logger("adapters.aiosqlite.pool")


class AiosqlitePoolClosedError(SQLChainError):
    """The pool was closed before a connection could be handed out."""


class AiosqliteConnectTimeoutError(SQLChainError):
    """No connection became free within ``connect_timeout``."""


class AiosqliteConnectionPool:
    """At most ``pool_size`` aiosqlite connections, opened on demand and reused.

    Connections run in WAL mode, so a reader outside a transaction sees only
    committed rows while another pooled connection holds a write transaction.

    Args:
        connection_parameters: Keyword arguments for ``aiosqlite.connect``.
        pool_size: Maximum number of open connections.
        connect_timeout: Seconds :meth:`acquire` waits for a free connection.
        on_connection_create: Awaited with every newly opened connection.
    """

    __slots__ = (
        "_closed",
        "_connect_timeout",
        "_connection_parameters",
        "_idle",
        "_on_connection_create",
        "_open",
        "_pool_size",
        "_slots_instance",
    )

    def __init__(
        self,
        connection_parameters: "dict[str, Any]",
        pool_size: int = 5,
        connect_timeout: float = 30.0,
        on_connection_create: "Optional[Callable[[aiosqlite.Connection], Awaitable[None]]]" = None,
    ) -> None:
        self._connection_parameters = connection_parameters
        self._pool_size = pool_size
        self._connect_timeout = connect_timeout
        self._on_connection_create = on_connection_create
        self._idle: list[aiosqlite.Connection] = []
        self._open: set[aiosqlite.Connection] = set()
        self._closed = False
        self._slots_instance: Optional[asyncio.Semaphore] = None

    @property
    def _slots(self) -> asyncio.Semaphore:
        # Created lazily so the pool can be built outside a running loop.
        if self._slots_instance is None:
            self._slots_instance = asyncio.Semaphore(self._pool_size)
        return self._slots_instance

    @property
    def is_closed(self) -> bool:
        return self._closed

    def size(self) -> int:
        """Open connections, idle or checked out."""
        return len(self._open)

    def checked_out(self) -> int:
        return len(self._open) - len(self._idle)

    async def _connect(self) -> "aiosqlite.Connection":
        connection = await aiosqlite.connect(**self._connection_parameters)
        try:
            await connection.execute("PRAGMA journal_mode = WAL")
            await connection.execute("PRAGMA synchronous = NORMAL")
            await connection.execute("PRAGMA foreign_keys = ON")
            await connection.execute("PRAGMA busy_timeout = 30000")
            if self._on_connection_create is not None:
                await self._on_connection_create(connection)
        except BaseException:
            await connection.close()
            raise
        self._open.add(connection)
        log_with_context(logger, logging.DEBUG, "pool.connection.create", open=len(self._open))
        return connection

    async def acquire(self) -> "aiosqlite.Connection":
        """Check out an idle connection, opening a new one while below ``pool_size``.

        Raises:
            AiosqlitePoolClosedError: The pool is closed, or closed while waiting.
            AiosqliteConnectTimeoutError: No connection became free in time.
        """
        if self._closed:
            msg = "Cannot acquire connection from closed pool"
            raise AiosqlitePoolClosedError(msg)
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self._connect_timeout)
        except asyncio.TimeoutError as e:
            msg = f"Connection acquisition timed out after {self._connect_timeout}s"
            raise AiosqliteConnectTimeoutError(msg) from e
        if self._closed:
            msg = "Pool closed during connection acquisition"
            raise AiosqlitePoolClosedError(msg)
        try:
            return self._idle.pop() if self._idle else await self._connect()
        except BaseException:
            self._slots.release()
            raise

    async def release(self, connection: "aiosqlite.Connection") -> None:
        """Return a connection, rolling back a transaction left open on it.

        A connection that cannot be rolled back is closed instead of reused.
        """
        if self._closed:
            with suppress(aiosqlite.Error, ValueError):
                await connection.close()
            return
        try:
            if connection.in_transaction:
                await connection.rollback()
        except aiosqlite.Error as e:
            log_with_context(logger, logging.WARNING, "pool.connection.reset.error", error=str(e))
            self._open.discard(connection)
            with suppress(aiosqlite.Error):
                await connection.close()
        else:
            self._idle.append(connection)
        self._slots.release()

    async def close(self) -> None:
        """Close every connection and fail pending and future acquires."""
        if self._closed:
            return
        self._closed = True
        if self._slots_instance is not None:
            # Wake waiters so they observe the closed pool.
            for _ in range(self._pool_size):
                self._slots_instance.release()

        connections, self._open, self._idle = list(self._open), set(), []
        results = await asyncio.gather(*(connection.close() for connection in connections), return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                log_with_context(logger, logging.WARNING, "pool.close.connection.error", error=str(result))
