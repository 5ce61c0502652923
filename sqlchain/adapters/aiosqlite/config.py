"""Aiosqlite database configuration."""

import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar, Optional, TypedDict, Union

from typing_extensions import NotRequired

from sqlchain.adapters.aiosqlite.driver import AiosqliteDriver
from sqlchain.adapters.aiosqlite.pool import AiosqliteConnectionPool
from sqlchain.config import AsyncDatabaseConfig

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import aiosqlite

__all__ = ("AiosqliteConfig", "AiosqliteConnectionParams", "AiosqlitePoolParams")

_POOL_KEYS = frozenset({"pool_size", "connect_timeout"})


class AiosqliteConnectionParams(TypedDict, total=False):
    """TypedDict for aiosqlite connection parameters."""

    database: NotRequired[str]
    timeout: NotRequired[float]
    detect_types: NotRequired[int]
    check_same_thread: NotRequired[bool]
    cached_statements: NotRequired[int]
    uri: NotRequired[bool]


class AiosqlitePoolParams(AiosqliteConnectionParams, total=False):
    """TypedDict for aiosqlite pool parameters, inheriting connection parameters."""

    pool_size: NotRequired[int]
    connect_timeout: NotRequired[float]


class AiosqliteConfig(AsyncDatabaseConfig["aiosqlite.Connection", AiosqliteConnectionPool, AiosqliteDriver]):
    """SQLite through aiosqlite.

    ``:memory:`` (or no database at all) gets a private temporary database
    file, created with the pool and deleted when it closes. Every pooled
    connection sees the same tables, and transactions stay isolated from each
    other the way they are for any file database.
    """

    __slots__ = ("_temporary_path", "on_connection_create")

    driver_type: "ClassVar[type[AiosqliteDriver]]" = AiosqliteDriver
    dialect: "ClassVar[str]" = "sqlite"

    def __init__(
        self,
        *,
        pool_config: "Optional[Union[AiosqlitePoolParams, dict[str, Any]]]" = None,
        pool_instance: "Optional[AiosqliteConnectionPool]" = None,
        on_connection_create: "Optional[Callable[[aiosqlite.Connection], Awaitable[None]]]" = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the configuration.

        Args:
            pool_config: Pool configuration parameters (TypedDict or dict)
            pool_instance: Optional pre-configured connection pool instance.
            on_connection_create: Async callback run on every new raw connection.
            **kwargs: Additional connection parameters that override pool_config.
        """
        config_dict = dict(pool_config) if pool_config else {}
        config_dict.update(kwargs)
        if config_dict.get("database", ":memory:") == ":memory:":
            config_dict.pop("database", None)

        super().__init__(pool_config=config_dict, pool_instance=pool_instance)
        self.on_connection_create = on_connection_create
        self._temporary_path: Optional[str] = None

    @property
    def is_temporary(self) -> bool:
        """Whether the database lives only as long as the pool."""
        return "database" not in self.pool_config

    @property
    def temporary_path(self) -> Optional[str]:
        """File backing a temporary database while its pool is open."""
        return self._temporary_path

    def _get_connection_config_dict(self) -> "dict[str, Any]":
        """Parameters for ``aiosqlite.connect``; autocommit mode is always forced."""
        config = {k: v for k, v in self.pool_config.items() if k not in _POOL_KEYS and v is not None}
        config["isolation_level"] = None
        return config

    async def _create_pool(self) -> AiosqliteConnectionPool:
        connection_parameters = self._get_connection_config_dict()
        if self.is_temporary:
            descriptor, self._temporary_path = tempfile.mkstemp(prefix="sqlchain-", suffix=".sqlite3")
            os.close(descriptor)
            connection_parameters["database"] = self._temporary_path
        pool_options = {k: v for k, v in self.pool_config.items() if k in _POOL_KEYS and v is not None}
        return AiosqliteConnectionPool(
            connection_parameters=connection_parameters,
            on_connection_create=self.on_connection_create,
            **pool_options,
        )

    async def _close_pool(self, pool: AiosqliteConnectionPool) -> None:
        await pool.close()
        if self._temporary_path is not None:
            path, self._temporary_path = self._temporary_path, None
            for suffix in ("", "-wal", "-shm"):
                Path(path + suffix).unlink(missing_ok=True)

    async def _acquire(self, pool: AiosqliteConnectionPool) -> "aiosqlite.Connection":
        return await pool.acquire()

    async def _release(self, pool: AiosqliteConnectionPool, connection: "aiosqlite.Connection") -> None:
        await pool.release(connection)
