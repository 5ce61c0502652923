from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from functools import partial
from typing import TYPE_CHECKING, Any, ClassVar, Generic, Optional, TypeVar

from sqlchain.driver import AsyncDriverAdapterBase
from sqlchain.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlchain.driver import QueryResult

__all__ = ("AsyncDatabaseConfig", "ConnectionT", "DriverT", "PoolT")

ConnectionT = TypeVar("ConnectionT")
PoolT = TypeVar("PoolT")
DriverT = TypeVar("DriverT", bound="AsyncDriverAdapterBase[Any]")

logger = get_logger("config")


class AsyncDatabaseConfig(ABC, Generic[ConnectionT, PoolT, DriverT]):
    """Pool lifecycle for one database, and the default runner for unbound builders.

    ``query()`` borrows a pooled connection for a single autocommitted
    statement. ``get_connection()`` hands a driver to a caller that needs
    several statements on one connection, such as a transaction; that caller
    must ``release()`` it.
    """

    __slots__ = ("pool_config", "pool_instance")

    driver_type: "ClassVar[type[AsyncDriverAdapterBase[Any]]]"
    dialect: "ClassVar[str]"
    is_async: "ClassVar[bool]" = True
    supports_connection_pooling: "ClassVar[bool]" = True

    def __init__(
        self, *, pool_config: "Optional[dict[str, Any]]" = None, pool_instance: "Optional[PoolT]" = None
    ) -> None:
        self.pool_config: dict[str, Any] = dict(pool_config) if pool_config else {}
        self.pool_instance: Optional[PoolT] = pool_instance

    def __hash__(self) -> int:
        return id(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dialect={self.dialect!r}, pool_instance={self.pool_instance!r})"

    @abstractmethod
    async def _create_pool(self) -> PoolT:
        """Create the actual async connection pool."""

    @abstractmethod
    async def _close_pool(self, pool: PoolT) -> None:
        """Close the actual async connection pool."""

    @abstractmethod
    async def _acquire(self, pool: PoolT) -> ConnectionT:
        """Check a raw connection out of ``pool``."""

    @abstractmethod
    async def _release(self, pool: PoolT, connection: ConnectionT) -> None:
        """Return a raw connection to ``pool``."""

    async def create_pool(self) -> PoolT:
        """Create the pool once; later calls return the same instance.

        Returns:
            The connection pool.
        """
        if self.pool_instance is None:
            self.pool_instance = await self._create_pool()
            logger.debug("Created %s pool", self.dialect)
        return self.pool_instance

    async def provide_pool(self) -> PoolT:
        """Provide async pool instance, creating it on first use."""
        return await self.create_pool()

    async def close_pool(self) -> None:
        """Terminate the connection pool."""
        if self.pool_instance is None:
            return
        pool, self.pool_instance = self.pool_instance, None
        await self._close_pool(pool)
        logger.debug("Closed %s pool", self.dialect)

    async def get_connection(self) -> DriverT:
        """Borrow one pooled connection wrapped in this config's driver.

        Returns:
            A driver whose ``release()`` returns the connection to the pool.
        """
        pool = await self.provide_pool()
        connection = await self._acquire(pool)
        return self.driver_type(connection, on_release=partial(self._release, pool))  # type: ignore[return-value]

    @asynccontextmanager
    async def provide_connection(self) -> AsyncGenerator[DriverT, None]:
        """Provide a pooled driver that is released on exit.

        Yields:
            A driver bound to one pooled connection.
        """
        driver = await self.get_connection()
        try:
            yield driver
        finally:
            await driver.release()

    async def query(self, sql: str, parameters: "Optional[Sequence[Any]]" = None) -> "QueryResult":
        """Run one autocommitted statement on a pooled connection."""
        async with self.provide_connection() as driver:
            return await driver.query(sql, parameters)
