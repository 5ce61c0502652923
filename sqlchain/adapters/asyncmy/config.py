"""asyncmy pool configuration."""

import inspect
from typing import TYPE_CHECKING, Any, ClassVar, Optional, TypedDict, Union

import asyncmy

from sqlchain.adapters.asyncmy.driver import AsyncmyDriver
from sqlchain.config import AsyncDatabaseConfig

if TYPE_CHECKING:
    from asyncmy.connection import Connection
    from asyncmy.pool import Pool

__all__ = ("AsyncmyConfig", "AsyncmyConnectionConfig", "AsyncmyPoolConfig")


class AsyncmyConnectionConfig(TypedDict, total=False):
    """Keyword arguments forwarded to ``asyncmy.connect``."""

    host: str
    port: int
    user: str
    password: str
    database: str
    unix_socket: str
    charset: str
    connect_timeout: float
    autocommit: bool
    ssl: Any
    sql_mode: str
    init_command: str


class AsyncmyPoolConfig(AsyncmyConnectionConfig, total=False):
    """Connection keywords plus the sizing options of ``asyncmy.create_pool``."""

    minsize: int
    maxsize: int
    pool_recycle: int
    echo: bool


class AsyncmyConfig(AsyncDatabaseConfig["Connection", "Pool", AsyncmyDriver]):
    """MySQL/MariaDB through an asyncmy connection pool.

    Connections default to ``autocommit=True`` so a statement run by an unbound
    builder commits on its own; :func:`sqlchain.transaction` issues an explicit
    ``BEGIN`` on the connection it borrows.
    """

    __slots__ = ()

    driver_type: "ClassVar[type[AsyncmyDriver]]" = AsyncmyDriver
    dialect: "ClassVar[str]" = "mysql"

    def __init__(
        self,
        *,
        pool_config: "Optional[Union[AsyncmyPoolConfig, dict[str, Any]]]" = None,
        pool_instance: "Optional[Pool]" = None,
        **kwargs: Any,
    ) -> None:
        options = {**(pool_config or {}), **kwargs}
        options.setdefault("autocommit", True)
        super().__init__(pool_config=options, pool_instance=pool_instance)

    def pool_options(self) -> "dict[str, Any]":
        """Keyword arguments for ``asyncmy.create_pool``, without unset values."""
        return {key: value for key, value in self.pool_config.items() if value is not None}

    async def _create_pool(self) -> "Pool":
        return await asyncmy.create_pool(**self.pool_options())

    async def _close_pool(self, pool: "Pool") -> None:
        pool.close()
        await pool.wait_closed()

    async def _acquire(self, pool: "Pool") -> "Connection":
        return await pool.acquire()

    async def _release(self, pool: "Pool", connection: "Connection") -> None:
        # Pool.release is a coroutine in some asyncmy releases and plain in others.
        released = pool.release(connection)
        if inspect.isawaitable(released):
            await released
