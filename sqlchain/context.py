"""Process-wide default database for builders created without a connection.

Applications install a database once at startup, either explicitly with
:func:`set_default_database` or with the :func:`use_database` lifespan, which
also opens the pool and closes it again at shutdown.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Optional

from sqlchain.exceptions import ImproperConfigurationError
from sqlchain.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlchain.config import AsyncDatabaseConfig
    from sqlchain.typing import DatabaseProtocol

__all__ = (
    "clear_default_database",
    "current_database",
    "get_default_database",
    "set_default_database",
    "use_database",
)

logger = get_logger("context")

current_database: ContextVar[Optional["DatabaseProtocol"]] = ContextVar("current_database", default=None)


def get_default_database() -> "DatabaseProtocol":
    """Get the default database from context.

    Raises:
        ImproperConfigurationError: No default database has been installed.

    Returns:
        The installed database.
    """
    database = current_database.get()
    if database is None:
        msg = "No default database configured; call set_default_database() or pass database= explicitly"
        raise ImproperConfigurationError(msg)
    return database


def set_default_database(database: "DatabaseProtocol") -> None:
    """Install ``database`` as the default runner for unbound builders."""
    current_database.set(database)


def clear_default_database() -> None:
    current_database.set(None)


@asynccontextmanager
async def use_database(config: "AsyncDatabaseConfig") -> AsyncGenerator["AsyncDatabaseConfig", None]:
    """Open ``config``'s pool and make it the default database for the block.

    On exit the pool is closed and the previous default is restored.

    Yields:
        The opened configuration.
    """
    await config.create_pool()
    token = current_database.set(config)
    logger.debug("Installed default database %r", config)
    try:
        yield config
    finally:
        current_database.reset(token)
        await config.close_pool()
