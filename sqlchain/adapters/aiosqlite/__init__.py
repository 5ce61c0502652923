from importlib.util import find_spec

from sqlchain.exceptions import MissingDependencyError

if find_spec("aiosqlite") is None:
    raise MissingDependencyError("aiosqlite")

from sqlchain.adapters.aiosqlite.config import AiosqliteConfig, AiosqliteConnectionParams, AiosqlitePoolParams
from sqlchain.adapters.aiosqlite.driver import AiosqliteCursor, AiosqliteDriver
from sqlchain.adapters.aiosqlite.pool import (
    AiosqliteConnectionPool,
    AiosqliteConnectTimeoutError,
    AiosqlitePoolClosedError,
)

__all__ = (
    "AiosqliteConfig",
    "AiosqliteConnectTimeoutError",
    "AiosqliteConnectionParams",
    "AiosqliteConnectionPool",
    "AiosqliteCursor",
    "AiosqliteDriver",
    "AiosqlitePoolClosedError",
    "AiosqlitePoolParams",
)
