from importlib.util import find_spec

from sqlchain.exceptions import MissingDependencyError

if find_spec("asyncmy") is None:
    raise MissingDependencyError("asyncmy")

from sqlchain.adapters.asyncmy.config import AsyncmyConfig, AsyncmyConnectionConfig, AsyncmyPoolConfig
from sqlchain.adapters.asyncmy.driver import AsyncmyCursor, AsyncmyDriver

__all__ = ("AsyncmyConfig", "AsyncmyConnectionConfig", "AsyncmyCursor", "AsyncmyDriver", "AsyncmyPoolConfig")
