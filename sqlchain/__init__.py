"""sqlchain: fluent SQL statement building with connection-scoped transactions."""

from sqlchain import builder, exceptions, typing, utils
from sqlchain.__metadata__ import __version__
from sqlchain.builder import Model, Paginated, make_model
from sqlchain.config import AsyncDatabaseConfig
from sqlchain.context import clear_default_database, get_default_database, set_default_database, use_database
from sqlchain.driver import AsyncDriverAdapterBase, QueryResult
from sqlchain.exceptions import (
    ExtraParameterError,
    ImproperConfigurationError,
    MissingParameterError,
    MissingWhereClauseError,
    ParameterError,
    SQLBuilderError,
    SQLChainError,
    TransactionError,
)
from sqlchain.transaction import transaction, with_transaction
from sqlchain.typing import ConnectionProtocol, DatabaseProtocol, DictRow, Empty

__all__ = (
    "AsyncDatabaseConfig",
    "AsyncDriverAdapterBase",
    "ConnectionProtocol",
    "DatabaseProtocol",
    "DictRow",
    "Empty",
    "ExtraParameterError",
    "ImproperConfigurationError",
    "MissingParameterError",
    "MissingWhereClauseError",
    "Model",
    "Paginated",
    "ParameterError",
    "QueryResult",
    "SQLBuilderError",
    "SQLChainError",
    "TransactionError",
    "__version__",
    "builder",
    "clear_default_database",
    "exceptions",
    "get_default_database",
    "make_model",
    "set_default_database",
    "transaction",
    "typing",
    "use_database",
    "utils",
    "with_transaction",
)
