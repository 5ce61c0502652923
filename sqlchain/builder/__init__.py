"""Fluent statement builder."""

from typing import TYPE_CHECKING, Optional

from sqlchain.builder._audit import AuditMixin, AuditTarget
from sqlchain.builder._dialect import DEFAULT_DIALECT, Dialect, get_dialect
from sqlchain.builder._model import Model, Paginated

if TYPE_CHECKING:
    from sqlchain.typing import ConnectionProtocol, DatabaseProtocol

__all__ = (
    "DEFAULT_DIALECT",
    "AuditMixin",
    "AuditTarget",
    "Dialect",
    "Model",
    "Paginated",
    "get_dialect",
    "make_model",
)


def make_model(
    table: str,
    connection: "Optional[ConnectionProtocol]" = None,
    *,
    database: "Optional[DatabaseProtocol]" = None,
    dialect: Optional[str] = None,
) -> Model:
    """Create a builder for ``table``.

    Args:
        table: Table the statements target. An alias may follow the name (``"users u"``).
        connection: Connection to run on instead of the default database,
            typically the one yielded by :func:`sqlchain.transaction`.
        database: Explicit database to use when no connection is bound.
        dialect: sqlglot dialect name; inferred from the connection or database when omitted.

    Returns:
        A fresh :class:`Model`.
    """
    return Model(table, connection, database=database, dialect=dialect)
