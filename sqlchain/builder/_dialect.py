"""Dialect-specific rendering.

Almost everything the builder emits is dialect neutral. The exceptions are
identifier quoting (delegated to sqlglot), the upsert clause, and the DDL used
to create a missing audit table.
"""

from collections.abc import Sequence
from functools import lru_cache
from typing import Final

import sqlglot
from sqlglot import exp
from sqlglot.dialects.dialect import Dialect as SqlglotDialect
from sqlglot.errors import SqlglotError

from sqlchain.exceptions import ImproperConfigurationError

__all__ = ("DEFAULT_DIALECT", "Dialect", "get_dialect", "is_missing_table_error")

DEFAULT_DIALECT: Final = "mysql"

_DUPLICATE_KEY_DIALECTS: Final = frozenset({"mysql", "singlestore", "doris", "starrocks"})

_MYSQL_ER_NO_SUCH_TABLE: Final = 1146
_MISSING_TABLE_MARKERS: Final = ("doesn't exist", "ER_NO_SUCH_TABLE", "no such table", "does not exist")

_AUDIT_DDL: Final = {
    "mysql": """CREATE TABLE IF NOT EXISTS {table} (
    id INT AUTO_INCREMENT PRIMARY KEY,
    table_name VARCHAR(50),
    action CHAR(250),
    record_id VARCHAR(36),
    before_data JSON,
    after_data JSON,
    user_id CHAR(36),
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
)""",
    "sqlite": """CREATE TABLE IF NOT EXISTS {table} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    table_name VARCHAR(50),
    action VARCHAR(250),
    record_id VARCHAR(36),
    before_data TEXT,
    after_data TEXT,
    user_id VARCHAR(36),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)""",
    "postgres": """CREATE TABLE IF NOT EXISTS {table} (
    id BIGSERIAL PRIMARY KEY,
    table_name VARCHAR(50),
    action VARCHAR(250),
    record_id VARCHAR(36),
    before_data JSONB,
    after_data JSONB,
    user_id VARCHAR(36),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)""",
}


class Dialect:
    """Rendering rules for one sqlglot dialect name."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"Dialect({self.name!r})"

    @property
    def uses_duplicate_key_upsert(self) -> bool:
        return self.name in _DUPLICATE_KEY_DIALECTS

    @property
    def ddl_commits_transaction(self) -> bool:
        """MySQL-family servers implicitly commit the open transaction on DDL."""
        return self.name in _DUPLICATE_KEY_DIALECTS

    def quote_identifier(self, name: str) -> str:
        if name == "*":
            return name
        return exp.to_identifier(name, quoted=True).sql(dialect=self.name)

    def upsert_clause(self, update_columns: "Sequence[str]", conflict_columns: "Sequence[str]" = ()) -> str:
        """Clause appended to an INSERT so conflicting rows are updated in place.

        Args:
            update_columns: Columns overwritten with the incoming values.
            conflict_columns: Conflict target, for dialects that use ``ON CONFLICT``.

        Returns:
            The clause with a leading space, or ``""`` when nothing is updated.
        """
        if not update_columns:
            return ""
        if self.uses_duplicate_key_upsert:
            assignments = ", ".join(f"{column}=VALUES({column})" for column in update_columns)
            return f" ON DUPLICATE KEY UPDATE {assignments}"
        assignments = ", ".join(f"{column}=excluded.{column}" for column in update_columns)
        target = f" ({', '.join(conflict_columns)})" if conflict_columns else ""
        return f" ON CONFLICT{target} DO UPDATE SET {assignments}"

    def audit_table_ddl(self, table: str) -> str:
        template = _AUDIT_DDL.get(self.name)
        if template is None:
            template = _AUDIT_DDL["mysql"] if self.uses_duplicate_key_upsert else _AUDIT_DDL["postgres"]
        return template.format(table=table)

    def pretty(self, sql: str) -> str:
        """Pretty-print ``sql`` for debugging; unparseable text is returned as is."""
        try:
            return sqlglot.transpile(sql, read=self.name, pretty=True)[0]
        except (SqlglotError, IndexError):
            return sql


@lru_cache(maxsize=32)
def get_dialect(name: str = DEFAULT_DIALECT) -> Dialect:
    """Resolve a sqlglot dialect name.

    Raises:
        ImproperConfigurationError: sqlglot does not know ``name``.
    """
    try:
        SqlglotDialect.get_or_raise(name)
    except ValueError as exc:
        msg = f"Unknown SQL dialect {name!r}"
        raise ImproperConfigurationError(msg) from exc
    return Dialect(name)


def is_missing_table_error(error: BaseException) -> bool:
    """Whether a driver error reports that the target table does not exist."""
    if error.args and error.args[0] == _MYSQL_ER_NO_SUCH_TABLE:
        return True
    message = str(error)
    return any(marker in message for marker in _MISSING_TABLE_MARKERS)
