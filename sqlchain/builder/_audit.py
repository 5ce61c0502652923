"""Audit trail written alongside inserts, updates and deletes.

Auditing is best effort. A missing audit table is created once and the write
retried; any other failure is logged and dropped so the data operation that
triggered it is never affected.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from typing_extensions import Self

from sqlchain.builder._dialect import is_missing_table_error
from sqlchain.context import current_database
from sqlchain.utils.logging import get_logger
from sqlchain.utils.serializers import to_json

if TYPE_CHECKING:
    from sqlchain.builder._dialect import Dialect
    from sqlchain.typing import ConnectionProtocol, DatabaseProtocol

__all__ = ("AuditMixin", "AuditTarget")

logger = get_logger("builder.audit")


@dataclass(frozen=True)
class AuditTarget:
    """Where audit rows go and who they are attributed to."""

    table: str
    meta: "Mapping[str, Any]" = field(default_factory=dict)

    @property
    def user_id(self) -> Any:
        return self.meta.get("user_id")


class AuditMixin(ABC):
    table: str
    dialect: "Dialect"
    connection: "Optional[ConnectionProtocol]"
    database: "Optional[DatabaseProtocol]"
    _audit: Optional[AuditTarget]

    @abstractmethod
    def _runner(self) -> "ConnectionProtocol":
        """Connection or database that data statements run on."""

    def enable_audit(self, table: str, meta: "Optional[Mapping[str, Any]]" = None) -> Self:
        """Record the next insert, update or delete in ``table``.

        Args:
            table: Audit table name.
            meta: Actor metadata; ``user_id`` is stored with every audit row.

        Returns:
            The builder, for chaining.
        """
        self._audit = AuditTarget(table, dict(meta or {}))
        return self

    @property
    def audit_target(self) -> Optional[AuditTarget]:
        return self._audit

    def _schema_runner(self) -> "ConnectionProtocol":
        # DDL on the borrowed connection would commit a MySQL transaction early.
        if self.connection is not None and not self.dialect.ddl_commits_transaction:
            return self.connection
        database = self.database if self.database is not None else current_database.get()
        return database if database is not None else self._runner()

    async def _log_audit(
        self,
        action: str,
        *,
        record_id: Any = None,
        before: Any = None,
        after: Any = None,
    ) -> None:
        target = self._audit
        if target is None:
            return

        row = {
            "table_name": self.table,
            "action": action,
            "record_id": None if record_id is None else str(record_id),
            "before_data": to_json(before) if before else None,
            "after_data": to_json(after) if after else None,
            "user_id": target.user_id,
            "created_at": datetime.now(timezone.utc),
        }
        sql = f"INSERT INTO {target.table} ({', '.join(row)}) VALUES ({', '.join('?' for _ in row)})"
        values = list(row.values())

        try:
            await self._runner().query(sql, values)
        except Exception as exc:
            if not is_missing_table_error(exc):
                logger.warning("Audit log skipped for %s %s: %s", self.table, action, exc)
                return
            logger.warning("Audit table %s missing, creating it", target.table)
            try:
                await self._schema_runner().query(self.dialect.audit_table_ddl(target.table))
                await self._runner().query(sql, values)
            except Exception as retry_exc:
                logger.warning("Audit log skipped for %s %s: %s", self.table, action, retry_exc)
