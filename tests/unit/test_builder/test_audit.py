"""Audit rows written next to data changes."""

import logging
from datetime import datetime

import pytest

from sqlchain.builder import AuditMixin, AuditTarget, make_model
from sqlchain.context import set_default_database
from sqlchain.driver import QueryResult
from sqlchain.utils.serializers import from_json

AUDIT_INSERT = (
    "INSERT INTO audit_log (table_name, action, record_id, before_data, after_data, user_id, created_at) "
    "VALUES (?, ?, ?, ?, ?, ?, ?)"
)


def test_audit_mixin_requires_a_runner() -> None:
    class NoRunner(AuditMixin):
        pass

    with pytest.raises(TypeError, match="_runner"):
        NoRunner()


def test_enable_audit_records_target() -> None:
    users = make_model("users").enable_audit("audit_log", {"user_id": "u1", "ip": "127.0.0.1"})
    assert users.audit_target == AuditTarget("audit_log", {"user_id": "u1", "ip": "127.0.0.1"})
    assert users.audit_target.user_id == "u1"


@pytest.mark.asyncio
async def test_insert_writes_audit_row(connection) -> None:
    connection.query.side_effect = [QueryResult(rows_affected=1, last_inserted_id=5), QueryResult(rows_affected=1)]

    new_id = await make_model("users", connection).enable_audit("audit_log", {"user_id": "u1"}).insert({"name": "A"})

    assert new_id == 5
    sql, parameters = connection.query.await_args_list[1].args
    assert sql == AUDIT_INSERT
    assert parameters[:6] == ["users", "insert", "5", None, '{"name":"A"}', "u1"]
    assert isinstance(parameters[6], datetime)


@pytest.mark.asyncio
async def test_update_snapshots_before_and_after(connection) -> None:
    connection.query.side_effect = [
        QueryResult(rows=[{"id": 1, "name": "A"}]),
        QueryResult(rows_affected=1),
        QueryResult(rows_affected=1),
    ]

    users = make_model("users", connection).enable_audit("audit_log", {"user_id": 9})
    assert await users.where("id", 1).update({"name": "B"}) == 1

    calls = [awaited.args for awaited in connection.query.await_args_list]
    assert calls[0] == ("SELECT * FROM users WHERE id = ? LIMIT 1", [1])
    assert calls[1] == ("UPDATE users SET name = ? WHERE id = ?", ["B", 1])
    audit_parameters = calls[2][1]
    assert audit_parameters[:3] == ["users", "update", "1"]
    assert from_json(audit_parameters[3]) == {"id": 1, "name": "A"}
    assert from_json(audit_parameters[4]) == {"id": 1, "name": "B"}
    assert audit_parameters[5] == 9


@pytest.mark.asyncio
async def test_delete_snapshots_matching_rows(connection) -> None:
    connection.query.side_effect = [
        QueryResult(rows=[{"id": 4, "name": "A"}, {"id": 5, "name": "B"}]),
        QueryResult(rows_affected=2),
        QueryResult(rows_affected=1),
    ]

    await make_model("users", connection).enable_audit("audit_log").where_in("id", [4, 5]).delete()

    calls = [awaited.args for awaited in connection.query.await_args_list]
    assert calls[0] == ("SELECT * FROM users WHERE id IN (?, ?)", [4, 5])
    assert calls[1] == ("DELETE FROM users WHERE id IN (?, ?)", [4, 5])
    audit_parameters = calls[2][1]
    assert audit_parameters[1:3] == ["delete", "4"]
    assert from_json(audit_parameters[3]) == [{"id": 4, "name": "A"}, {"id": 5, "name": "B"}]
    assert audit_parameters[4] is None
    assert audit_parameters[5] is None


@pytest.mark.asyncio
async def test_no_snapshot_without_audit(connection) -> None:
    await make_model("users", connection).where("id", 1).update({"name": "B"})
    connection.query.assert_awaited_once()


@pytest.mark.asyncio
async def test_missing_audit_table_is_created_and_retried(sqlite_connection) -> None:
    sqlite_connection.query.side_effect = [
        QueryResult(rows_affected=1, last_inserted_id=1),
        Exception("no such table: audit_log"),
        QueryResult(),
        QueryResult(rows_affected=1),
    ]

    await make_model("users", sqlite_connection).enable_audit("audit_log").insert({"name": "A"})

    calls = [awaited.args for awaited in sqlite_connection.query.await_args_list]
    assert len(calls) == 4
    assert calls[2][0].startswith("CREATE TABLE IF NOT EXISTS audit_log (")
    assert "AUTOINCREMENT" in calls[2][0]
    assert calls[3][0] == AUDIT_INSERT


@pytest.mark.asyncio
async def test_mysql_audit_table_is_created_outside_the_bound_connection(make_connection) -> None:
    bound = make_connection()
    database = make_connection()
    bound.query.side_effect = [
        QueryResult(rows_affected=1, last_inserted_id=1),
        Exception(1146, "Table 'app.audit_log' doesn't exist"),
        QueryResult(rows_affected=1),
    ]
    set_default_database(database)

    await make_model("users", bound).enable_audit("audit_log").insert({"name": "A"})

    database.query.assert_awaited_once()
    assert "AUTO_INCREMENT" in database.query.await_args.args[0]
    assert bound.query.await_args_list[2].args[0] == AUDIT_INSERT


@pytest.mark.asyncio
async def test_audit_failures_are_swallowed(connection, caplog: pytest.LogCaptureFixture) -> None:
    connection.query.side_effect = [QueryResult(rows_affected=1, last_inserted_id=3), Exception("disk full")]

    with caplog.at_level(logging.WARNING, logger="sqlchain.builder.audit"):
        new_id = await make_model("users", connection).enable_audit("audit_log").insert({"name": "A"})

    assert new_id == 3
    assert "disk full" in caplog.text
    assert connection.query.await_count == 2


@pytest.mark.asyncio
async def test_failed_retry_is_swallowed(sqlite_connection) -> None:
    sqlite_connection.query.side_effect = [
        QueryResult(rows_affected=1, last_inserted_id=1),
        Exception("no such table: audit_log"),
        Exception("permission denied"),
    ]

    assert await make_model("users", sqlite_connection).enable_audit("audit_log").insert({"name": "A"}) == 1
    assert sqlite_connection.query.await_count == 3


@pytest.mark.asyncio
async def test_audit_target_resets_after_operation(connection) -> None:
    users = make_model("users", connection).enable_audit("audit_log")
    await users.insert({"name": "A"})
    await users.insert({"name": "B"})

    assert users.audit_target is None
    assert connection.query.await_count == 3
