"""End-to-end behavior against a real SQLite database."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from sqlchain import make_model, set_default_database, transaction, use_database, with_transaction
from sqlchain.adapters.aiosqlite import AiosqliteConfig
from sqlchain.utils.serializers import from_json

pytestmark = pytest.mark.asyncio

SCHEMA = (
    "CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, "
    "email TEXT UNIQUE, age INTEGER, logins INTEGER DEFAULT 0)"
)


@pytest_asyncio.fixture
async def config(tmp_path: Path) -> AsyncGenerator[AiosqliteConfig, None]:
    config = AiosqliteConfig(pool_config={"database": str(tmp_path / "app.db"), "pool_size": 3})
    await config.query(SCHEMA)
    yield config
    await config.close_pool()


@pytest.fixture
def database(config: AiosqliteConfig) -> AiosqliteConfig:
    set_default_database(config)
    return config


async def seed(count: int) -> None:
    await make_model("users").insert_many(
        [{"name": f"user{i}", "email": f"u{i}@example.com", "age": 20 + i} for i in range(count)]
    )


async def test_insert_and_read_back(database: AiosqliteConfig) -> None:
    users = make_model("users")

    new_id = await users.insert({"name": "Ada", "email": "ada@example.com", "age": 36})

    assert new_id == 1
    assert await users.where("id", new_id).first() == {
        "id": 1,
        "name": "Ada",
        "email": "ada@example.com",
        "age": 36,
        "logins": 0,
    }
    assert await users.select(["name", "age"]).where_op("age", ">", 30).get() == [{"name": "Ada", "age": 36}]


async def test_aggregates_and_exists(database: AiosqliteConfig) -> None:
    await seed(4)
    users = make_model("users")

    assert await users.count() == 4
    assert await users.where_op("age", ">=", 22).count() == 2
    assert await users.sum("age") == 86
    assert await users.avg("age") == 21.5
    assert await users.min("age") == 20
    assert await users.max("age") == 23
    assert await users.where("email", "u3@example.com").exists() is True
    assert await make_model("users").where("email", "nobody@example.com").exists() is False


async def test_empty_table_aggregates(database: AiosqliteConfig) -> None:
    users = make_model("users")
    assert await users.count() == 0
    assert await users.sum("age") == 0
    assert await users.max("age") is None


async def test_where_variants_and_pluck(database: AiosqliteConfig) -> None:
    await seed(5)

    names = (
        await make_model("users")
        .where_multi_op([{"column": "age", "operator": ">=", "value": 21}, {"column": "id", "operator": "IN", "value": [2, 3, 5]}])
        .where_like_any(["name", "email"], "user")
        .order_by("id", "DESC")
        .pluck("name")
    )

    assert names == ["user4", "user2", "user1"]


async def test_paginate(database: AiosqliteConfig) -> None:
    await seed(25)

    page = await make_model("users").order_by("id").paginate(page=3, per_page=10)

    assert page.total == 25
    assert page.last_page == 3
    assert [row["id"] for row in page.data] == [21, 22, 23, 24, 25]


async def test_update_increment_delete(database: AiosqliteConfig) -> None:
    await seed(3)
    users = make_model("users")

    assert await users.where("id", 1).update({"name": "renamed"}) == 1
    assert await users.where_in("id", [1, 2]).increment("logins", 3) == 2
    assert await users.where("id", 2).decrement("logins") == 1
    assert await users.where_op("age", ">", 20).delete() == 2

    assert await users.get() == [
        {"id": 1, "name": "renamed", "email": "u0@example.com", "age": 20, "logins": 3},
    ]


async def test_upserts(database: AiosqliteConfig) -> None:
    users = make_model("users")
    await users.insert({"id": 1, "name": "old", "email": "a@example.com"})

    await users.insert_update({"id": 1, "name": "new", "email": "a@example.com"}, ["id"])
    await users.upsert_many(
        [{"id": 1, "name": "newer", "email": "a@example.com"}, {"id": 2, "name": "second", "email": "b@example.com"}],
        ["name"],
    )

    assert await users.order_by("id").pluck("name") == ["newer", "second"]


async def test_transaction_commits(database: AiosqliteConfig) -> None:
    async def register(connection, model) -> int:
        user_id = await model("users").insert({"name": "Tx", "email": "tx@example.com"})
        await model("users").where("id", user_id).increment("logins")
        return user_id

    user_id = await with_transaction(register)

    row = await make_model("users").where("id", user_id).first()
    assert row is not None
    assert row["logins"] == 1


async def test_transaction_rolls_back_every_statement(database: AiosqliteConfig) -> None:
    async def register_twice(connection, model) -> None:
        await model("users").insert({"name": "First", "email": "dup@example.com"})
        await model("users").insert({"name": "Second", "email": "dup@example.com"})

    with pytest.raises(Exception, match="UNIQUE"):
        await with_transaction(register_twice)

    assert await make_model("users").count() == 0


async def test_transaction_context_manager_releases_connection(database: AiosqliteConfig) -> None:
    async with transaction() as (connection, model):
        await model("users").insert({"name": "Ctx"})

    assert connection.is_released
    assert await make_model("users").count() == 1


async def test_audit_table_is_created_on_first_use(database: AiosqliteConfig) -> None:
    users = make_model("users")

    user_id = await users.enable_audit("audit_log", {"user_id": "admin"}).insert({"name": "Audited"})
    await users.enable_audit("audit_log", {"user_id": "admin"}).where("id", user_id).update({"name": "Changed"})

    entries = await make_model("audit_log").order_by("id").get()
    assert [entry["action"] for entry in entries] == ["insert", "update"]
    assert entries[0]["record_id"] == str(user_id)
    assert entries[0]["user_id"] == "admin"
    assert from_json(entries[1]["before_data"])["name"] == "Audited"
    assert from_json(entries[1]["after_data"])["name"] == "Changed"


async def test_audit_inside_transaction(database: AiosqliteConfig) -> None:
    async with transaction() as (_, model):
        await model("users").enable_audit("audit_log").insert({"name": "InTx"})

    assert await make_model("audit_log").count() == 1


async def test_use_database_lifespan(tmp_path: Path) -> None:
    config = AiosqliteConfig(pool_config={"database": str(tmp_path / "lifespan.db")})

    async with use_database(config):
        await config.query("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT)")
        await make_model("notes").insert({"body": "hello"})
        assert await make_model("notes").pluck("body") == ["hello"]

    assert config.pool_instance is None


async def test_in_memory_database_is_shared_across_pooled_connections() -> None:
    config = AiosqliteConfig(pool_config={"database": ":memory:", "pool_size": 2})
    try:
        first = await config.get_connection()
        second = await config.get_connection()
        try:
            await first.query("CREATE TABLE shared_items (id INTEGER PRIMARY KEY)")
            await first.query("INSERT INTO shared_items (id) VALUES (?)", [1])
            assert (await second.query("SELECT id FROM shared_items")).rows == [{"id": 1}]
        finally:
            await first.release()
            await second.release()
    finally:
        await config.close_pool()


async def test_in_memory_reads_outside_a_transaction_see_only_committed_rows() -> None:
    config = AiosqliteConfig(pool_config={"database": ":memory:"})
    try:
        await config.query("CREATE TABLE items (id INTEGER PRIMARY KEY)")
        async with transaction(config) as (_, model):
            await model("items").insert({"id": 1})
            assert await make_model("items", database=config).count() == 0

        assert await make_model("items", database=config).count() == 1
    finally:
        await config.close_pool()
