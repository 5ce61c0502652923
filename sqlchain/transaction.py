"""Run several builder statements atomically on one pooled connection."""

from collections.abc import AsyncGenerator, Awaitable
from contextlib import asynccontextmanager
from functools import partial
from typing import TYPE_CHECKING, Callable, Optional, TypeVar

from sqlchain.builder import Model, make_model
from sqlchain.context import get_default_database
from sqlchain.exceptions import TransactionError
from sqlchain.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlchain.typing import DatabaseProtocol, TransactionalConnectionProtocol

__all__ = ("ModelFactory", "transaction", "with_transaction")

T = TypeVar("T")

ModelFactory = Callable[[str], Model]

logger = get_logger("transaction")


@asynccontextmanager
async def transaction(
    database: "Optional[DatabaseProtocol]" = None,
) -> "AsyncGenerator[tuple[TransactionalConnectionProtocol, ModelFactory], None]":
    """Borrow one connection and wrap the block in a transaction.

    The block receives the connection and a factory that builds models bound
    to it. Leaving the block normally commits. Any exception, including one
    raised by ``COMMIT``, rolls back and propagates unchanged. The connection
    is released on every path.

    Args:
        database: Database to borrow from. Defaults to the installed default database.

    Raises:
        TransactionError: ``BEGIN`` failed.

    Yields:
        ``(connection, factory)``.

    Example::

        async with transaction() as (connection, model):
            order_id = await model("orders").insert({"user_id": 7})
            await model("stock").where("sku", "A1").decrement("quantity")
    """
    database = database if database is not None else get_default_database()
    connection = await database.get_connection()
    try:
        try:
            await connection.begin()
        except TransactionError:
            raise
        except Exception as exc:
            msg = f"Could not begin transaction: {exc}"
            raise TransactionError(msg) from exc
        logger.debug("Transaction started")

        try:
            yield connection, partial(make_model, connection=connection)
            await connection.commit()
        except BaseException:
            try:
                await connection.rollback()
            except Exception:
                logger.exception("Rollback failed; original error re-raised")
            else:
                logger.debug("Transaction rolled back")
            raise
        logger.debug("Transaction committed")
    finally:
        await connection.release()


async def with_transaction(
    callback: "Callable[[TransactionalConnectionProtocol, ModelFactory], Awaitable[T]]",
    database: "Optional[DatabaseProtocol]" = None,
) -> T:
    """Await ``callback(connection, factory)`` inside :func:`transaction`.

    Returns:
        Whatever the callback returns, after the commit succeeded.
    """
    async with transaction(database) as (connection, factory):
        return await callback(connection, factory)
