from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from sqlchain.context import clear_default_database
from sqlchain.driver import QueryResult

here = Path(__file__).parent
root_path = here.parent

ConnectionFactory = Callable[..., MagicMock]


def _make_connection(dialect: str = "mysql", result: Optional[Any] = None) -> MagicMock:
    connection = MagicMock()
    connection.dialect = dialect
    connection.query = AsyncMock(return_value=result if result is not None else QueryResult())
    connection.get_connection = AsyncMock()
    connection.begin = AsyncMock()
    connection.commit = AsyncMock()
    connection.rollback = AsyncMock()
    connection.release = AsyncMock()
    return connection


@pytest.fixture
def make_connection() -> ConnectionFactory:
    """Build fake connections whose ``query`` coroutine returns a fixed result."""
    return _make_connection


@pytest.fixture
def connection() -> MagicMock:
    return _make_connection()


@pytest.fixture
def sqlite_connection() -> MagicMock:
    return _make_connection("sqlite")


@pytest.fixture(autouse=True)
def _reset_default_database() -> Generator[None, None, None]:
    yield
    clear_default_database()
