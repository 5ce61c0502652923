"""Default database installation and teardown."""

from unittest.mock import AsyncMock

import pytest

from sqlchain.context import (
    clear_default_database,
    get_default_database,
    set_default_database,
    use_database,
)
from sqlchain.exceptions import ImproperConfigurationError


def test_get_default_database_when_unset() -> None:
    with pytest.raises(ImproperConfigurationError):
        get_default_database()


def test_set_and_clear(connection) -> None:
    set_default_database(connection)
    assert get_default_database() is connection

    clear_default_database()
    with pytest.raises(ImproperConfigurationError):
        get_default_database()


@pytest.mark.asyncio
async def test_use_database_opens_installs_and_closes() -> None:
    config = AsyncMock()

    async with use_database(config) as installed:
        assert installed is config
        assert get_default_database() is config
        config.create_pool.assert_awaited_once()
        config.close_pool.assert_not_awaited()

    config.close_pool.assert_awaited_once()
    with pytest.raises(ImproperConfigurationError):
        get_default_database()


@pytest.mark.asyncio
async def test_use_database_restores_previous_default(connection) -> None:
    set_default_database(connection)
    config = AsyncMock()

    with pytest.raises(RuntimeError):
        async with use_database(config):
            raise RuntimeError("boom")

    assert get_default_database() is connection
    config.close_pool.assert_awaited_once()
