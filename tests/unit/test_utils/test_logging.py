import logging

import pytest

from sqlchain.utils.logging import get_logger, log_with_context


def test_get_logger_namespaces_names() -> None:
    assert get_logger().name == "sqlchain"
    assert get_logger("builder").name == "sqlchain.builder"
    assert get_logger("sqlchain.driver").name == "sqlchain.driver"


def test_sqlchain_installs_no_handlers() -> None:
    get_logger("transaction")
    assert get_logger().handlers == []


def test_log_with_context_renders_and_attaches_fields(caplog: pytest.LogCaptureFixture) -> None:
    logger = get_logger("test.context")

    with caplog.at_level(logging.DEBUG, logger="sqlchain.test.context"):
        log_with_context(logger, logging.DEBUG, "driver.query", sql="SELECT 1", parameter_count=0)

    record = caplog.records[0]
    assert record.getMessage() == "driver.query sql='SELECT 1' parameter_count=0"
    assert record.extra_fields == {"sql": "SELECT 1", "parameter_count": 0}


def test_log_with_context_skips_disabled_levels(caplog: pytest.LogCaptureFixture) -> None:
    logger = get_logger("test.disabled")

    with caplog.at_level(logging.WARNING, logger="sqlchain.test.disabled"):
        log_with_context(logger, logging.DEBUG, "ignored")

    assert caplog.records == []
