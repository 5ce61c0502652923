from sqlchain.exceptions import (
    ExtraParameterError,
    ImproperConfigurationError,
    MissingDependencyError,
    MissingParameterError,
    MissingWhereClauseError,
    ParameterError,
    SQLBuilderError,
    SQLChainError,
    TransactionError,
)


def test_exception_hierarchy() -> None:
    assert issubclass(MissingWhereClauseError, SQLBuilderError)
    assert issubclass(MissingParameterError, ParameterError)
    assert issubclass(ExtraParameterError, ParameterError)
    for error in (ImproperConfigurationError, SQLBuilderError, ParameterError, TransactionError):
        assert issubclass(error, SQLChainError)
    assert issubclass(MissingDependencyError, ImportError)


def test_exception_instantiation() -> None:
    exc = SQLBuilderError("bad call")
    assert str(exc) == "bad call"
    assert exc.detail == "bad call"
    assert repr(exc) == "SQLBuilderError - bad call"


def test_builder_error_default_message() -> None:
    assert str(SQLBuilderError()) == "Issues building SQL statement."


def test_missing_where_clause_names_operation() -> None:
    exc = MissingWhereClauseError("delete")
    assert exc.operation == "delete"
    assert str(exc) == "delete() requires at least one where condition"


def test_parameter_error_includes_sql() -> None:
    exc = MissingParameterError("SQL expects 1 parameters but 0 were bound", "SELECT ?")
    assert exc.sql == "SELECT ?"
    assert str(exc) == "SQL expects 1 parameters but 0 were bound\nSQL: SELECT ?"


def test_missing_dependency_mentions_extra() -> None:
    assert "sqlchain[asyncmy]" in str(MissingDependencyError("asyncmy"))
