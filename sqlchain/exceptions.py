from typing import Any, Optional

__all__ = (
    "ExtraParameterError",
    "ImproperConfigurationError",
    "MissingDependencyError",
    "MissingParameterError",
    "MissingWhereClauseError",
    "ParameterError",
    "SQLBuilderError",
    "SQLChainError",
    "TransactionError",
)


class SQLChainError(Exception):
    """Root of every error sqlchain raises.

    The first truthy positional argument becomes :attr:`detail` unless one is
    passed explicitly; the rest stay in ``args``.
    """

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        messages = [str(arg) for arg in args if arg]
        if not detail and messages:
            detail = messages.pop(0)
        self.detail = detail
        super().__init__(*messages)

    def __repr__(self) -> str:
        name = type(self).__name__
        return f"{name} - {self.detail}" if self.detail else name

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class MissingDependencyError(SQLChainError, ImportError):
    """An adapter was imported without its driver library installed."""

    def __init__(self, package: str, install_package: Optional[str] = None) -> None:
        extra = install_package or package
        super().__init__(f"{package!r} is not installed; install it with 'pip install sqlchain[{extra}]'")


class ImproperConfigurationError(SQLChainError):
    """No default database is installed, or a configuration value is unusable."""


class SQLBuilderError(SQLChainError):
    """Caller misuse of the statement builder."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or "Issues building SQL statement.")


class MissingWhereClauseError(SQLBuilderError):
    """An UPDATE, DELETE or increment was requested without any WHERE condition."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"{operation}() requires at least one where condition")
        self.operation = operation


class ParameterError(SQLChainError):
    """Bound values do not line up with the statement's placeholders."""

    def __init__(self, message: str, sql: Optional[str] = None) -> None:
        super().__init__(detail=f"{message}\nSQL: {sql}" if sql else message)
        self.sql = sql


class MissingParameterError(ParameterError):
    """The statement has more placeholders than bound values."""


class ExtraParameterError(ParameterError):
    """More values are bound than the statement has placeholders."""


class TransactionError(SQLChainError):
    """A transaction could not be started, committed or rolled back."""
