"""Tagged clause tree for the statement builder.

Clause methods on :class:`~sqlchain.builder.Model` only record nodes; SQL text
and the parameter list are produced together when the statement is rendered,
so every placeholder and its value always come from the same node.
"""

import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Final, Optional

if TYPE_CHECKING:
    from sqlchain.builder._dialect import Dialect

__all__ = (
    "STAR",
    "Comparison",
    "Having",
    "InList",
    "Join",
    "OrderBy",
    "Predicate",
    "PredicateGroup",
    "SelectItem",
    "SelectState",
    "WhereTerm",
    "like_any",
    "looks_like_expression",
    "render_where",
)

_EXPRESSION_CHARS: Final = re.compile(r"[\s()+\-*/%]")
_QUALIFIED_COLUMN: Final = re.compile(r"^[a-zA-Z0-9_]+\.[a-zA-Z0-9_]+$")


def looks_like_expression(column: str) -> bool:
    """Whether ``column`` should be emitted verbatim instead of quoted.

    SQL functions, arithmetic, anything with whitespace and ``alias.column``
    references are left alone; bare names get quoted.
    """
    return bool(_EXPRESSION_CHARS.search(column) or _QUALIFIED_COLUMN.match(column))


@dataclass(frozen=True)
class SelectItem:
    """One entry of the select list."""

    expression: str
    alias: Optional[str] = None
    quote: bool = False

    def render(self, dialect: "Dialect") -> str:
        sql = dialect.quote_identifier(self.expression) if self.quote else self.expression
        if self.alias is not None:
            sql = f"{sql} AS {dialect.quote_identifier(self.alias)}"
        return sql


STAR: Final = SelectItem("*")


@dataclass(frozen=True)
class Join:
    kind: str
    table: str
    on: str

    def render(self) -> str:
        return f" {self.kind} JOIN {self.table} ON {self.on}"


class Predicate(ABC):
    """A boolean condition with the values its placeholders bind."""

    __slots__ = ()

    @abstractmethod
    def render(self) -> str: ...

    @property
    @abstractmethod
    def parameters(self) -> "tuple[Any, ...]": ...


@dataclass(frozen=True)
class Comparison(Predicate):
    """``column <operator> ?``"""

    column: str
    operator: str
    value: Any

    def render(self) -> str:
        return f"{self.column} {self.operator} ?"

    @property
    def parameters(self) -> "tuple[Any, ...]":
        return (self.value,)


@dataclass(frozen=True)
class InList(Predicate):
    """``column IN (?, ?, ...)`` with one placeholder per value."""

    column: str
    values: "tuple[Any, ...]"

    def render(self) -> str:
        placeholders = ", ".join("?" for _ in self.values)
        return f"{self.column} IN ({placeholders})"

    @property
    def parameters(self) -> "tuple[Any, ...]":
        return self.values


@dataclass(frozen=True)
class PredicateGroup(Predicate):
    """Parenthesized predicates joined by one connector."""

    connector: str
    predicates: "tuple[Predicate, ...]"

    def render(self) -> str:
        joined = f" {self.connector} ".join(predicate.render() for predicate in self.predicates)
        return f"({joined})"

    @property
    def parameters(self) -> "tuple[Any, ...]":
        return tuple(value for predicate in self.predicates for value in predicate.parameters)


def like_any(columns: "Sequence[str]", search: Any) -> PredicateGroup:
    """``(col1 LIKE ? OR col2 LIKE ? ...)`` matching ``%search%`` on every column."""
    pattern = f"%{search}%"
    return PredicateGroup("OR", tuple(Comparison(column, "LIKE", pattern) for column in columns))


@dataclass(frozen=True)
class WhereTerm:
    """A predicate and the connector that joins it to the terms before it."""

    connector: str
    predicate: Predicate


def render_where(terms: "Sequence[WhereTerm]") -> "tuple[str, list[Any]]":
    """Render WHERE terms left to right.

    Returns:
        ``("WHERE a = ? AND b = ?", [a, b])``, or ``("", [])`` without terms.
    """
    if not terms:
        return "", []
    parts: list[str] = []
    parameters: list[Any] = []
    for index, term in enumerate(terms):
        sql = term.predicate.render()
        parts.append(f"WHERE {sql}" if index == 0 else f" {term.connector} {sql}")
        parameters.extend(term.predicate.parameters)
    return "".join(parts), parameters


@dataclass(frozen=True)
class Having:
    condition: str
    parameters: "tuple[Any, ...]" = ()

    def render(self) -> str:
        return f" HAVING {self.condition}"


@dataclass(frozen=True)
class OrderBy:
    column: str
    direction: str = "ASC"

    def render(self) -> str:
        return f" ORDER BY {self.column} {self.direction}"


@dataclass
class SelectState:
    """Everything a builder has accumulated for the statement in progress."""

    select: "tuple[SelectItem, ...]" = (STAR,)
    joins: "list[Join]" = field(default_factory=list)
    where: "list[WhereTerm]" = field(default_factory=list)
    group_by: "tuple[str, ...]" = ()
    having: Optional[Having] = None
    order_by: Optional[OrderBy] = None
    limit: Optional[int] = None
    leading_parameters: "list[Any]" = field(default_factory=list)

    def copy(self) -> "SelectState":
        return replace(
            self,
            joins=list(self.joins),
            where=list(self.where),
            leading_parameters=list(self.leading_parameters),
        )
