"""Placeholder scanning and conversion.

The builder always renders ``?`` placeholders. Drivers whose DB-API module uses
another paramstyle convert the rendered text with :func:`convert_placeholders`,
and every executing call checks the placeholder count against the bound values
with :func:`validate_parameter_count` before touching a connection.
"""

import re
from collections.abc import Sequence
from enum import Enum
from functools import lru_cache
from typing import Any, Final, Optional

from sqlchain.exceptions import ExtraParameterError, MissingParameterError

__all__ = (
    "ParameterInfo",
    "ParameterStyle",
    "convert_placeholders",
    "count_placeholders",
    "extract_placeholders",
    "validate_parameter_count",
)


class ParameterStyle(str, Enum):
    """Parameter style enumeration with string values."""

    QMARK = "qmark"
    POSITIONAL_PYFORMAT = "pyformat_positional"

    def __str__(self) -> str:
        return self.value


class ParameterInfo:
    """Location of one placeholder inside a SQL string."""

    __slots__ = ("ordinal", "placeholder_text", "position", "style")

    def __init__(self, style: ParameterStyle, position: int, ordinal: int, placeholder_text: str) -> None:
        self.style = style
        self.position = position
        self.ordinal = ordinal
        self.placeholder_text = placeholder_text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return False
        return self.style == other.style and self.position == other.position

    def __hash__(self) -> int:
        return hash((self.style, self.position))

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(style={self.style!r}, position={self.position!r}, "
            f"ordinal={self.ordinal!r}, placeholder_text={self.placeholder_text!r})"
        )


_PARAMETER_REGEX: Final = re.compile(
    r"""
    # Literals and comments are matched first so placeholders inside them are skipped
    (?P<dquote>"(?:[^"\\]|\\.)*") |
    (?P<squote>'(?:[^'\\]|\\.)*') |
    (?P<backtick>`[^`]*`) |
    (?P<line_comment>--[^\r\n]*) |
    (?P<block_comment>/\*(?:[^*]|\*(?!/))*\*/) |
    (?P<qmark>\?)
    """,
    re.VERBOSE | re.MULTILINE | re.DOTALL,
)


@lru_cache(maxsize=1024)
def _extract(sql: str) -> tuple[ParameterInfo, ...]:
    parameters: list[ParameterInfo] = []
    for match in _PARAMETER_REGEX.finditer(sql):
        if not match.group("qmark"):
            continue
        parameters.append(
            ParameterInfo(
                style=ParameterStyle.QMARK,
                position=match.start(),
                ordinal=len(parameters),
                placeholder_text=match.group(),
            )
        )
    return tuple(parameters)


def extract_placeholders(sql: str) -> list[ParameterInfo]:
    """Find every ``?`` placeholder outside literals and comments.

    Args:
        sql: SQL text to scan.

    Returns:
        Placeholder descriptions in left-to-right order.
    """
    return list(_extract(sql))


def count_placeholders(sql: str) -> int:
    """Number of positional placeholders in ``sql``."""
    return len(_extract(sql))


def validate_parameter_count(sql: str, parameters: "Optional[Sequence[Any]]") -> None:
    """Ensure ``sql`` binds exactly as many values as it has placeholders.

    Raises:
        MissingParameterError: fewer values than placeholders.
        ExtraParameterError: more values than placeholders.
    """
    expected = count_placeholders(sql)
    supplied = len(parameters) if parameters else 0
    if supplied < expected:
        msg = f"SQL expects {expected} parameters but {supplied} were bound"
        raise MissingParameterError(msg, sql)
    if supplied > expected:
        msg = f"SQL expects {expected} parameters but {supplied} were bound"
        raise ExtraParameterError(msg, sql)


def convert_placeholders(sql: str, target_style: ParameterStyle) -> str:
    """Rewrite ``?`` placeholders into ``target_style``.

    Converting to ``%s`` also doubles every literal ``%`` so the DB-API module's
    ``%`` interpolation leaves the statement text intact.

    Args:
        sql: SQL rendered with ``?`` placeholders.
        target_style: Placeholder style the driver expects.

    Returns:
        The converted SQL text.
    """
    if target_style is ParameterStyle.QMARK:
        return sql

    parts: list[str] = []
    current_pos = 0
    for param in _extract(sql):
        parts.append(sql[current_pos : param.position].replace("%", "%%"))
        parts.append("%s")
        current_pos = param.position + len(param.placeholder_text)
    parts.append(sql[current_pos:].replace("%", "%%"))
    return "".join(parts)
