"""Type guard functions for runtime type checking in sqlchain."""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from typing_extensions import TypeGuard

__all__ = ("is_value_sequence",)


def is_value_sequence(obj: Any) -> "TypeGuard[list[Any] | tuple[Any, ...]]":
    """Check if an object is a list or tuple of bound values.

    Strings and bytes are excluded even though they are sequences.

    Args:
        obj: Value to check.

    Returns:
        bool
    """
    return isinstance(obj, (list, tuple))
