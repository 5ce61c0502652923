from typing import get_args

from sqlchain.builder import make_model
from sqlchain.typing import Empty, EmptyType


def test_empty_type_admits_only_the_empty_sentinel() -> None:
    assert get_args(EmptyType) == (Empty,)


def test_none_is_a_value_not_the_missing_marker() -> None:
    users = make_model("users").where_op("deleted_at", "IS", None)
    assert users.build() == ("SELECT * FROM users WHERE deleted_at IS ?", [None])
