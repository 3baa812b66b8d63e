"""Ordering policies for row and column key sequences."""

from __future__ import annotations

from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Iterable, List, Sequence

from .sorting import Sorters, key_sort, natural_sort
from .values import Key


class SortOrder(str, Enum):
    KEY_A_TO_Z = "key_a_to_z"
    VALUE_A_TO_Z = "value_a_to_z"
    VALUE_Z_TO_A = "value_z_to_a"

    @classmethod
    def parse(cls, value: Any) -> "SortOrder":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(order.value for order in cls)
            raise ValueError(f"Unknown sort order '{value}'; expected one of {choices}") from None

    @property
    def next(self) -> "SortOrder":
        return _CYCLE[self]

    @property
    def row_symbol(self) -> str:
        return _SYMBOLS[self][0]

    @property
    def col_symbol(self) -> str:
        return _SYMBOLS[self][1]


_CYCLE = {
    SortOrder.KEY_A_TO_Z: SortOrder.VALUE_A_TO_Z,
    SortOrder.VALUE_A_TO_Z: SortOrder.VALUE_Z_TO_A,
    SortOrder.VALUE_Z_TO_A: SortOrder.KEY_A_TO_Z,
}

_SYMBOLS = {
    SortOrder.KEY_A_TO_Z: ("↕", "↔"),
    SortOrder.VALUE_A_TO_Z: ("↓", "→"),
    SortOrder.VALUE_Z_TO_A: ("↑", "←"),
}


def order_keys(
    keys: Iterable[Key],
    attrs: Sequence[str],
    order: SortOrder,
    sorters: Sorters = None,
    value_of: Callable[[Key], Any] = lambda key: None,
) -> List[Key]:
    """Return ``keys`` ordered by ``order``.

    Value orders compare ``value_of(key)`` with natural sort and fall back to
    key order on ties, so every policy yields a deterministic sequence.
    """

    order = SortOrder.parse(order)
    by_key = key_sort(attrs, sorters)
    if order is SortOrder.KEY_A_TO_Z:
        return sorted(keys, key=cmp_to_key(by_key))

    sign = 1 if order is SortOrder.VALUE_A_TO_Z else -1
    pairs = [(key, value_of(key)) for key in keys]

    def compare(a, b) -> int:
        return sign * natural_sort(a[1], b[1]) or by_key(a[0], b[0])

    return [key for key, _ in sorted(pairs, key=cmp_to_key(compare))]


__all__ = ["SortOrder", "order_keys"]
