"""Comparators used wherever attribute values or keys are ordered."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Union

import numpy as np

from .values import display_value, is_missing, normalize_value

Comparator = Callable[[Any, Any], int]
Sorters = Union[Mapping[str, Any], Callable[[str], Optional[Comparator]], None]

_CHUNK = re.compile(r"\d+|\D+")
_DIGIT = re.compile(r"\d")
_INFINITY = {"Infinity", "+Infinity", "-Infinity"}


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, (int, float, Decimal, np.number)):
        return float(value)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text in _INFINITY:
        return float(text.replace("Infinity", "inf"))
    if not _DIGIT.search(text) or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _compare_text(a: str, b: str) -> int:
    if a == b:
        return 0
    a_chunks = _CHUNK.findall(a)
    b_chunks = _CHUNK.findall(b)
    for left, right in zip(a_chunks, b_chunks):
        if left == right:
            continue
        left_digits, right_digits = left.isdecimal(), right.isdecimal()
        if left_digits and right_digits:
            # equal magnitudes fall back to the zero-padded one sorting later
            result = _cmp(int(left), int(right)) or _cmp(len(left), len(right))
        elif left_digits:
            result = _cmp("0", right.casefold())
        elif right_digits:
            result = _cmp(left.casefold(), "0")
        else:
            result = _cmp(left.casefold(), right.casefold())
        if result:
            return result
    return _cmp(len(a_chunks), len(b_chunks)) or _cmp(a, b)


def natural_sort(a: Any, b: Any) -> int:
    """Compare two attribute values the way a person would order them.

    Missing values sort first, then numbers and numeric strings by magnitude,
    then text with embedded digit runs compared numerically and letters
    compared without regard to case.
    """

    a_missing, b_missing = is_missing(a), is_missing(b)
    if a_missing or b_missing:
        return _cmp(b_missing, a_missing)

    a_number, b_number = _as_number(a), _as_number(b)
    if a_number is not None and b_number is not None:
        result = _cmp(a_number, b_number)
        if result:
            return result
        a_raw, b_raw = not isinstance(a, str), not isinstance(b, str)
        if a_raw or b_raw:
            return _cmp(b_raw, a_raw)
    elif a_number is not None:
        return -1
    elif b_number is not None:
        return 1

    if isinstance(a, str) and isinstance(b, str):
        return _compare_text(a, b)
    if type(a) is type(b):
        try:
            return _cmp(a, b)
        except TypeError:
            pass
    return _compare_text(display_value(a), display_value(b)) or _cmp(
        type(a).__name__, type(b).__name__
    )


def sort_as(order: Sequence[Any]) -> Comparator:
    """Return a comparator ranking values by their position in ``order``.

    Strings get a second, case-insensitive chance to match. Values that are
    not listed sort after every listed value, in natural order.
    """

    exact: Dict[Any, int] = {}
    lowered: Dict[str, int] = {}
    for position, item in enumerate(order):
        item = normalize_value(item)
        exact.setdefault(item, position)
        if isinstance(item, str):
            lowered.setdefault(item.lower(), position)

    def _rank(value: Any) -> Optional[int]:
        value = normalize_value(value)
        if value in exact:
            return exact[value]
        return None

    def _lowered_rank(value: Any) -> Optional[int]:
        if isinstance(value, str):
            return lowered.get(value.lower())
        return None

    def comparator(a: Any, b: Any) -> int:
        for rank in (_rank, _lowered_rank):
            a_rank, b_rank = rank(a), rank(b)
            if a_rank is not None and b_rank is not None:
                return _cmp(a_rank, b_rank) or natural_sort(a, b)
            if a_rank is not None:
                return -1
            if b_rank is not None:
                return 1
        return natural_sort(a, b)

    return comparator


def get_sort(sorters: Sorters, attr: str) -> Comparator:
    """Look up the comparator configured for ``attr``.

    ``sorters`` may map attribute names to comparators (or to explicit order
    lists), or be a callable returning a comparator for an attribute name.
    """

    if sorters:
        if callable(sorters) and not isinstance(sorters, Mapping):
            sort = sorters(attr)
            if callable(sort):
                return sort
        elif attr in sorters:
            sort = sorters[attr]
            if isinstance(sort, (list, tuple)):
                return sort_as(sort)
            if callable(sort):
                return sort
    return natural_sort


def key_sort(attrs: Sequence[str], sorters: Sorters = None) -> Comparator:
    """Comparator for key tuples, component by component."""

    comparators = [get_sort(sorters, attr) for attr in attrs]

    def comparator(a: Sequence[Any], b: Sequence[Any]) -> int:
        for position, sort in enumerate(comparators):
            result = sort(a[position], b[position])
            if result:
                return result
        return 0

    return comparator


__all__ = [
    "Comparator",
    "Sorters",
    "get_sort",
    "key_sort",
    "natural_sort",
    "sort_as",
]
