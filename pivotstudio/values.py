"""Value domain shared by the indexer, the aggregators and the pivot engine."""

from __future__ import annotations

import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Iterable, Optional, Tuple

import numpy as np
import pandas as pd

MISSING_LABEL = "null"
_EXACT_INT_LIMIT = 2**53

_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|[+-]?Infinity)")


class _Missing:
    """Placeholder for an attribute a record does not carry."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __str__(self) -> str:
        return MISSING_LABEL

    def __reduce__(self):
        return (_Missing, ())

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

Key = Tuple[Any, ...]


def is_missing(value: Any) -> bool:
    if value is None or value is MISSING or value is pd.NaT:
        return True
    if isinstance(value, (np.datetime64, np.timedelta64)):
        return bool(np.isnat(value))
    return isinstance(value, (float, np.floating)) and bool(np.isnan(value))


def normalize_value(value: Any) -> Any:
    """Return the grouping form of ``value``.

    ``None``, NaN and NaT collapse into :data:`MISSING`; unhashable values are
    grouped by their string form.
    """

    if is_missing(value):
        return MISSING
    try:
        hash(value)
    except TypeError:
        return str(value)
    return value


def is_scalar(value: Any) -> bool:
    return value is None or value is MISSING or isinstance(
        value, (str, bool, int, float, Decimal, date, time, np.generic)
    )


def display_value(value: Any) -> str:
    if is_missing(value):
        return MISSING_LABEL
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (float, np.floating)) and _is_whole(value):
        return str(int(value))
    return str(value)


def _is_whole(value: Any) -> bool:
    return bool(np.isfinite(value)) and float(value).is_integer() and abs(value) < _EXACT_INT_LIMIT


def _type_tag(value: Any) -> str:
    if value is MISSING:
        return "m"
    if isinstance(value, (bool, np.bool_)):
        return "b"
    if isinstance(value, (int, float, Decimal, np.number)):
        return "n"
    if isinstance(value, str):
        return "s"
    if isinstance(value, (datetime, date, time)):
        return "d"
    return "o"


def encode_key(values: Iterable[Any]) -> str:
    """Encode a key tuple as a single unambiguous string.

    Each component becomes ``<tag><length>:<text>`` so no character inside
    a value can be mistaken for a boundary between components.
    """

    parts = []
    for value in values:
        value = normalize_value(value)
        text = "" if value is MISSING else display_value(value)
        parts.append(f"{_type_tag(value)}{len(text)}:{text}")
    return "".join(parts)


def parse_float(value: Any) -> Optional[float]:
    """Parse the leading number out of ``value``; ``None`` when there is none."""

    if is_missing(value) or isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, (int, float, Decimal, np.number)):
        return float(value)
    if not isinstance(value, str):
        return None
    match = _FLOAT_PREFIX.match(value)
    if match is None:
        return None
    token = match.group(1)
    if token.endswith("Infinity"):
        return float("-inf") if token.startswith("-") else float("inf")
    return float(token)


__all__ = [
    "Key",
    "MISSING",
    "MISSING_LABEL",
    "display_value",
    "encode_key",
    "is_missing",
    "is_scalar",
    "normalize_value",
    "parse_float",
]
