"""Number formatting for aggregated cell values."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Callable

import numpy as np

Formatter = Callable[[Any], str]

_GROUPS = re.compile(r"(\d+)(\d{3})")


def add_separators(number: str, thousands_sep: str, decimal_sep: str) -> str:
    whole, _, fraction = str(number).partition(".")
    while _GROUPS.search(whole):
        whole = _GROUPS.sub(rf"\1{thousands_sep}\2", whole, count=1)
    return whole + (decimal_sep + fraction if fraction else "")


def number_format(
    digits_after_decimal: int = 2,
    scaler: float = 1,
    thousands_sep: str = ",",
    decimal_sep: str = ".",
    prefix: str = "",
    suffix: str = "",
) -> Formatter:
    """Build a formatter turning numbers into display strings.

    Anything that is not a finite number formats as an empty string.
    """

    def _format(value: Any) -> str:
        if isinstance(value, (bool, np.bool_)) or not isinstance(
            value, (int, float, Decimal, np.number)
        ):
            return ""
        number = float(value)
        if not np.isfinite(number):
            return ""
        text = add_separators(
            f"{scaler * number:.{digits_after_decimal}f}", thousands_sep, decimal_sep
        )
        return f"{prefix}{text}{suffix}"

    return _format


US_FMT = number_format()
US_FMT_INT = number_format(digits_after_decimal=0)
US_FMT_PCT = number_format(digits_after_decimal=1, scaler=100, suffix="%")


def passthrough(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


__all__ = [
    "Formatter",
    "US_FMT",
    "US_FMT_INT",
    "US_FMT_PCT",
    "add_separators",
    "number_format",
    "passthrough",
]
