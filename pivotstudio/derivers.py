"""Ready-made derived attributes: numeric binning and date formatting."""

from __future__ import annotations

import math
import re
from datetime import date
from typing import Any, Callable, Mapping, Optional, Sequence

import pandas as pd

from .values import MISSING, is_missing, parse_float

Deriver = Callable[[Mapping[str, Any]], Any]

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

_PLACEHOLDER = re.compile(r"%(.)")


def bin_(attr: str, width: float) -> Deriver:
    """Bucket a numeric attribute into bins of ``width`` (truncating toward zero)."""

    if not width:
        raise ValueError("Bin width must be non-zero")

    def derive(record: Mapping[str, Any]) -> Any:
        number = parse_float(record.get(attr))
        if number is None or not math.isfinite(number):
            return MISSING
        binned = number - math.fmod(number, width)
        return int(binned) if float(binned).is_integer() else binned

    return derive


def _parse_timestamp(value: Any, utc_output: bool) -> Optional[pd.Timestamp]:
    if is_missing(value) or not isinstance(value, (str, date, pd.Timestamp)):
        return None
    try:
        stamp = pd.to_datetime(value, errors="coerce", utc=utc_output)
    except (TypeError, ValueError, OverflowError):
        return None
    if stamp is None or pd.isna(stamp):
        return None
    return stamp


def date_format(
    attr: str,
    format_string: str,
    utc_output: bool = False,
    month_names: Sequence[str] = MONTH_NAMES,
    day_names: Sequence[str] = DAY_NAMES,
) -> Deriver:
    """Render a date attribute through ``%``-placeholders.

    ``%y`` year, ``%m`` zero-padded month, ``%n`` month name, ``%d`` day,
    ``%w`` day name, ``%x`` weekday number (Sunday is 0), ``%H``/``%M``/``%S``
    time parts. Unknown placeholders are kept verbatim; unparsable dates give
    an empty string.
    """

    def derive(record: Mapping[str, Any]) -> str:
        stamp = _parse_timestamp(record.get(attr), utc_output)
        if stamp is None:
            return ""
        weekday = (stamp.dayofweek + 1) % 7
        parts = {
            "y": str(stamp.year),
            "m": f"{stamp.month:02d}",
            "n": month_names[stamp.month - 1],
            "d": f"{stamp.day:02d}",
            "w": day_names[weekday],
            "x": str(weekday),
            "H": f"{stamp.hour:02d}",
            "M": f"{stamp.minute:02d}",
            "S": f"{stamp.second:02d}",
        }
        return _PLACEHOLDER.sub(lambda match: parts.get(match.group(1), match.group(0)), format_string)

    return derive


__all__ = ["DAY_NAMES", "Deriver", "MONTH_NAMES", "bin_", "date_format"]
