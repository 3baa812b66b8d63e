"""Materialization of input records and the per-attribute value index."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import cmp_to_key
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .sorting import Comparator, natural_sort
from .values import MISSING, MISSING_LABEL, is_scalar, normalize_value

logger = logging.getLogger(__name__)

DerivedAttributes = Mapping[str, Callable[[Mapping[str, Any]], Any]]


@dataclass(frozen=True)
class AttributeIndex:
    """Distinct values and occurrence counts for every attribute seen."""

    values: Mapping[str, Mapping[Any, int]] = field(default_factory=dict)

    @property
    def attributes(self) -> List[str]:
        return list(self.values)

    def __contains__(self, attr: object) -> bool:
        return attr in self.values

    def counts(self, attr: str) -> Dict[Any, int]:
        return dict(self.values.get(attr, {}))

    def distinct_count(self, attr: str) -> int:
        return len(self.values.get(attr, {}))

    def sorted_values(self, attr: str, sorter: Comparator = natural_sort) -> List[Any]:
        return sorted(self.values.get(attr, {}), key=cmp_to_key(sorter))

    def unknown_attributes(self, names: Iterable[str]) -> List[str]:
        return [name for name in names if name not in self.values]


@dataclass(frozen=True)
class MaterializedInput:
    """Records with derived attributes merged in, plus their value index."""

    records: Tuple[Dict[str, Any], ...]
    index: AttributeIndex
    derived_failures: int = 0

    def __len__(self) -> int:
        return len(self.records)


def iter_records(data: Any) -> Iterator[Dict[str, Any]]:
    """Yield fresh record dictionaries from the supported input shapes.

    ``data`` may be a :class:`pandas.DataFrame`, a list of rows whose first
    row holds the attribute names, or any iterable of mappings. Items that
    are not mappings are skipped. Null cells of a frame (NaN, NaT) come
    through as ``None``.
    """

    if data is None:
        return
    if isinstance(data, pd.DataFrame):
        cleaned = data.astype(object).where(data.notna(), None)
        yield from cleaned.to_dict(orient="records")
        return

    rows = data if isinstance(data, Sequence) else list(data)
    if rows and isinstance(rows[0], (list, tuple)):
        header = list(rows[0])
        for row in rows[1:]:
            yield {name: value for name, value in zip(header, row)}
        return

    for item in rows:
        if isinstance(item, Mapping):
            yield dict(item)


def materialize_input(
    data: Any,
    derived_attributes: Optional[DerivedAttributes] = None,
) -> MaterializedInput:
    """Apply derived attributes and index attribute values in one pass.

    An attribute first seen at record ``k`` is credited with ``k`` missing
    occurrences for the records that came before it.
    """

    derived = dict(derived_attributes or {})
    records: List[Dict[str, Any]] = []
    counts: Dict[str, Dict[Any, int]] = {}
    failures = 0

    for processed, record in enumerate(iter_records(data)):
        for name, derive in derived.items():
            try:
                result = derive(record)
            except Exception:
                logger.debug("Derived attribute '%s' failed on record %d", name, processed, exc_info=True)
                failures += 1
                result = MISSING
            if not is_scalar(result):
                logger.debug("Derived attribute '%s' returned non-scalar %r", name, type(result))
                failures += 1
                result = MISSING
            record[name] = MISSING if result is None else result
        records.append(record)

        for attr in record:
            if attr not in counts:
                counts[attr] = {MISSING: processed} if processed else {}
        for attr, bucket in counts.items():
            value = normalize_value(record.get(attr, MISSING))
            bucket[value] = bucket.get(value, 0) + 1

    if failures:
        logger.warning(
            "%d derived attribute evaluations failed; substituted '%s'", failures, MISSING_LABEL
        )
    logger.debug("Materialized %d records across %d attributes", len(records), len(counts))

    index = AttributeIndex(
        MappingProxyType({attr: MappingProxyType(bucket) for attr, bucket in counts.items()})
    )
    return MaterializedInput(records=tuple(records), index=index, derived_failures=failures)


__all__ = [
    "AttributeIndex",
    "DerivedAttributes",
    "MaterializedInput",
    "iter_records",
    "materialize_input",
]
