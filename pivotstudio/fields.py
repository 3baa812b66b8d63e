"""Suggest which attributes suit grouping and which suit aggregation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from .indexer import AttributeIndex

DEFAULT_THRESHOLD = 50


@dataclass
class FieldStat:
    field: str
    unique_count: int
    suitable_for: str


@dataclass
class FieldCategories:
    """Attributes split by cardinality.

    ``header_fields`` (few distinct values) fit rows and columns and are
    ordered by ascending cardinality; ``aggregation_fields`` fit value
    inputs and are ordered by descending cardinality.
    """

    header_fields: List[str]
    aggregation_fields: List[str]
    field_stats: Dict[str, int]


def categorize_fields(index: AttributeIndex, threshold: int = DEFAULT_THRESHOLD) -> FieldCategories:
    stats = {attr: index.distinct_count(attr) for attr in index.attributes}
    header_fields = [attr for attr, count in stats.items() if count <= threshold]
    aggregation_fields = [attr for attr, count in stats.items() if count > threshold]
    header_fields.sort(key=lambda attr: stats[attr])
    aggregation_fields.sort(key=lambda attr: stats[attr], reverse=True)
    return FieldCategories(
        header_fields=header_fields,
        aggregation_fields=aggregation_fields,
        field_stats=stats,
    )


def field_statistics(index: AttributeIndex, threshold: int = DEFAULT_THRESHOLD) -> List[FieldStat]:
    stats = [
        FieldStat(
            field=attr,
            unique_count=index.distinct_count(attr),
            suitable_for="aggregation" if index.distinct_count(attr) > threshold else "header",
        )
        for attr in index.attributes
    ]
    stats.sort(key=lambda stat: stat.unique_count)
    return stats


__all__ = ["DEFAULT_THRESHOLD", "FieldCategories", "FieldStat", "categorize_fields", "field_statistics"]
