"""Pivot Studio core package.

This package turns a flat collection of records into a cross-tabulated
summary: records are grouped by row and column attributes, filtered by
excluded values and summarized by one or more named aggregators, with
totals along both axes. The command line interface and any other
front end share the same building blocks.
"""

from .aggregators import (
    Aggregator,
    AggregatorRegistry,
    AggregatorSpec,
    AggregatorTemplate,
    UnknownAggregator,
    default_registry,
)
from .config import AppConfig, DataConfig, OutputConfig, PivotConfig, load_config
from .derivers import bin_, date_format
from .engine import CellValue, PivotData, PivotTree, ValueFilter, build_pivot
from .fields import categorize_fields, field_statistics
from .indexer import AttributeIndex, MaterializedInput, materialize_input
from .io import load_records
from .ordering import SortOrder
from .reporting import render_all, render_table
from .sorting import get_sort, key_sort, natural_sort, sort_as
from .values import MISSING

__all__ = [
    "Aggregator",
    "AggregatorRegistry",
    "AggregatorSpec",
    "AggregatorTemplate",
    "AppConfig",
    "AttributeIndex",
    "CellValue",
    "DataConfig",
    "MISSING",
    "MaterializedInput",
    "OutputConfig",
    "PivotConfig",
    "PivotData",
    "PivotTree",
    "SortOrder",
    "UnknownAggregator",
    "ValueFilter",
    "bin_",
    "build_pivot",
    "categorize_fields",
    "date_format",
    "default_registry",
    "field_statistics",
    "get_sort",
    "key_sort",
    "load_config",
    "load_records",
    "materialize_input",
    "natural_sort",
    "render_all",
    "render_table",
    "sort_as",
]
