"""Cross-tabulation engine.

:func:`build_pivot` runs one complete build: it materializes the input,
routes every record that survives the value filter into its cell, its row
total, its column total and the grand total, then finalizes every
accumulator into an immutable :class:`PivotTree`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .aggregators import (
    Aggregator,
    AggregatorRegistry,
    AggregatorSpec,
    BoundAggregator,
    UnknownAggregator,
    default_registry,
)
from .config import PivotConfig
from .indexer import DerivedAttributes, MaterializedInput, materialize_input
from .ordering import SortOrder, order_keys
from .sorting import Sorters, sort_as
from .values import MISSING, Key, display_value, encode_key, normalize_value

logger = logging.getLogger(__name__)

TOTALS_LABEL = "Totals"
DEFAULT_AGGREGATOR = "Count"

Collection = Dict[str, Aggregator]
FinalCollection = Mapping[str, "CellValue"]


@dataclass(frozen=True)
class CellValue:
    """Finalized value of one aggregator in one cell, plus its display text."""

    value: Any = None
    formatted: str = ""

    @classmethod
    def from_aggregator(cls, aggregator: Aggregator) -> "CellValue":
        value = aggregator.value()
        return cls(value=value, formatted=aggregator.format(value))

    @property
    def is_empty(self) -> bool:
        return self.value is None and not self.formatted


EMPTY_CELL = CellValue()


class ValueFilter:
    """Excluded values per attribute.

    Values are compared by their text form, so ``"2023"`` excludes the
    number ``2023`` (and ``2023.0``) while ``True`` and ``1`` stay apart.
    ``None`` in a list stands for missing values and only ever matches
    missing values.
    """

    def __init__(self, value_filter: Optional[Mapping[str, Any]] = None) -> None:
        self._excluded: Dict[str, Tuple[bool, frozenset]] = {}
        for attr, excluded in (value_filter or {}).items():
            if isinstance(excluded, Mapping):
                excluded = [value for value, flag in excluded.items() if flag]
            elif isinstance(excluded, (str, bytes)) or not isinstance(excluded, Iterable):
                excluded = [excluded]
            values = [normalize_value(value) for value in excluded]
            if values:
                texts = frozenset(display_value(value) for value in values if value is not MISSING)
                self._excluded[attr] = (any(value is MISSING for value in values), texts)

    @property
    def attributes(self) -> List[str]:
        return list(self._excluded)

    def __bool__(self) -> bool:
        return bool(self._excluded)

    def without(self, attributes: Iterable[str]) -> "ValueFilter":
        dropped = set(attributes)
        narrowed = ValueFilter()
        narrowed._excluded = {
            attr: excluded for attr, excluded in self._excluded.items() if attr not in dropped
        }
        return narrowed

    def accepts(self, record: Mapping[str, Any]) -> bool:
        for attr, (missing, texts) in self._excluded.items():
            value = normalize_value(record.get(attr, MISSING))
            if value is MISSING:
                if missing:
                    return False
            elif display_value(value) in texts:
                return False
        return True


class PivotData:
    """Accumulator state of a single build.

    Aggregators are created lazily, one collection per row key, column key
    and (row key, column key) pair, and are never shared across builds.
    """

    def __init__(
        self,
        rows: Sequence[str],
        cols: Sequence[str],
        aggregators: Sequence[BoundAggregator],
        value_filter: Optional[Mapping[str, Any]] = None,
        sorters: Sorters = None,
    ) -> None:
        if not aggregators:
            raise ValueError("At least one aggregator is required")
        self.rows = tuple(rows)
        self.cols = tuple(cols)
        self.aggregators = list(aggregators)
        self.aggregator_names = [aggregator.name for aggregator in self.aggregators]
        self.value_filter = (
            value_filter if isinstance(value_filter, ValueFilter) else ValueFilter(value_filter)
        )
        self.sorters = sorters

        self.tree: Dict[str, Dict[str, Collection]] = {}
        self.row_totals: Dict[str, Collection] = {}
        self.col_totals: Dict[str, Collection] = {}
        self.row_keys: List[Key] = []
        self.col_keys: List[Key] = []
        self.all_total = self._collection((), ())
        self.record_count = 0

    def _collection(self, row_key: Key, col_key: Key) -> Collection:
        return {
            aggregator.name: aggregator.create(self, row_key, col_key)
            for aggregator in self.aggregators
        }

    def _key(self, record: Mapping[str, Any], attrs: Sequence[str]) -> Key:
        return tuple(normalize_value(record.get(attr, MISSING)) for attr in attrs)

    def consume(self, records: Iterable[Mapping[str, Any]]) -> None:
        for record in records:
            if self.value_filter.accepts(record):
                self.push(record)

    def push(self, record: Mapping[str, Any]) -> None:
        row_key = self._key(record, self.rows)
        col_key = self._key(record, self.cols)
        flat_row = encode_key(row_key)
        flat_col = encode_key(col_key)
        self.record_count += 1

        _ingest(self.all_total, record)

        if row_key:
            totals = self.row_totals.get(flat_row)
            if totals is None:
                self.row_keys.append(row_key)
                totals = self.row_totals[flat_row] = self._collection(row_key, ())
            _ingest(totals, record)

        if col_key:
            totals = self.col_totals.get(flat_col)
            if totals is None:
                self.col_keys.append(col_key)
                totals = self.col_totals[flat_col] = self._collection((), col_key)
            _ingest(totals, record)

        if row_key and col_key:
            row = self.tree.setdefault(flat_row, {})
            cell = row.get(flat_col)
            if cell is None:
                cell = row[flat_col] = self._collection(row_key, col_key)
            _ingest(cell, record)

    def get_collection(self, row_key: Key, col_key: Key) -> Optional[Collection]:
        row_key, col_key = tuple(row_key), tuple(col_key)
        if not row_key and not col_key:
            return self.all_total
        if not row_key:
            return self.col_totals.get(encode_key(col_key))
        if not col_key:
            return self.row_totals.get(encode_key(row_key))
        return self.tree.get(encode_key(row_key), {}).get(encode_key(col_key))

    def get_aggregator(self, row_key: Key, col_key: Key, name: str) -> Optional[Aggregator]:
        collection = self.get_collection(row_key, col_key)
        if collection is None:
            return None
        return collection.get(name)

    def finalize(
        self,
        row_order: SortOrder = SortOrder.KEY_A_TO_Z,
        col_order: SortOrder = SortOrder.KEY_A_TO_Z,
    ) -> "PivotTree":
        """Freeze every accumulator into a :class:`PivotTree`."""

        cells = {
            (flat_row, flat_col): _finalize(collection)
            for flat_row, row in self.tree.items()
            for flat_col, collection in row.items()
        }
        row_totals = {flat: _finalize(collection) for flat, collection in self.row_totals.items()}
        col_totals = {flat: _finalize(collection) for flat, collection in self.col_totals.items()}

        tree = PivotTree(
            row_attrs=self.rows,
            col_attrs=self.cols,
            aggregator_names=tuple(self.aggregator_names),
            row_keys=tuple(self.row_keys),
            col_keys=tuple(self.col_keys),
            row_order=SortOrder.parse(row_order),
            col_order=SortOrder.parse(col_order),
            record_count=self.record_count,
            cell_values=MappingProxyType(cells),
            row_total_values=MappingProxyType(row_totals),
            col_total_values=MappingProxyType(col_totals),
            grand_total_values=_finalize(self.all_total),
            sorters=self.sorters,
        )
        return tree.reordered()


def _ingest(collection: Collection, record: Mapping[str, Any]) -> None:
    for aggregator in collection.values():
        aggregator.ingest(record)


def _finalize(collection: Collection) -> FinalCollection:
    return MappingProxyType(
        {name: CellValue.from_aggregator(aggregator) for name, aggregator in collection.items()}
    )


@dataclass(frozen=True)
class PivotTree:
    """Immutable result of one build.

    Lookups take key tuples. An empty row key selects column totals, an
    empty column key selects row totals and two empty keys select the grand
    total. Pairs that never received a record yield :data:`EMPTY_CELL`.
    """

    row_attrs: Tuple[str, ...]
    col_attrs: Tuple[str, ...]
    aggregator_names: Tuple[str, ...]
    row_keys: Tuple[Key, ...]
    col_keys: Tuple[Key, ...]
    row_order: SortOrder
    col_order: SortOrder
    record_count: int
    cell_values: Mapping[Tuple[str, str], FinalCollection] = field(repr=False)
    row_total_values: Mapping[str, FinalCollection] = field(repr=False)
    col_total_values: Mapping[str, FinalCollection] = field(repr=False)
    grand_total_values: FinalCollection = field(repr=False)
    sorters: Any = field(default=None, repr=False, compare=False)

    @property
    def primary_aggregator(self) -> str:
        return self.aggregator_names[0]

    @property
    def row_symbol(self) -> str:
        return self.row_order.row_symbol

    @property
    def col_symbol(self) -> str:
        return self.col_order.col_symbol

    def cells(self, row_key: Sequence[Any], col_key: Sequence[Any]) -> Dict[str, CellValue]:
        """All aggregator values for a key pair, in aggregator order."""

        row_key, col_key = tuple(row_key), tuple(col_key)
        if not row_key and not col_key:
            found: Optional[FinalCollection] = self.grand_total_values
        elif not row_key:
            found = self.col_total_values.get(encode_key(col_key))
        elif not col_key:
            found = self.row_total_values.get(encode_key(row_key))
        else:
            found = self.cell_values.get((encode_key(row_key), encode_key(col_key)))
        if found is None:
            return {name: EMPTY_CELL for name in self.aggregator_names}
        return dict(found)

    def cell(
        self,
        row_key: Sequence[Any],
        col_key: Sequence[Any],
        aggregator: Optional[str] = None,
    ) -> CellValue:
        name = aggregator or self.primary_aggregator
        if name not in self.aggregator_names:
            raise UnknownAggregator(name, self.aggregator_names)
        return self.cells(row_key, col_key)[name]

    def row_total(self, row_key: Sequence[Any], aggregator: Optional[str] = None) -> CellValue:
        return self.cell(row_key, (), aggregator)

    def col_total(self, col_key: Sequence[Any], aggregator: Optional[str] = None) -> CellValue:
        return self.cell((), col_key, aggregator)

    def grand_total(self, aggregator: Optional[str] = None) -> CellValue:
        return self.cell((), (), aggregator)

    def reordered(
        self,
        row_order: Optional[SortOrder] = None,
        col_order: Optional[SortOrder] = None,
    ) -> "PivotTree":
        """Return a copy with key sequences ordered by the given policies.

        Value orders rank keys by the primary aggregator's row (or column)
        total. Cell values are untouched.
        """

        row_order = SortOrder.parse(row_order if row_order is not None else self.row_order)
        col_order = SortOrder.parse(col_order if col_order is not None else self.col_order)
        row_keys = order_keys(
            self.row_keys,
            self.row_attrs,
            row_order,
            self.sorters,
            lambda key: self.row_total(key).value,
        )
        col_keys = order_keys(
            self.col_keys,
            self.col_attrs,
            col_order,
            self.sorters,
            lambda key: self.col_total(key).value,
        )
        return replace(
            self,
            row_keys=tuple(row_keys),
            col_keys=tuple(col_keys),
            row_order=row_order,
            col_order=col_order,
        )

    def toggle_row_order(self) -> "PivotTree":
        return self.reordered(row_order=self.row_order.next)

    def toggle_col_order(self) -> "PivotTree":
        return self.reordered(col_order=self.col_order.next)

    def to_frame(
        self,
        aggregator: Optional[str] = None,
        formatted: bool = False,
        totals: bool = True,
    ) -> pd.DataFrame:
        """Lay one aggregator out as a :class:`pandas.DataFrame`.

        Key components become index labels (missing values show as
        ``"null"``); totals are appended as a ``"Totals"`` row and column.
        """

        name = aggregator or self.primary_aggregator
        row_keys, row_index = _axis(self.row_keys, self.row_attrs, totals)
        col_keys, col_index = _axis(self.col_keys, self.col_attrs, totals)

        def _pick(row_key: Key, col_key: Key) -> Any:
            cell = self.cell(row_key, col_key, name)
            return cell.formatted if formatted else cell.value

        data = [[_pick(row_key, col_key) for col_key in col_keys] for row_key in row_keys]
        return pd.DataFrame(data, index=row_index, columns=col_index)


def _axis(keys: Sequence[Key], attrs: Sequence[str], totals: bool) -> Tuple[List[Key], pd.Index]:
    if not attrs:
        return [()], pd.Index([TOTALS_LABEL])

    axis_keys = list(keys)
    labels = [tuple(display_value(value) for value in key) for key in keys]
    if totals:
        axis_keys.append(())
        labels.append((TOTALS_LABEL,) + ("",) * (len(attrs) - 1))
    if len(attrs) == 1:
        return axis_keys, pd.Index([label[0] for label in labels], name=attrs[0], dtype=object)
    if not labels:
        return axis_keys, pd.MultiIndex.from_arrays([[] for _ in attrs], names=list(attrs))
    return axis_keys, pd.MultiIndex.from_tuples(labels, names=list(attrs))


def resolve_aggregators(
    specs: Sequence[AggregatorSpec],
    registry: AggregatorRegistry,
) -> List[BoundAggregator]:
    """Bind aggregator specs once per build; duplicate names keep the first."""

    if not specs:
        default = DEFAULT_AGGREGATOR if DEFAULT_AGGREGATOR in registry else next(iter(registry), None)
        if default is None:
            raise ValueError("The aggregator registry is empty")
        specs = [AggregatorSpec(default)]

    bound: List[BoundAggregator] = []
    seen = set()
    for spec in specs:
        if spec.name in seen:
            logger.warning("Aggregator '%s' selected more than once; keeping the first", spec.name)
            continue
        seen.add(spec.name)
        bound.append(registry.resolve(spec))
    return bound


def combine_sorters(sort_orders: Mapping[str, Sequence[Any]], sorters: Sorters = None) -> Sorters:
    """Merge explicit order lists with caller supplied sorters (callers win)."""

    if not sort_orders:
        return sorters
    explicit = {attr: sort_as(order) for attr, order in sort_orders.items()}
    if sorters is None:
        return explicit
    if isinstance(sorters, Mapping):
        return {**explicit, **sorters}

    def lookup(attr: str):
        return sorters(attr) or explicit.get(attr)

    return lookup


def build_pivot(
    data: Any,
    pivot: Optional[PivotConfig] = None,
    *,
    derived_attributes: Optional[DerivedAttributes] = None,
    sorters: Sorters = None,
    registry: Optional[AggregatorRegistry] = None,
) -> PivotTree:
    """Build a :class:`PivotTree` from ``data``.

    ``data`` is anything :func:`~pivotstudio.indexer.iter_records` accepts,
    or a :class:`~pivotstudio.indexer.MaterializedInput` from an earlier
    materialization (its derived attributes are already applied).
    """

    pivot = pivot or PivotConfig()
    registry = registry if registry is not None else default_registry()

    if isinstance(data, MaterializedInput):
        materialized = data
    else:
        materialized = materialize_input(data, derived_attributes)

    aggregators = resolve_aggregators(pivot.aggregators, registry)
    value_filter = ValueFilter(pivot.value_filter)
    unknown = materialized.index.unknown_attributes(value_filter.attributes)
    if unknown:
        logger.debug("Ignoring value filter on unknown attributes: %s", ", ".join(unknown))
        value_filter = value_filter.without(unknown)

    logger.info(
        "Building pivot over %d records (rows=%s, cols=%s, aggregators=%s)",
        len(materialized),
        list(pivot.rows),
        list(pivot.cols),
        [aggregator.name for aggregator in aggregators],
    )
    engine = PivotData(
        pivot.rows,
        pivot.cols,
        aggregators,
        value_filter=value_filter,
        sorters=combine_sorters(pivot.sort_as, sorters),
    )
    engine.consume(materialized.records)
    tree = engine.finalize(pivot.row_order, pivot.col_order)
    logger.debug(
        "Pivot built: %d records kept, %d row keys, %d column keys",
        tree.record_count,
        len(tree.row_keys),
        len(tree.col_keys),
    )
    return tree


__all__ = [
    "CellValue",
    "EMPTY_CELL",
    "PivotData",
    "PivotTree",
    "TOTALS_LABEL",
    "ValueFilter",
    "build_pivot",
    "combine_sorters",
    "resolve_aggregators",
]
