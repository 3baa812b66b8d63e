"""Aggregation algorithms and the registry the pivot engine resolves them from.

Every aggregator is described by an :class:`AggregatorTemplate`: the number
of value attributes it consumes plus a ``make`` callable that produces a
fresh :class:`Aggregator` for one cell.  Templates are collected in an
:class:`AggregatorRegistry` and bound to concrete value attributes once per
build through :meth:`AggregatorRegistry.resolve`.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .formatting import US_FMT, US_FMT_INT, US_FMT_PCT, Formatter, passthrough
from .sorting import Comparator, get_sort, natural_sort
from .values import Key, display_value, is_missing, normalize_value, parse_float

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]


class UnknownAggregator(KeyError):
    """Raised when an aggregator name is not present in the registry."""

    def __init__(self, name: str, available: Sequence[str] = ()) -> None:
        super().__init__(name)
        self.name = name
        self.available = list(available)

    def __str__(self) -> str:
        message = f"Unknown aggregator '{self.name}'"
        if self.available:
            message += f"; available: {', '.join(self.available)}"
        return message


@dataclass(frozen=True)
class AggregatorSpec:
    """An aggregator name together with the value attributes it reads."""

    name: str
    vals: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "vals", tuple(self.vals))


@dataclass(frozen=True)
class CellContext:
    """Where an aggregator lives: its build, its keys and its own name."""

    pivot: Any
    row_key: Key
    col_key: Key
    aggregator: str

    def sorter(self, attr: Optional[str]) -> Comparator:
        if attr is None:
            return natural_sort
        return get_sort(getattr(self.pivot, "sorters", None), attr)


class Aggregator(ABC):
    """Mutable state for one cell of one aggregator."""

    num_inputs = 1

    def __init__(self, formatter: Formatter = US_FMT) -> None:
        self.formatter = formatter

    @abstractmethod
    def ingest(self, record: Record) -> None:
        """Fold ``record`` into the running state."""

    @abstractmethod
    def value(self) -> Any:
        """Return the current result; must be safe before any ingest."""

    def format(self, value: Any) -> str:
        return self.formatter(value)

    def display(self) -> str:
        return self.format(self.value())


class CountAggregator(Aggregator):
    num_inputs = 0

    def __init__(self, formatter: Formatter = US_FMT_INT) -> None:
        super().__init__(formatter)
        self.count = 0

    def ingest(self, record: Record) -> None:
        self.count += 1

    def value(self) -> int:
        return self.count


class UniquesAggregator(Aggregator):
    """Collects the distinct values of one attribute, in first-seen order."""

    def __init__(
        self,
        attr: Optional[str],
        summarize: Callable[[List[Any]], Any],
        formatter: Formatter = US_FMT_INT,
    ) -> None:
        super().__init__(formatter)
        self.attr = attr
        self.summarize = summarize
        self.uniques: List[Any] = []
        self._seen: set = set()

    def ingest(self, record: Record) -> None:
        if self.attr is None:
            return
        value = normalize_value(record.get(self.attr))
        if value not in self._seen:
            self._seen.add(value)
            self.uniques.append(value)

    def value(self) -> Any:
        return self.summarize(self.uniques)


class SumAggregator(Aggregator):
    def __init__(self, attr: Optional[str], formatter: Formatter = US_FMT) -> None:
        super().__init__(formatter)
        self.attr = attr
        self.sum = 0.0

    def ingest(self, record: Record) -> None:
        if self.attr is None:
            return
        number = parse_float(record.get(self.attr))
        if number is not None:
            self.sum += number

    def value(self) -> float:
        return self.sum


class ExtremesAggregator(Aggregator):
    """Minimum/maximum (numeric) or first/last (by the attribute's sorter)."""

    MODES = ("min", "max", "first", "last")

    def __init__(
        self,
        attr: Optional[str],
        mode: str,
        sorter: Comparator = natural_sort,
        formatter: Formatter = US_FMT,
    ) -> None:
        if mode not in self.MODES:
            raise ValueError(f"Unknown extremes mode '{mode}'")
        super().__init__(formatter)
        self.attr = attr
        self.mode = mode
        self.sorter = sorter
        self.val: Any = None

    def ingest(self, record: Record) -> None:
        if self.attr is None:
            return
        value = record.get(self.attr)
        if is_missing(value):
            return
        if self.mode in ("min", "max"):
            number = parse_float(value)
            if number is None:
                return
            if self.val is None:
                self.val = number
            else:
                self.val = min(number, self.val) if self.mode == "min" else max(number, self.val)
            return

        current = self.val if self.val is not None else value
        comparison = self.sorter(value, current)
        if (self.mode == "first" and comparison <= 0) or (self.mode == "last" and comparison >= 0):
            self.val = value

    def value(self) -> Any:
        return self.val

    def format(self, value: Any) -> str:
        if parse_float(value) is None or isinstance(value, str):
            return passthrough(value)
        return self.formatter(value)


class QuantileAggregator(Aggregator):
    def __init__(self, attr: Optional[str], q: float, formatter: Formatter = US_FMT) -> None:
        super().__init__(formatter)
        self.attr = attr
        self.q = q
        self.vals: List[float] = []

    def ingest(self, record: Record) -> None:
        if self.attr is None:
            return
        number = parse_float(record.get(self.attr))
        if number is not None and not math.isnan(number):
            self.vals.append(number)

    def value(self) -> Optional[float]:
        if not self.vals:
            return None
        ordered = sorted(self.vals)
        position = (len(ordered) - 1) * self.q
        return (ordered[math.floor(position)] + ordered[math.ceil(position)]) / 2.0


class RunningStatAggregator(Aggregator):
    """Mean, variance or standard deviation using Welford's online update."""

    MODES = ("mean", "var", "stdev")

    def __init__(
        self,
        attr: Optional[str],
        mode: str = "mean",
        ddof: int = 1,
        formatter: Formatter = US_FMT,
    ) -> None:
        if mode not in self.MODES:
            raise ValueError(f"Unknown running statistic '{mode}'")
        super().__init__(formatter)
        self.attr = attr
        self.mode = mode
        self.ddof = ddof
        self.n = 0
        self.m = 0.0
        self.s = 0.0

    def ingest(self, record: Record) -> None:
        if self.attr is None:
            return
        number = parse_float(record.get(self.attr))
        if number is None or math.isnan(number):
            return
        self.n += 1
        if self.n == 1:
            self.m = number
        mean = self.m + (number - self.m) / self.n
        self.s += (number - self.m) * (number - mean)
        self.m = mean

    def value(self) -> Optional[float]:
        if self.mode == "mean":
            return self.m if self.n else None
        if self.n <= self.ddof:
            return 0.0
        variance = self.s / (self.n - self.ddof)
        if self.mode == "var":
            return variance
        return math.sqrt(variance)


class SumOverSumAggregator(Aggregator):
    num_inputs = 2

    def __init__(
        self,
        numerator: Optional[str],
        denominator: Optional[str],
        formatter: Formatter = US_FMT,
    ) -> None:
        super().__init__(formatter)
        self.numerator = numerator
        self.denominator = denominator
        self.sum_num = 0.0
        self.sum_denom = 0.0

    def ingest(self, record: Record) -> None:
        if self.numerator is not None:
            number = parse_float(record.get(self.numerator))
            if number is not None:
                self.sum_num += number
        if self.denominator is not None:
            number = parse_float(record.get(self.denominator))
            if number is not None:
                self.sum_denom += number

    def value(self) -> float:
        return self.sum_num / self.sum_denom if self.sum_denom else 0.0


class FractionOfAggregator(Aggregator):
    """Wraps another aggregator and divides it by a total of the same kind."""

    SELECTORS = ("total", "row", "col")

    def __init__(
        self,
        inner: Aggregator,
        context: CellContext,
        selector: str = "total",
        formatter: Formatter = US_FMT_PCT,
    ) -> None:
        if selector not in self.SELECTORS:
            raise ValueError(f"Unknown fraction selector '{selector}'")
        super().__init__(formatter)
        self.inner = inner
        self.num_inputs = inner.num_inputs
        self.context = context
        self.selector = selector

    def ingest(self, record: Record) -> None:
        self.inner.ingest(record)

    def _denominator(self) -> Any:
        context = self.context
        lookup = getattr(context.pivot, "get_aggregator", None)
        if lookup is None:
            return None
        row_key = context.row_key if self.selector == "row" else ()
        col_key = context.col_key if self.selector == "col" else ()
        total = lookup(row_key, col_key, context.aggregator)
        if total is None:
            return None
        if isinstance(total, FractionOfAggregator):
            return total.inner.value()
        return total.value()

    def value(self) -> float:
        denominator = self._denominator()
        numerator = self.inner.value()
        if not denominator or numerator is None:
            return 0.0
        return numerator / denominator


@dataclass(frozen=True)
class AggregatorTemplate:
    """How to build one kind of aggregator and how many inputs it reads."""

    num_inputs: int
    make: Callable[[Sequence[Optional[str]], CellContext], Aggregator]


@dataclass(frozen=True)
class BoundAggregator:
    """A template bound to concrete value attributes for one build."""

    name: str
    template: AggregatorTemplate = field(repr=False)
    attrs: Tuple[Optional[str], ...] = ()

    @property
    def num_inputs(self) -> int:
        return self.template.num_inputs

    def create(self, pivot: Any, row_key: Key, col_key: Key) -> Aggregator:
        return self.template.make(self.attrs, CellContext(pivot, row_key, col_key, self.name))


def count(formatter: Formatter = US_FMT_INT) -> AggregatorTemplate:
    return AggregatorTemplate(0, lambda attrs, cell: CountAggregator(formatter))


def uniques(summarize: Callable[[List[Any]], Any], formatter: Formatter = US_FMT_INT) -> AggregatorTemplate:
    return AggregatorTemplate(1, lambda attrs, cell: UniquesAggregator(attrs[0], summarize, formatter))


def count_unique(formatter: Formatter = US_FMT_INT) -> AggregatorTemplate:
    return uniques(len, formatter)


def list_unique(separator: str = ", ") -> AggregatorTemplate:
    return uniques(lambda values: separator.join(display_value(v) for v in values), passthrough)


def sum_(formatter: Formatter = US_FMT) -> AggregatorTemplate:
    return AggregatorTemplate(1, lambda attrs, cell: SumAggregator(attrs[0], formatter))


def extremes(mode: str, formatter: Formatter = US_FMT) -> AggregatorTemplate:
    return AggregatorTemplate(
        1,
        lambda attrs, cell: ExtremesAggregator(attrs[0], mode, cell.sorter(attrs[0]), formatter),
    )


def quantile(q: float, formatter: Formatter = US_FMT) -> AggregatorTemplate:
    return AggregatorTemplate(1, lambda attrs, cell: QuantileAggregator(attrs[0], q, formatter))


def running_stat(mode: str = "mean", ddof: int = 1, formatter: Formatter = US_FMT) -> AggregatorTemplate:
    return AggregatorTemplate(
        1, lambda attrs, cell: RunningStatAggregator(attrs[0], mode, ddof, formatter)
    )


def sum_over_sum(formatter: Formatter = US_FMT) -> AggregatorTemplate:
    return AggregatorTemplate(
        2, lambda attrs, cell: SumOverSumAggregator(attrs[0], attrs[1], formatter)
    )


def fraction_of(
    wrapped: AggregatorTemplate,
    selector: str = "total",
    formatter: Formatter = US_FMT_PCT,
) -> AggregatorTemplate:
    return AggregatorTemplate(
        wrapped.num_inputs,
        lambda attrs, cell: FractionOfAggregator(wrapped.make(attrs, cell), cell, selector, formatter),
    )


BUILTIN_AGGREGATORS: Dict[str, AggregatorTemplate] = {
    "Count": count(US_FMT_INT),
    "Count Unique Values": count_unique(US_FMT_INT),
    "List Unique Values": list_unique(", "),
    "Sum": sum_(US_FMT),
    "Integer Sum": sum_(US_FMT_INT),
    "Average": running_stat("mean", 1, US_FMT),
    "Median": quantile(0.5, US_FMT),
    "Sample Variance": running_stat("var", 1, US_FMT),
    "Sample Standard Deviation": running_stat("stdev", 1, US_FMT),
    "Population Variance": running_stat("var", 0, US_FMT),
    "Population Standard Deviation": running_stat("stdev", 0, US_FMT),
    "Minimum": extremes("min", US_FMT),
    "Maximum": extremes("max", US_FMT),
    "First": extremes("first", US_FMT),
    "Last": extremes("last", US_FMT),
    "Sum over Sum": sum_over_sum(US_FMT),
    "Sum as Fraction of Total": fraction_of(sum_(), "total", US_FMT_PCT),
    "Sum as Fraction of Rows": fraction_of(sum_(), "row", US_FMT_PCT),
    "Sum as Fraction of Columns": fraction_of(sum_(), "col", US_FMT_PCT),
    "Count as Fraction of Total": fraction_of(count(), "total", US_FMT_PCT),
    "Count as Fraction of Rows": fraction_of(count(), "row", US_FMT_PCT),
    "Count as Fraction of Columns": fraction_of(count(), "col", US_FMT_PCT),
}


class AggregatorRegistry(Mapping[str, AggregatorTemplate]):
    """Ordered mapping of aggregator names to templates."""

    def __init__(self, templates: Optional[Mapping[str, AggregatorTemplate]] = None) -> None:
        self._templates: Dict[str, AggregatorTemplate] = dict(templates or {})

    def __getitem__(self, name: str) -> AggregatorTemplate:
        try:
            return self._templates[name]
        except KeyError:
            raise UnknownAggregator(name, self.names()) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)

    def names(self) -> List[str]:
        return list(self._templates)

    def register(self, name: str, template: AggregatorTemplate, *, replace: bool = False) -> None:
        if name in self._templates and not replace:
            raise ValueError(f"Aggregator '{name}' is already registered")
        self._templates[name] = template

    def num_inputs(self, name: str) -> int:
        return self[name].num_inputs

    def resolve(self, spec: AggregatorSpec) -> BoundAggregator:
        """Bind ``spec`` to its template, padding or trimming its inputs."""

        template = self[spec.name]
        attrs: List[Optional[str]] = list(spec.vals[: template.num_inputs])
        if len(spec.vals) > template.num_inputs:
            logger.debug(
                "Aggregator '%s' takes %d inputs; ignoring %s",
                spec.name,
                template.num_inputs,
                list(spec.vals[template.num_inputs :]),
            )
        attrs.extend([None] * (template.num_inputs - len(attrs)))
        return BoundAggregator(name=spec.name, template=template, attrs=tuple(attrs))

    def copy(self) -> "AggregatorRegistry":
        return AggregatorRegistry(self._templates)


def default_registry() -> AggregatorRegistry:
    """Return a fresh registry holding the built-in aggregators."""

    return AggregatorRegistry(BUILTIN_AGGREGATORS)


__all__ = [
    "Aggregator",
    "AggregatorRegistry",
    "AggregatorSpec",
    "AggregatorTemplate",
    "BUILTIN_AGGREGATORS",
    "BoundAggregator",
    "CellContext",
    "CountAggregator",
    "ExtremesAggregator",
    "FractionOfAggregator",
    "QuantileAggregator",
    "RunningStatAggregator",
    "SumAggregator",
    "SumOverSumAggregator",
    "UniquesAggregator",
    "UnknownAggregator",
    "count",
    "count_unique",
    "default_registry",
    "extremes",
    "fraction_of",
    "list_unique",
    "quantile",
    "running_stat",
    "sum_",
    "sum_over_sum",
    "uniques",
]
