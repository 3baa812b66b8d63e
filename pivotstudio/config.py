"""Configuration loading utilities for Pivot Studio."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .aggregators import AggregatorSpec
from .derivers import Deriver, bin_, date_format
from .ordering import SortOrder

DERIVER_KINDS = ("bin", "date_format")


@dataclass
class DataConfig:
    """Where the input records come from and how to read them."""

    path: Optional[Path] = None
    sheet: Optional[str] = None
    chunk_size: Optional[int] = None
    numeric_columns: List[str] = field(default_factory=list)

    def resolved(self, base_path: Path) -> "DataConfig":
        return DataConfig(
            path=_resolve_path(self.path, base_path) if self.path else None,
            sheet=self.sheet,
            chunk_size=self.chunk_size,
            numeric_columns=list(self.numeric_columns),
        )


@dataclass
class PivotConfig:
    """Attribute layout, filter, aggregators and ordering for one build."""

    rows: List[str] = field(default_factory=list)
    cols: List[str] = field(default_factory=list)
    aggregators: List[AggregatorSpec] = field(default_factory=list)
    value_filter: Dict[str, List[Any]] = field(default_factory=dict)
    sort_as: Dict[str, List[Any]] = field(default_factory=dict)
    row_order: SortOrder = SortOrder.KEY_A_TO_Z
    col_order: SortOrder = SortOrder.KEY_A_TO_Z

    def __post_init__(self) -> None:
        self.rows = list(self.rows)
        self.cols = list(self.cols)
        self.aggregators = [
            spec if isinstance(spec, AggregatorSpec) else AggregatorSpec(str(spec))
            for spec in self.aggregators
        ]
        self.row_order = SortOrder.parse(self.row_order)
        self.col_order = SortOrder.parse(self.col_order)


@dataclass
class DerivedAttributeConfig:
    """Declarative description of a derived attribute."""

    name: str
    kind: str
    attribute: str
    options: Dict[str, Any] = field(default_factory=dict)

    def build(self) -> Deriver:
        if self.kind == "bin":
            if "width" not in self.options:
                raise ValueError(f"Derived attribute '{self.name}' needs a bin 'width'")
            return bin_(self.attribute, float(self.options["width"]))
        if self.kind == "date_format":
            return date_format(
                self.attribute,
                str(self.options.get("format", "%y-%m-%d")),
                utc_output=bool(self.options.get("utc", False)),
            )
        raise ValueError(f"Unknown derived attribute type '{self.kind}' for '{self.name}'")


@dataclass
class OutputConfig:
    """How pivot tables are printed."""

    table_format: str = "github"
    totals: bool = True
    formatted: bool = True


@dataclass
class AppConfig:
    """Container for everything the CLI needs to build and print a pivot."""

    data: DataConfig = field(default_factory=DataConfig)
    pivot: PivotConfig = field(default_factory=PivotConfig)
    derived: List[DerivedAttributeConfig] = field(default_factory=list)
    output: OutputConfig = field(default_factory=OutputConfig)

    def derived_attributes(self) -> Dict[str, Deriver]:
        return {entry.name: entry.build() for entry in self.derived}

    def resolved(self, base_path: Path) -> "AppConfig":
        return AppConfig(
            data=self.data.resolved(base_path),
            pivot=self.pivot,
            derived=self.derived,
            output=self.output,
        )


def load_config(path: Path) -> AppConfig:
    """Load :class:`AppConfig` from a YAML file."""

    config_path = Path(path).expanduser()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file '{config_path}' does not exist")

    with config_path.open("r", encoding="utf-8") as stream:
        raw_config = yaml.safe_load(stream) or {}

    if not isinstance(raw_config, Mapping):
        raise ValueError("Configuration root must be a mapping")

    return parse_config(raw_config).resolved(config_path.parent)


def parse_config(raw_config: Mapping[str, Any]) -> AppConfig:
    """Build :class:`AppConfig` from an already parsed mapping."""

    data = _parse_data_section(_section(raw_config, "data"))
    pivot = _parse_pivot_section(_section(raw_config, "pivot"))
    derived = [
        _parse_derived_entry(name, entry)
        for name, entry in _section(raw_config, "derived").items()
    ]
    output = OutputConfig(**_parse_output_section(_section(raw_config, "output")))
    return AppConfig(data=data, pivot=pivot, derived=derived, output=output)


def parse_aggregator(entry: Any) -> AggregatorSpec:
    """Accept ``"Sum"``, ``"Sum:amount"`` or ``{name: Sum, vals: [amount]}``."""

    if isinstance(entry, str):
        name, _, vals = entry.partition(":")
        if not name.strip():
            raise ValueError("Aggregator name must not be empty")
        return AggregatorSpec(
            name=name.strip(),
            vals=tuple(val.strip() for val in vals.split(",") if val.strip()),
        )
    if isinstance(entry, Mapping):
        if not entry.get("name"):
            raise ValueError("Aggregator entries must define a 'name'")
        vals = entry.get("vals", [])
        return AggregatorSpec(name=str(entry["name"]), vals=tuple(_string_list(vals, "vals")))
    raise ValueError(f"Unsupported aggregator entry: {entry!r}")


def _section(raw_config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = raw_config.get(name) or {}
    if not isinstance(section, Mapping):
        raise ValueError(f"Configuration section '{name}' must be a mapping")
    return section


def _parse_data_section(section: Mapping[str, Any]) -> DataConfig:
    chunk_size = section.get("chunk_size")
    return DataConfig(
        path=Path(section["path"]) if section.get("path") else None,
        sheet=section.get("sheet"),
        chunk_size=int(chunk_size) if chunk_size else None,
        numeric_columns=_string_list(section.get("numeric_columns", []), "data.numeric_columns"),
    )


def _parse_pivot_section(section: Mapping[str, Any]) -> PivotConfig:
    aggregators = section.get("aggregators", [])
    if isinstance(aggregators, (str, Mapping)):
        aggregators = [aggregators]

    return PivotConfig(
        rows=_string_list(section.get("rows", []), "pivot.rows"),
        cols=_string_list(section.get("cols", []), "pivot.cols"),
        aggregators=[parse_aggregator(entry) for entry in aggregators],
        value_filter=_parse_value_lists(section.get("value_filter", {}), "pivot.value_filter"),
        sort_as=_parse_value_lists(section.get("sort_as", {}), "pivot.sort_as"),
        row_order=SortOrder.parse(section.get("row_order", SortOrder.KEY_A_TO_Z)),
        col_order=SortOrder.parse(section.get("col_order", SortOrder.KEY_A_TO_Z)),
    )


def _parse_derived_entry(name: str, entry: Any) -> DerivedAttributeConfig:
    if not isinstance(entry, Mapping):
        raise ValueError(f"Derived attribute '{name}' must be a mapping")
    kind = entry.get("type")
    if kind not in DERIVER_KINDS:
        raise ValueError(
            f"Derived attribute '{name}' has unknown type {kind!r}; expected one of {', '.join(DERIVER_KINDS)}"
        )
    if not entry.get("attribute"):
        raise ValueError(f"Derived attribute '{name}' must name its source 'attribute'")
    options = {key: value for key, value in entry.items() if key not in {"type", "attribute"}}
    return DerivedAttributeConfig(
        name=str(name), kind=kind, attribute=str(entry["attribute"]), options=options
    )


def _parse_output_section(section: Mapping[str, Any]) -> Dict[str, Any]:
    parsed: Dict[str, Any] = {}
    if "table_format" in section:
        parsed["table_format"] = str(section["table_format"])
    for key in ("totals", "formatted"):
        if key in section:
            parsed[key] = bool(section[key])
    return parsed


def _parse_value_lists(section: Any, name: str) -> Dict[str, List[Any]]:
    if not section:
        return {}
    if not isinstance(section, Mapping):
        raise ValueError(f"{name} must map attribute names to value lists")
    parsed: Dict[str, List[Any]] = {}
    for attr, values in section.items():
        if values is None or isinstance(values, (str, int, float, bool)):
            values = [values]
        parsed[str(attr)] = list(values)
    return parsed


def _string_list(value: Any, name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{name} must be a list of attribute names")
    return [str(item) for item in value]


def _resolve_path(path: Path, base_path: Path) -> Path:
    expanded = Path(path).expanduser()
    if expanded.is_absolute():
        return expanded
    return (base_path / expanded).resolve()


__all__ = [
    "AppConfig",
    "DataConfig",
    "DerivedAttributeConfig",
    "OutputConfig",
    "PivotConfig",
    "load_config",
    "parse_aggregator",
    "parse_config",
]
