"""Command line interface for Pivot Studio."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

from tabulate import tabulate

from .aggregators import AggregatorRegistry, AggregatorSpec, default_registry
from .config import AppConfig, load_config, parse_aggregator
from .engine import build_pivot
from .io import load_records
from .ordering import SortOrder
from .reporting import render_all

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/config.yaml")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Summarize tabular records as a pivot table")
    parser.add_argument("--config", type=Path, help="Path to YAML configuration")
    parser.add_argument("--data", type=Path, help="Override path to the input dataset")
    parser.add_argument("--rows", help="Comma separated row attributes")
    parser.add_argument("--cols", help="Comma separated column attributes")
    parser.add_argument(
        "--aggregator",
        action="append",
        help="Aggregator in the format Name[:attr1,attr2]; may be repeated",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        help="Exclude records in the format attribute=value; may be repeated",
    )
    orders = [order.value for order in SortOrder]
    parser.add_argument("--row-order", choices=orders, help="Ordering of row keys")
    parser.add_argument("--col-order", choices=orders, help="Ordering of column keys")
    parser.add_argument("--table-format", help="tabulate table format (github, grid, plain, ...)")
    parser.add_argument("--list-aggregators", action="store_true", help="List available aggregators and exit")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING)")
    parser.add_argument("--quiet", action="store_true", help="Suppress table output")
    return parser


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    registry = default_registry()
    if args.list_aggregators:
        _print_aggregators(registry)
        return 0

    try:
        config = _load_app_config(args.config)
        _apply_overrides(config, args)
    except Exception as exc:  # pragma: no cover - CLI validation
        logger.error("Failed to load configuration: %s", exc)
        return 1

    if config.data.path is None:
        logger.error("No input dataset given; use --data or set data.path in the configuration")
        return 1

    try:
        records = load_records(
            config.data.path,
            chunk_size=config.data.chunk_size,
            numeric_columns=config.data.numeric_columns,
            sheet=config.data.sheet,
        )
    except Exception as exc:
        logger.exception("Failed to load dataset: %s", exc)
        return 1

    config.pivot.aggregators = _available_aggregators(config.pivot.aggregators, registry)

    try:
        tree = build_pivot(
            records,
            config.pivot,
            derived_attributes=config.derived_attributes(),
            registry=registry,
        )
    except Exception as exc:
        logger.exception("Pivot build failed: %s", exc)
        return 1

    if not args.quiet:
        print(f"Records: {tree.record_count}")
        print(
            render_all(
                tree,
                tablefmt=config.output.table_format,
                totals=config.output.totals,
                formatted=config.output.formatted,
            )
        )

    return 0


def _load_app_config(path: Optional[Path]) -> AppConfig:
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return AppConfig()


def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    if args.data:
        config.data.path = _resolve_override_path(args.data)

    if args.rows is not None:
        config.pivot.rows = _split_attrs(args.rows)

    if args.cols is not None:
        config.pivot.cols = _split_attrs(args.cols)

    if args.aggregator:
        config.pivot.aggregators = [parse_aggregator(entry) for entry in args.aggregator]

    if args.exclude:
        for entry in args.exclude:
            attr, value = _parse_exclude(entry)
            config.pivot.value_filter.setdefault(attr, []).append(value)

    if args.row_order:
        config.pivot.row_order = SortOrder.parse(args.row_order)

    if args.col_order:
        config.pivot.col_order = SortOrder.parse(args.col_order)

    if args.table_format:
        config.output.table_format = args.table_format


def _available_aggregators(
    specs: List[AggregatorSpec], registry: AggregatorRegistry
) -> List[AggregatorSpec]:
    kept = []
    for spec in specs:
        if spec.name in registry:
            kept.append(spec)
        else:
            logger.warning("Unknown aggregator '%s' ignored", spec.name)
    if specs and not kept:
        fallback = registry.names()[0]
        logger.warning("No known aggregators selected; falling back to '%s'", fallback)
        kept.append(AggregatorSpec(fallback))
    return kept


def _parse_exclude(value: str) -> Tuple[str, Any]:
    if "=" not in value:
        raise ValueError("Exclusions must be in the format attribute=value")
    attr, excluded = value.split("=", 1)
    attr = attr.strip()
    if not attr:
        raise ValueError("Exclusion must name an attribute")
    # an empty value excludes records where the attribute is missing
    return attr, excluded if excluded != "" else None


def _split_attrs(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _resolve_override_path(path: Path) -> Path:
    path = Path(path).expanduser()
    if path.is_absolute():
        return path
    return (Path.cwd() / path).resolve()


def _print_aggregators(registry: AggregatorRegistry) -> None:
    rows = [(name, registry.num_inputs(name)) for name in registry.names()]
    print(tabulate(rows, headers=["Aggregator", "Inputs"], tablefmt="github"))


if __name__ == "__main__":  # pragma: no cover - manual execution entry point
    raise SystemExit(main())
