"""Plain-text rendering of pivot results."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from tabulate import tabulate

from .engine import PivotTree

logger = logging.getLogger(__name__)


def _label(entry: Any) -> str:
    if isinstance(entry, tuple):
        return " / ".join(str(part) for part in entry if part != "")
    return str(entry)


def render_table(
    tree: PivotTree,
    aggregator: Optional[str] = None,
    tablefmt: str = "github",
    totals: bool = True,
    formatted: bool = True,
) -> str:
    """Render one aggregator's cross-tab as a text table."""

    name = aggregator or tree.primary_aggregator
    frame = tree.to_frame(name, formatted=formatted, totals=totals)

    corner = " / ".join(tree.row_attrs)
    if tree.row_attrs:
        corner = f"{corner} {tree.row_symbol}"
    col_title = " / ".join(tree.col_attrs)
    if tree.col_attrs:
        corner = f"{corner} \\ {col_title} {tree.col_symbol}".strip()

    headers = [corner] + [_label(column) for column in frame.columns]
    body: List[List[Any]] = [
        [_label(index)] + list(row)
        for index, row in zip(frame.index, frame.itertuples(index=False, name=None))
    ]
    logger.debug("Rendering %d x %d table for '%s'", len(body), len(headers) - 1, name)
    return f"{name}\n" + tabulate(body, headers=headers, tablefmt=tablefmt, disable_numparse=formatted)


def render_all(
    tree: PivotTree,
    tablefmt: str = "github",
    totals: bool = True,
    formatted: bool = True,
) -> str:
    """Render one table per aggregator, stacked."""

    return "\n\n".join(
        render_table(tree, name, tablefmt=tablefmt, totals=totals, formatted=formatted)
        for name in tree.aggregator_names
    )


__all__ = ["render_all", "render_table"]
