"""IO helpers for reading pivot input records from disk."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .indexer import iter_records

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv", ".txt", ".tsv"}
EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}
JSON_EXTENSIONS = {".json"}


def load_records(
    path: Path,
    chunk_size: Optional[int] = None,
    numeric_columns: Sequence[str] = (),
    sheet: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Load records from a CSV, Excel or JSON file.

    Tabular cells are read as text and empty cells become ``None``; columns
    listed in ``numeric_columns`` are coerced to floats. JSON input keeps
    each object's own set of keys.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Dataset '{path}' does not exist")

    ext = path.suffix.lower()
    logger.info("Loading records from %s", path)
    if ext in CSV_EXTENSIONS:
        records = _frame_to_records(_load_csv(path, chunk_size, sep="\t" if ext == ".tsv" else ","))
    elif ext in EXCEL_EXTENSIONS:
        records = _frame_to_records(_load_excel(path, sheet))
    elif ext in JSON_EXTENSIONS:
        records = _load_json(path)
    else:
        raise ValueError(f"Unsupported file extension '{ext}' for dataset '{path}'")

    if numeric_columns:
        _coerce_record_columns(records, numeric_columns)
    logger.debug("Loaded %d records from %s", len(records), path)
    return records


def _load_csv(path: Path, chunk_size: Optional[int], sep: str = ",") -> pd.DataFrame:
    logger.debug("Reading CSV %s with chunk size %s", path, chunk_size)
    read_kwargs = {"dtype": str, "sep": sep}
    if chunk_size and chunk_size > 0:
        chunks = list(pd.read_csv(path, chunksize=chunk_size, **read_kwargs))
        if not chunks:
            return pd.DataFrame()
        return pd.concat(chunks, ignore_index=True)
    return pd.read_csv(path, **read_kwargs)


def _load_excel(path: Path, sheet: Optional[str]) -> pd.DataFrame:
    logger.debug("Reading Excel %s (sheet %s)", path, sheet if sheet is not None else 0)
    return pd.read_excel(
        path, sheet_name=sheet if sheet is not None else 0, dtype=str, engine="openpyxl"
    )


def _load_json(path: Path) -> List[Dict[str, Any]]:
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, list):
        raise ValueError(f"JSON dataset '{path}' must contain a list of records")
    return list(iter_records(payload))


def _frame_to_records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    cleaned = frame.astype(object).where(frame.notna(), None)
    return cleaned.to_dict(orient="records")


def _coerce_record_columns(records: List[Dict[str, Any]], columns: Sequence[str]) -> None:
    for column in columns:
        holders = [record for record in records if column in record]
        if not holders:
            logger.warning("Numeric column '%s' not found in any record", column)
            continue
        coerced = coerce_numeric(pd.Series([record[column] for record in holders], dtype=object))
        for record, value in zip(holders, coerced.tolist()):
            record[column] = None if value is None or np.isnan(value) else value


def coerce_numeric(values: pd.Series) -> pd.Series:
    """Coerce textual representations of numbers into floats."""

    if not isinstance(values, pd.Series):
        values = pd.Series(values)
    if values.empty:
        return pd.to_numeric(values, errors="coerce")

    cleaned = values.where(values.notna(), "").astype(str)
    cleaned = cleaned.str.replace(r"\s+", "", regex=True)
    cleaned = cleaned.str.replace("\u00A0", "", regex=False)
    cleaned = cleaned.str.replace(r"(?i)(czk|kč|eur|€|usd|\$|gbp|£)", "", regex=True)
    cleaned = cleaned.str.replace(r"[+-]$", "", regex=True)
    cleaned = cleaned.str.replace(r"[^0-9,\.\-+]", "", regex=True)

    # with both separators present, the last one is the decimal mark
    both = cleaned.str.contains(",", regex=False) & cleaned.str.contains(".", regex=False)
    comma_decimal = cleaned.str.rfind(",") > cleaned.str.rfind(".")
    cleaned = cleaned.where(~(both & comma_decimal), cleaned.str.replace(".", "", regex=False))
    cleaned = cleaned.where(~(both & ~comma_decimal), cleaned.str.replace(",", "", regex=False))

    cleaned = cleaned.str.replace(",", ".", regex=False)
    cleaned = cleaned.str.replace(r"[.,]$", "", regex=True)

    return pd.to_numeric(cleaned, errors="coerce").astype(float)


__all__ = ["coerce_numeric", "load_records"]
