"""
Tabular import/export of batch runs.

Reads input rows from CSV and writes the success and error tables produced
by a run. Success records are expanded (nested objects flattened, arrays
fanned out into rows) before writing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

import pandas as pd

from gridprompt.flatten import expand_record
from gridprompt.models import BOOKKEEPING_KEYS, ErrorRow, ProcessedRow, Row
from gridprompt.parse import RESULT_KEY

logger = logging.getLogger(__name__)

ERROR_MESSAGE_COLUMN = "error_message"
ROW_INDEX_COLUMN = "row_index"


def default_basename(now: datetime | None = None) -> str:
    """Default export file stem, e.g. gridprompt-results-20250101-120000."""
    now = now or datetime.now()
    return f"gridprompt-results-{now.strftime('%Y%m%d-%H%M%S')}"


def _clean_success(data: Row) -> Row:
    record = {k: v for k, v in data.items() if k not in BOOKKEEPING_KEYS}
    # An unparsed response alone carries no structure worth a column
    if isinstance(record.get(RESULT_KEY), str):
        others = [k for k in record if k != RESULT_KEY and not str(k).startswith("_")]
        if not others:
            del record[RESULT_KEY]
    return record


def build_success_table(success: Iterable[ProcessedRow]) -> list[Row]:
    """
    Expand successful rows into flat export rows.

    Rows are ordered by input index; each record may yield several rows.
    """
    rows: list[Row] = []
    for item in sorted(success, key=lambda r: r.index):
        rows.extend(expand_record(_clean_success(item.data)))
    return rows


def build_error_table(errors: Iterable[ErrorRow]) -> list[Row]:
    """Original fields of failed rows plus error_message and row_index."""
    rows: list[Row] = []
    for item in sorted(errors, key=lambda r: r.index):
        record = dict(item.row)
        record[ERROR_MESSAGE_COLUMN] = item.message
        record[ROW_INDEX_COLUMN] = item.index
        rows.extend(expand_record(record))
    return rows


def union_columns(rows: Iterable[Row]) -> list[str]:
    """All keys across rows, in order of first appearance."""
    seen: dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)


def to_dataframe(rows: list[Row]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=union_columns(rows))


def write_csv(rows: list[Row], path: str | Path) -> Path:
    """Write rows to CSV with the union of their keys as header."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    to_dataframe(rows).to_csv(path, index=False)
    logger.info("Wrote %d rows to %s", len(rows), path)
    return path


def read_csv_rows(path: str | Path) -> list[Row]:
    """
    Load a CSV file into rows.

    All cells are read as text. Empty cells are kept as "" so every header
    column is present on every row.
    """
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        return []
    rows: list[Row] = []
    for record in df.to_dict(orient="records"):
        rows.append({str(k): v for k, v in record.items()})
    return rows


def export_results(
    success: list[ProcessedRow],
    errors: list[ErrorRow],
    output_dir: str | Path,
    basename: str | None = None,
) -> dict[str, Any]:
    """
    Write ``<basename>.csv`` and, when any row failed, ``<basename>-errors.csv``.

    Returns:
        Dict with written paths and row counts
    """
    output_dir = Path(output_dir)
    basename = basename or default_basename()

    success_rows = build_success_table(success)
    summary: dict[str, Any] = {
        "success_path": write_csv(success_rows, output_dir / f"{basename}.csv"),
        "success_rows": len(success_rows),
        "error_path": None,
        "error_rows": 0,
    }
    if errors:
        error_rows = build_error_table(errors)
        summary["error_path"] = write_csv(error_rows, output_dir / f"{basename}-errors.csv")
        summary["error_rows"] = len(error_rows)
    return summary
