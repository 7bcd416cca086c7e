"""
Row flattening and array expansion for tabular export.

Nested objects become ``parent_child`` columns. Array fields fan a record
out into one row per element index:

    {"name": "A", "items": [{"sku": 1}, {"sku": 2}]}
    -> [{"name": "A", "items_sku": 1}, {"name": "A", "items_sku": 2}]
"""

from __future__ import annotations

import json
from typing import Any

SEPARATOR = "_"


def flatten_record(record: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """
    Flatten nested dicts into composite keys.

    Recursion stops at scalars and lists; lists are kept as values.

    Args:
        record: Record to flatten
        prefix: Key prefix for every produced field

    Returns:
        New flat dict (input is not modified)
    """
    flat: dict[str, Any] = {}
    for key, value in record.items():
        full_key = f"{prefix}{SEPARATOR}{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten_record(value, full_key))
        else:
            flat[full_key] = value
    return flat


def _cell(value: Any) -> Any:
    """Lists left inside a generated row are stored as JSON text."""
    if isinstance(value, list):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return value


def expand_record(record: Any) -> list[dict[str, Any]]:
    """
    Expand a record into flat rows, one per array element index.

    Non-array fields are repeated on every generated row. For each array
    field, element ``i`` contributes its own flattened fields (object
    elements) or the element itself (scalars); arrays shorter than the
    longest one contribute nothing past their end.

    Args:
        record: Parsed record (non-dict values are wrapped as ``result``)

    Returns:
        ``max(len(array))`` rows, or a single row when there are no arrays
    """
    if not isinstance(record, dict):
        record = {"result": record}

    flat = flatten_record(record)
    array_fields = [k for k, v in flat.items() if isinstance(v, list) and v]
    if not array_fields:
        return [flat]

    base = {k: v for k, v in flat.items() if k not in array_fields}
    max_len = max(len(flat[k]) for k in array_fields)

    rows = []
    for i in range(max_len):
        row = dict(base)
        for key in array_fields:
            items = flat[key]
            if i >= len(items):
                continue
            item = items[i]
            if isinstance(item, dict):
                for sub_key, sub_value in flatten_record(item, key).items():
                    row[sub_key] = _cell(sub_value)
            else:
                row[key] = _cell(item)
        rows.append(row)
    return rows


def expand_records(records: list[Any]) -> list[dict[str, Any]]:
    """Expand every record and concatenate the rows in order."""
    rows: list[dict[str, Any]] = []
    for record in records:
        rows.extend(expand_record(record))
    return rows
