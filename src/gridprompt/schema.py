"""
Output schema compiler.

Turns a tree of OutputColumn definitions into the schema text appended to
every prompt, and infers a column tree from a sample JSON document.

Example output for [title: string, meta: object(brand), items: array(sku)]:

    {
      "title": string // Product title,
      "meta": {
        "brand": string
      },
      "items": [
        {
          "sku": number
        }
      ]
    }
"""

from __future__ import annotations

from typing import Any

from gridprompt.models import ColumnType, OutputColumn

SCHEMA_HEADER = "[Output schema]\nPlease output in the following JSON structure:"

INDENT_STEP = 2


def _render_columns(columns: list[OutputColumn], indent: int) -> str:
    lines = []
    for col in columns:
        pad = " " * indent
        desc = f" // {col.description}" if col.description else ""

        if col.type == "object" and col.nested_columns:
            nested = _render_columns(col.nested_columns, indent + INDENT_STEP)
            lines.append(f'{pad}"{col.name}": {{\n{nested}\n{pad}}}{desc}')
        elif col.type == "array" and col.nested_columns:
            # Element fields sit one level inside the element braces
            nested = _render_columns(col.nested_columns, indent + 2 * INDENT_STEP)
            inner = " " * (indent + INDENT_STEP)
            lines.append(
                f'{pad}"{col.name}": [\n{inner}{{\n{nested}\n{inner}}}\n{pad}]{desc}'
            )
        else:
            lines.append(f'{pad}"{col.name}": {col.type}{desc}')
    return ",\n".join(lines)


def compile_schema(columns: list[OutputColumn]) -> str:
    """
    Compile a column tree into schema text.

    Args:
        columns: Top-level output columns, in display order

    Returns:
        The schema wrapped in braces, or "" when there are no columns
    """
    if not columns:
        return ""
    return "{\n" + _render_columns(columns, INDENT_STEP) + "\n}"


def schema_block(columns: list[OutputColumn]) -> str:
    """Header plus compiled schema, exactly as appended to prompts."""
    schema_text = compile_schema(columns)
    if not schema_text:
        return ""
    return f"{SCHEMA_HEADER}\n{schema_text}"


# ============================================================================
# Column Inference
# ============================================================================


def _infer_type(value: Any) -> ColumnType:
    if value is None:
        return "string"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "string"


def _columns_from_object(obj: dict[str, Any]) -> list[OutputColumn]:
    columns = []
    for key, value in obj.items():
        col_type = _infer_type(value)
        nested = None
        if col_type == "object":
            nested = infer_columns(value)
        elif col_type == "array":
            first = next((item for item in value if isinstance(item, dict)), None)
            if first is not None:
                nested = _columns_from_object(first)
        columns.append(OutputColumn(name=key, type=col_type, nested_columns=nested))
    return columns


def infer_columns(sample: Any, name: str | None = None) -> list[OutputColumn]:
    """
    Infer output columns from a sample response.

    Objects map to one column per key, nested objects to ``object`` columns,
    lists to ``array`` columns shaped after their first object element. A
    top-level list is described by its first non-null element.

    Args:
        sample: Parsed JSON sample
        name: Column name used when the sample is a bare scalar or list

    Returns:
        Inferred column tree
    """
    if isinstance(sample, list):
        first = next((item for item in sample if item is not None), None)
        if isinstance(first, dict):
            return _columns_from_object(first)
        return [OutputColumn(name=name or "items", type="array")]
    if isinstance(sample, dict):
        return _columns_from_object(sample)
    return [OutputColumn(name=name or "value", type=_infer_type(sample))]
