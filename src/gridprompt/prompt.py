"""
Prompt rendering.

Replaces {{column}} placeholders in a prompt template with row values and
appends the output schema block.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterable

from gridprompt.schema import SCHEMA_HEADER

# Matches {{name}} and {{ name }}. Names are CSV headers: spaces and
# punctuation allowed, braces not.
_PLACEHOLDER_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")


def value_to_text(value: Any) -> str:
    """Coerce a row value to the text inserted into a prompt."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if value is None:
        return ""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _lookup(row: dict[str, Any], token: str) -> str | None:
    if token in row:
        return token
    stripped = token.strip()
    if stripped in row:
        return stripped
    return None


def render_prompt(template: str, row: dict[str, Any], schema_text: str = "") -> str:
    """
    Render a prompt for one row.

    Substitution is a single pass over the template: inserted values are
    never scanned for further placeholders, and placeholders naming a column
    absent from the row are left as-is.

    Args:
        template: Prompt template with {{column}} placeholders
        row: Row values keyed by column name
        schema_text: Compiled schema text ("" to omit the schema block)

    Returns:
        The rendered prompt
    """

    def replace(match: re.Match[str]) -> str:
        key = _lookup(row, match.group(1))
        if key is None:
            return match.group(0)
        return value_to_text(row[key])

    body = _PLACEHOLDER_PATTERN.sub(replace, template)
    if schema_text:
        return f"{body}\n\n{SCHEMA_HEADER}\n{schema_text}"
    return body


def extract_variables(template: str) -> set[str]:
    """Return placeholder names referenced by a template."""
    return {m.group(1).strip() for m in _PLACEHOLDER_PATTERN.finditer(template)}


def missing_variables(template: str, columns: Iterable[str]) -> list[str]:
    """Placeholder names in the template that match none of the given columns."""
    available = {c.strip() for c in columns}
    return sorted(v for v in extract_variables(template) if v not in available)
