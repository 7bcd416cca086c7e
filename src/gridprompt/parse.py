"""
Response normalizer: extract JSON from free-form model output.

Models wrap JSON in code fences, prefix it with prose, or ignore the
requested format entirely. ``parse_response`` tries progressively looser
extraction strategies and falls back to ``{"result": <raw text>}``; it never
raises.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

RESULT_KEY = "result"

_FENCED_OBJECT = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```")
_FENCED_ARRAY = re.compile(r"```(?:json)?\s*(\[[\s\S]*\])\s*```")

_MISSING = object()


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return _MISSING


def _from_fence(pattern: re.Pattern[str], text: str) -> Any:
    match = pattern.search(text)
    if match is None:
        return _MISSING
    return _loads(match.group(1))


def _between(text: str, start: str, end: str) -> Any:
    """Parse the widest start..end slice that is valid JSON."""
    start_pos = text.find(start)
    if start_pos < 0:
        return _MISSING
    end_pos = text.rfind(end)
    while end_pos > start_pos:
        value = _loads(text[start_pos : end_pos + 1])
        if value is not _MISSING:
            return value
        end_pos = text.rfind(end, start_pos, end_pos)
    return _MISSING


def parse_response(raw: str) -> Any:
    """
    Parse model output into a JSON value.

    Strategies, in order:
    1. Fenced code block (optionally tagged json) holding an object
    2. Fenced code block holding an array
    3. The whole trimmed text
    4. First '{' to the last '}' that parses, then the same for '[' ']'
    5. ``{"result": raw}``

    Args:
        raw: Response text exactly as returned by the remote service

    Returns:
        Parsed JSON value, or the fallback record
    """
    trimmed = raw.strip()

    for extract in (
        lambda: _from_fence(_FENCED_OBJECT, trimmed),
        lambda: _from_fence(_FENCED_ARRAY, trimmed),
        lambda: _loads(trimmed),
        lambda: _between(trimmed, "{", "}"),
        lambda: _between(trimmed, "[", "]"),
    ):
        value = extract()
        if value is not _MISSING:
            return value

    logger.debug("Response is not JSON, storing as %r", RESULT_KEY)
    return {RESULT_KEY: raw}
