"""
JSON extraction from free-form generator output.

Models wrap JSON in code fences and chatty prose ("Sure! Here you go: ...").
The extractor scans for the first balanced {...} (or [...]) span, honoring
string literals and escapes so braces inside strings do not confuse it,
and parses that span.
"""

from __future__ import annotations

import json
import re
from typing import Any

from mastery_loop.core.errors import GenerationParseError

_CLOSERS = {"{": "}", "[": "]"}
_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


def find_balanced(text: str, opener: str = "{") -> str | None:
    """
    Return the first balanced span that starts with opener.

    Args:
        text: Raw generator output
        opener: "{" for objects, "[" for arrays

    Returns:
        The substring including both delimiters, or None if no opener is
        followed by a matching closer
    """
    closer = _CLOSERS[opener]
    open_positions: list[int] = []
    earliest: tuple[int, int] | None = None
    in_string = False
    escaped = False
    for pos, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"' and open_positions:
            in_string = True
        elif char == opener:
            open_positions.append(pos)
        elif char == closer and open_positions:
            start = open_positions.pop()
            if not open_positions:
                return text[start : pos + 1]
            # Nested pair inside a still-open outer span; remembered in case
            # the outer opener never closes
            if earliest is None or start < earliest[0]:
                earliest = (start, pos)
    if earliest is None:
        return None
    return text[earliest[0] : earliest[1] + 1]


def _extract(text: str, opener: str, expected: type) -> Any:
    if not text or not text.strip():
        raise GenerationParseError("Empty generator response", raw_response=text or "")

    cleaned = _FENCE_PATTERN.sub("", text)
    candidate = find_balanced(cleaned, opener)
    if candidate is None:
        raise GenerationParseError(
            f"No balanced {opener}{_CLOSERS[opener]} found in generator response",
            raw_response=text,
        )

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise GenerationParseError(f"Invalid JSON in generator response: {e}", raw_response=text) from e

    if not isinstance(data, expected):
        raise GenerationParseError(
            f"Expected {expected.__name__}, got {type(data).__name__}", raw_response=text
        )
    return data


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the first balanced JSON object in text."""
    return _extract(text, "{", dict)


def extract_json_array(text: str) -> list[Any]:
    """Parse the first balanced JSON array in text."""
    return _extract(text, "[", list)
