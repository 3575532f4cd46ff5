"""Tolerant parsing of JSON returned by the generation adapter.

Models frequently wrap JSON in markdown code fences or add a stray sentence
before it.  :func:`parse_json_payload` is the single place that deals with
this: it strips fences, parses strictly, and raises
:class:`MalformedOutputError` on anything it cannot trust.  Partially
parsed structures are never returned.
"""

from __future__ import annotations

import json
import re
from typing import Any

from src.utils.errors import MalformedOutputError

# Matches ```json ... ``` or ``` ... ``` anywhere in the response.
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL | re.IGNORECASE)


def strip_code_fences(raw: str) -> str:
    """Return the body of the first fenced block, or *raw* stripped."""
    match = _JSON_FENCE_RE.search(raw)
    if match:
        return match.group(1).strip()
    text = raw.strip()
    # Unterminated fence: the model stopped before closing it.
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text, flags=re.IGNORECASE)
    return text.strip()


def parse_json_payload(
    raw: str | None,
    expected_type: type | tuple[type, ...] | None = None,
    label: str = "payload",
) -> Any:
    """Strip fences from *raw* and parse it as JSON.

    Parameters
    ----------
    raw:
        Text returned by the model.
    expected_type:
        Optional top-level type (``dict`` or ``list``) the result must have.
    label:
        Name used in the error message.

    Returns
    -------
    Any
        The parsed JSON value.

    Raises
    ------
    MalformedOutputError
        If *raw* is empty, not valid JSON, or of the wrong top-level type.
    """
    if raw is None or not raw.strip():
        raise MalformedOutputError(message=f"Empty {label} returned by model")

    text = strip_code_fences(raw)
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedOutputError(
            message=f"Invalid JSON in {label}: {exc.msg} at position {exc.pos}"
        ) from exc

    if expected_type is not None and not isinstance(value, expected_type):
        raise MalformedOutputError(
            message=f"Expected {label} to be {_type_name(expected_type)}, "
            f"got {type(value).__name__}"
        )
    return value


def _type_name(expected: type | tuple[type, ...]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__
