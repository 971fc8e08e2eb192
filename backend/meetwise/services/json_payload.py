from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional


_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


class JsonPayloadError(ValueError):
    pass


def locate_json_text(text: str) -> str:
    """Return the part of a model response that should hold the JSON object.

    Order: first fenced code block, then the first balanced top-level ``{...}``
    span, then the whole response.
    """
    t = (text or "").strip()
    match = _FENCED_BLOCK.search(t)
    if match:
        return match.group(1)
    span = _first_object_span(t)
    if span is not None:
        return span
    return t


def parse_json_object(text: str) -> Dict[str, Any]:
    """Single parse attempt; anything but a JSON object is an error."""
    candidate = locate_json_text(text)
    try:
        data = json.loads(candidate)
    except (TypeError, ValueError) as exc:
        raise JsonPayloadError(f"response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise JsonPayloadError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _first_object_span(t: str) -> Optional[str]:
    start = t.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(t)):
        ch = t[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return t[start : i + 1]
    # Unbalanced: fall back to the widest span like a greedy match would
    end = t.rfind("}")
    if end > start:
        return t[start : end + 1]
    return None
