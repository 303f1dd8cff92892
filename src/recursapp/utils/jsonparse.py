"""Best-effort JSON extraction from free-text model output."""

from __future__ import annotations

import json
import re
from typing import Optional

_FENCE_RE = re.compile(r"```(?:json|JSON)?")


def strip_code_fences(raw: str) -> str:
    """Drop markdown fence markers, keeping what was inside them."""
    return _FENCE_RE.sub("", raw or "").strip()


def _first_balanced_object(text: str) -> Optional[str]:
    start = text.find("{")
    while start >= 0:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
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
                    return text[start : i + 1]
        # Unbalanced from here on; try the next opening brace
        start = text.find("{", start + 1)
    return None


def try_parse_json_object(raw: str) -> Optional[dict]:
    """Return the first JSON object found in ``raw``, or None.

    Never raises: fences are stripped, the first balanced ``{...}`` is
    parsed, and anything that is not a JSON object yields None.
    """
    if not raw:
        return None
    candidate = _first_balanced_object(strip_code_fences(raw))
    if candidate is None:
        return None
    try:
        value = json.loads(candidate)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None
