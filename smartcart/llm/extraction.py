"""
Best-effort extraction of one JSON object from free-form model output.

Models wrap their JSON in prose or markdown fences often enough that the reply
cannot be handed to ``json.loads`` directly. We locate the outermost balanced
``{...}`` block (ignoring braces inside string literals) and parse only that.
Anything short of a clean parse raises ``AdvisorMalformedResponse``; a partial
payload is never returned.
"""
from __future__ import annotations

import json
from typing import Any

from .errors import AdvisorMalformedResponse


def find_brace_block(text: str) -> str | None:
    """Return the first top-level balanced ``{...}`` substring, or ``None``."""
    start = text.find("{")
    if start < 0:
        return None

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
    return None


def extract_json_object(text: str | None) -> dict[str, Any]:
    if not text:
        raise AdvisorMalformedResponse("empty reply")

    block = find_brace_block(text)
    if block is None:
        raise AdvisorMalformedResponse("no balanced brace block in reply")

    try:
        parsed = json.loads(block)
    except json.JSONDecodeError as exc:
        raise AdvisorMalformedResponse(f"brace block is not valid JSON: {exc}") from exc

    if not isinstance(parsed, dict):
        raise AdvisorMalformedResponse("brace block did not decode to an object")
    return parsed
