from __future__ import annotations

import json
import re
from typing import Any

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


def strip_code_fence(text: str) -> str:
    trimmed = text.strip()
    fenced = _FENCE_PATTERN.search(trimmed)
    return (fenced.group(1) if fenced else trimmed).strip()


def parse_json(text: str | None) -> Any | None:
    """Parse a JSON body that may be wrapped in a markdown code fence."""
    if not text:
        return None
    candidate = strip_code_fence(text)
    if not candidate:
        return None
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        return None
