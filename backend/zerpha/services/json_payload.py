"""Helpers for pulling JSON out of provider text."""
from __future__ import annotations

import json
import re
from typing import Any

_FENCE_OPEN_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(content: str) -> str:
    trimmed = str(content or "").strip()
    if trimmed.startswith("```"):
        return _FENCE_OPEN_RE.sub("", trimmed).strip()
    return trimmed


def parse_json_payload(content: str) -> Any:
    """Parse fenced or bare JSON. Raises ``json.JSONDecodeError``."""
    return json.loads(strip_code_fences(content))


def describe_json_error(exc: json.JSONDecodeError) -> str:
    return f"{exc.msg} (line {exc.lineno}, column {exc.colno})"
