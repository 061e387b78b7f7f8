"""
Tolerant parsing of LLM output.

Models asked for JSON still wrap it in markdown fences or surround it with
prose. ``parse_json_safely`` tries progressively looser readings before
giving up; callers re-check field types themselves.
"""

from __future__ import annotations

import json
import re
from typing import Any

_LEADING_JSON_FENCE = re.compile(r"^```json\s*", re.IGNORECASE)
_LEADING_FENCE = re.compile(r"^```\s*")
_TRAILING_FENCE = re.compile(r"\s*```$")


def strip_code_fences(text: str) -> str:
    stripped = _LEADING_JSON_FENCE.sub("", text)
    stripped = _LEADING_FENCE.sub("", stripped)
    return _TRAILING_FENCE.sub("", stripped).strip()


def parse_json_safely(text: str | None) -> Any:
    """
    Parse JSON from raw model output.

    Attempts, in order:
        1. Direct parse
        2. Parse after stripping leading/trailing markdown code fences
        3. Parse the slice from the first "{" to the last "}"

    Raises:
        json.JSONDecodeError: If no attempt yields valid JSON
    """
    direct = str(text or "").strip()
    try:
        return json.loads(direct)
    except json.JSONDecodeError:
        pass

    without_fence = strip_code_fences(direct)
    try:
        return json.loads(without_fence)
    except json.JSONDecodeError:
        pass

    start = without_fence.find("{")
    end = without_fence.rfind("}")
    if start != -1 and end > start:
        return json.loads(without_fence[start : end + 1])

    raise json.JSONDecodeError("Invalid JSON payload", direct, 0)


def parse_json_object(text: str | None) -> dict[str, Any]:
    """Like ``parse_json_safely`` but insists on a top-level object."""
    parsed = parse_json_safely(text)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected JSON object, got {type(parsed).__name__}")
    return parsed


def extract_candidate_text(response: Any) -> str:
    """Text of the first part of the first candidate, stripped; "" when absent.

    Reads the candidate structure directly rather than ``response.text``,
    which raises when generation was blocked.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ""
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    if not parts:
        return ""
    return str(getattr(parts[0], "text", "") or "").strip()


def extract_finish_reason(response: Any) -> str:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ""
    reason = getattr(candidates[0], "finish_reason", None)
    if reason is None:
        return ""
    # proto enums expose .name; plain ints and strings fall through to str()
    return str(getattr(reason, "name", reason)).upper()
