"""
Helpers for keeping learner text and push endpoints out of logs.

Provides:
- redact(): Hash sensitive strings for correlation without exposure
- redact_text(): Short preview plus hash, for debugging chat text
- redact_endpoint(): Push service host plus hash of the full endpoint
"""

from __future__ import annotations

from hashlib import sha256
from urllib.parse import urlparse


def redact(value: str | None) -> str:
    """
    Return a stable hash representation of a sensitive string.
    """
    if not value:
        return "hash:missing"
    digest = sha256(value.encode("utf-8")).hexdigest()[:12]
    return f"hash:{digest}"


def redact_text(text: str | None, max_length: int = 24) -> str:
    """
    Partially redact learner text for logging while preserving debuggability.

    Example:
        "I has two apple and a banana" -> "I has two apple and a ba... (h:1a2b3c)"
    """
    if not text:
        return "(empty)"

    visible = text[:max_length] + "..." if len(text) > max_length else text
    digest = sha256(text.encode("utf-8")).hexdigest()[:6]
    return f"{visible} (h:{digest})"


def redact_endpoint(endpoint: str | None) -> str:
    """Keep only the push service host; the path identifies a device."""
    if not endpoint:
        return "(no endpoint)"
    host = urlparse(endpoint).netloc or "unknown-host"
    return f"{host}/{redact(endpoint)}"
