"""Health check and debug endpoints for the AI Friend API.

- /health - Service health including Gemini and VAPID key presence
- /debug/stats - In-memory counters and latencies (no PII)
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from aifriend.config import APP_VERSION
from aifriend.infrastructure.settings import (
    ENV,
    get_server_api_key,
    get_vapid_private_key,
    get_vapid_public_key,
)

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint.

    Reports credential presence only; no upstream call is made.
    """
    has_api_key = bool(get_server_api_key())
    has_vapid = bool(get_vapid_public_key()) and bool(get_vapid_private_key())

    return {
        "status": "healthy",
        "service": "AI Friend API",
        "version": APP_VERSION,
        "environment": ENV,
        "timestamp": datetime.now(UTC).isoformat(),
        "llm": {"ready": has_api_key},
        "push": {"ready": has_vapid},
    }


@router.get("/debug/stats")
def debug_stats() -> dict[str, Any]:
    """Aggregate counters for debugging. Contains no PII."""
    from aifriend.observability.telemetry import get_counters, get_latency_summary
    from aifriend.push.store import PushSubscriptionRepository

    return {
        "subscriptions": len(PushSubscriptionRepository().list_keys()),
        "counters": get_counters(),
        "latency": get_latency_summary(),
        "timestamp": datetime.now(UTC).isoformat(),
    }
