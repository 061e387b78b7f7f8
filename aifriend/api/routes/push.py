"""Push subscription and cron endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from aifriend.api.errors import require_text
from aifriend.api.models import PushSubscriptionRequest
from aifriend.push.service import CronService
from aifriend.push.store import PushSubscriptionRepository

router = APIRouter(prefix="/api", tags=["push"])


def get_subscription_repository() -> PushSubscriptionRepository:
    return PushSubscriptionRepository()


def get_cron_service() -> CronService:
    return CronService()


@router.post("/push")
def subscribe(
    request: PushSubscriptionRequest,
    repository: PushSubscriptionRepository = Depends(get_subscription_repository),
) -> dict[str, bool]:
    """Store a browser push subscription; re-subscribing overwrites."""
    require_text(request.endpoint, "endpoint")
    repository.save(request.model_dump(exclude_none=True))
    return {"success": True}


@router.api_route("/cron", methods=["GET", "POST"])
def cron(
    test: bool = Query(False, description="Bypass the active-hours and random gates"),
    service: CronService = Depends(get_cron_service),
) -> dict[str, Any]:
    """
    Hourly job: maybe send the friend's proactive message to every subscriber.

    Returns ``{"skipped": reason}`` or the per-subscription delivery results.
    """
    return service.run(test=test)
