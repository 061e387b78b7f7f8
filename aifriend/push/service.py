"""
Proactive push notifications.

An hourly cron hits ``/api/cron``. Between 09:00 and 22:00 KST, roughly one
run in six generates a short casual Korean message from the "friend" and
sends it to every stored subscription (about two messages a day). Endpoints
the push service reports as gone (404/410) are pruned.
"""

from __future__ import annotations

import json
import random
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

import requests
from pywebpush import WebPushException, webpush

from aifriend.config import (
    CRON_ACTIVE_END_HOUR_KST,
    CRON_ACTIVE_START_HOUR_KST,
    CRON_SEND_PROBABILITY,
    PUSH_NOTIFICATION_TITLE,
    VAPID_MAILTO,
)
from aifriend.infrastructure.settings import get_vapid_private_key
from aifriend.llm.prompts import get_proactive_message_prompt
from aifriend.observability.logging import get_logger
from aifriend.observability.telemetry import counter, log_event
from aifriend.push.store import SUBSCRIPTION_KEY_PREFIX, PushSubscriptionRepository
from aifriend.utils.redaction import redact_endpoint

logger = get_logger(__name__)

KST_OFFSET_HOURS = 9
GONE_STATUS_CODES = frozenset({404, 410})

SKIP_OUTSIDE_HOURS = "Outside active hours (09:00 - 22:00)"
SKIP_RANDOM = "Random skip"


class PushConfigurationError(RuntimeError):
    """VAPID keys are not configured, so nothing can be sent."""

    status_code = 500


class EmptyProactiveMessageError(RuntimeError):
    status_code = 502

    def __init__(self, message: str = "Gemini returned no proactive message"):
        super().__init__(message)


def _call_llm(prompt: str, **kwargs: Any) -> str:
    from aifriend.llm.retry import call_llm

    return call_llm(prompt, **kwargs)


def hour_in_kst(now: datetime) -> int:
    """Hour of day in Korea (UTC+9, no DST); naive datetimes are taken as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return (now.astimezone(UTC).hour + KST_OFFSET_HOURS) % 24


def cron_skip_reason(
    now: datetime, rng: random.Random | None = None, test: bool = False
) -> str | None:
    """
    Decide whether this cron run should stay quiet.

    Returns:
        The skip reason, or None when a message should be sent. Test runs
        never skip.
    """
    if test:
        return None
    hour = hour_in_kst(now)
    if hour < CRON_ACTIVE_START_HOUR_KST or hour >= CRON_ACTIVE_END_HOUR_KST:
        return SKIP_OUTSIDE_HOURS
    if (rng or random).random() > CRON_SEND_PROBABILITY:
        return SKIP_RANDOM
    return None


def generate_proactive_message(
    call_model: Callable[..., str] | None = None, model: str | None = None
) -> str:
    """One short casual Korean opener from the friend.

    Raises:
        EmptyProactiveMessageError: The model returned nothing
        GeminiAPIError: Upstream failure
    """
    message = (call_model or _call_llm)(
        get_proactive_message_prompt(), model=model, counter_prefix="proactive"
    )
    if not message:
        raise EmptyProactiveMessageError()
    return message


@dataclass
class DeliveryResult:
    key: str
    status: str
    error: str | None = None
    code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {name: value for name, value in asdict(self).items() if value is not None}


class PushNotifier:
    """
    Sends one notification to every stored subscription.

    Args:
        repository: Subscription storage
        send: pywebpush-compatible sender (``webpush`` by default)
    """

    def __init__(
        self,
        repository: PushSubscriptionRepository | None = None,
        send: Callable[..., Any] | None = None,
    ):
        self.repository = repository or PushSubscriptionRepository()
        self._send = send or webpush

    def send_to_all(self, body: str) -> list[DeliveryResult]:
        """
        Deliver ``{"title": "AI Friend", "body": body}`` to all subscriptions.

        Raises:
            PushConfigurationError: VAPID_PRIVATE_KEY is not set
        """
        private_key = get_vapid_private_key()
        if not private_key:
            raise PushConfigurationError("Missing VAPID_PRIVATE_KEY")

        payload = json.dumps({"title": PUSH_NOTIFICATION_TITLE, "body": body}, ensure_ascii=False)
        results: list[DeliveryResult] = []

        for key in self.repository.list_keys():
            subscription = self.repository.get(key)
            if subscription is None:
                continue
            try:
                self._send(
                    subscription_info=subscription,
                    data=payload,
                    vapid_private_key=private_key,
                    vapid_claims={"sub": VAPID_MAILTO},
                )
            except WebPushException as e:
                code = e.response.status_code if e.response is not None else None
                logger.warning(
                    "Push delivery failed for %s (status=%s): %s",
                    redact_endpoint(key.removeprefix(SUBSCRIPTION_KEY_PREFIX)),
                    code,
                    e,
                )
                if code in GONE_STATUS_CODES:
                    self.repository.remove(key)
                    counter("push.subscriptions.pruned")
                results.append(DeliveryResult(key=key, status="failed", error=str(e), code=code))
                continue
            except (requests.exceptions.RequestException, ValueError) as e:
                # unreachable endpoint or malformed stored keys
                logger.warning(
                    "Push delivery failed for %s: %s",
                    redact_endpoint(key.removeprefix(SUBSCRIPTION_KEY_PREFIX)),
                    e,
                )
                counter("push.failed")
                results.append(DeliveryResult(key=key, status="failed", error=str(e)))
                continue

            counter("push.delivered")
            results.append(DeliveryResult(key=key, status="success"))

        return results


class CronService:
    """The ``/api/cron`` job: gate, generate, fan out."""

    def __init__(
        self,
        notifier: PushNotifier | None = None,
        call_model: Callable[..., str] | None = None,
        rng: random.Random | None = None,
    ):
        self.notifier = notifier or PushNotifier()
        self._call_model = call_model
        self._rng = rng

    def run(self, now: datetime | None = None, test: bool = False) -> dict[str, Any]:
        now = now or datetime.now(UTC)
        reason = cron_skip_reason(now, self._rng, test=test)
        if reason:
            log_event("push.cron.skipped", reason=reason)
            return {"skipped": reason}

        message = generate_proactive_message(self._call_model)
        keys = self.notifier.repository.list_keys()
        logger.info("Found %d subscriptions", len(keys))
        results = self.notifier.send_to_all(message)

        log_event(
            "push.cron.sent",
            total=len(keys),
            delivered=sum(1 for result in results if result.status == "success"),
            test=test,
        )
        return {
            "success": True,
            "message": message,
            "totalSubscriptions": len(keys),
            "results": [result.to_dict() for result in results],
        }
