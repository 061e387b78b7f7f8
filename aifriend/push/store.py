"""Web-push subscription storage.

Each subscription is stored under ``sub:<endpoint>`` and its key is added to
the ``subscriptions`` set, so re-subscribing the same endpoint overwrites
rather than duplicates.
"""

from __future__ import annotations

from typing import Any

from aifriend.config import PUSH_SUBSCRIPTIONS_SET
from aifriend.infrastructure.database import KeyValueStore
from aifriend.observability.logging import get_logger
from aifriend.observability.telemetry import counter
from aifriend.utils.redaction import redact_endpoint

logger = get_logger(__name__)

SUBSCRIPTION_KEY_PREFIX = "sub:"


def subscription_key(endpoint: str) -> str:
    return f"{SUBSCRIPTION_KEY_PREFIX}{endpoint}"


class PushSubscriptionRepository:
    def __init__(self, store: KeyValueStore | None = None):
        self.store = store or KeyValueStore()

    def save(self, subscription: dict[str, Any]) -> str:
        """
        Store a browser PushSubscription (``{endpoint, keys: {p256dh, auth}}``).

        Returns:
            The storage key

        Raises:
            ValueError: If the subscription has no endpoint
        """
        endpoint = str(subscription.get("endpoint") or "").strip()
        if not endpoint:
            raise ValueError("subscription endpoint is required")

        key = subscription_key(endpoint)
        self.store.set(key, subscription)
        if self.store.sadd(PUSH_SUBSCRIPTIONS_SET, key):
            counter("push.subscriptions.added")
            logger.info("Stored new push subscription %s", redact_endpoint(endpoint))
        return key

    def list_keys(self) -> list[str]:
        return self.store.smembers(PUSH_SUBSCRIPTIONS_SET)

    def get(self, key: str) -> dict[str, Any] | None:
        value = self.store.get(key)
        return value if isinstance(value, dict) else None

    def remove(self, key: str) -> None:
        self.store.srem(PUSH_SUBSCRIPTIONS_SET, key)
        self.store.delete(key)
        counter("push.subscriptions.removed")
