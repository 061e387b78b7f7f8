"""
Tiered fallback runner shared by the coaching pipelines.

Each feature describes an ordered list of attempts (primary prompt, stricter
JSON retry, plaintext retry, salvage) and a predicate that rejects weak
results. The runner walks the tiers until one produces an accepted result and
otherwise returns the feature's locally synthesized answer, so malformed model
output never reaches the client as an error.

Upstream errors (``GeminiAPIError``, ``MissingAPIKeyError``) are not absorbed
here: whether those degrade to a default payload or propagate as an HTTP
status is the feature's decision.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from aifriend.observability.logging import get_logger
from aifriend.observability.telemetry import counter, log_event

logger = get_logger(__name__)

T = TypeVar("T")


class FallbackStage(str, Enum):
    PRIMARY = "primary"
    RETRY_STRICT = "retry_strict"
    RETRY_PLAINTEXT = "retry_plaintext"
    SALVAGE = "salvage"
    FALLBACK_LOCAL = "fallback_local"


# Raised by tier attempts for unusable output; anything else propagates.
MALFORMED_OUTPUT_ERRORS = (json.JSONDecodeError, ValueError, TypeError, KeyError)


@dataclass(frozen=True)
class Tier(Generic[T]):
    stage: FallbackStage
    attempt: Callable[[], T]


@dataclass(frozen=True)
class TierOutcome(Generic[T]):
    value: T
    stage: FallbackStage
    reason: str = ""

    @property
    def used_fallback(self) -> bool:
        return self.stage is FallbackStage.FALLBACK_LOCAL


def run_tiers(
    feature: str,
    tiers: Sequence[Tier[T]],
    accept: Callable[[T], bool],
    fallback: Callable[[], T],
) -> TierOutcome[T]:
    """
    Run ``tiers`` in order and return the first accepted result.

    A tier is skipped when its attempt raises one of MALFORMED_OUTPUT_ERRORS
    or its result fails ``accept``. When every tier is skipped the value of
    ``fallback()`` is returned with stage FALLBACK_LOCAL.

    Side Effects:
        - Increments ``coaching.<feature>.stage.<stage>`` for the winning stage
        - Logs each rejected tier at warning level
    """
    reason = ""
    for tier in tiers:
        try:
            value = tier.attempt()
        except MALFORMED_OUTPUT_ERRORS as e:
            reason = f"{tier.stage.value}: {e.__class__.__name__}"
            logger.warning("%s tier %s unparseable: %s", feature, tier.stage.value, e)
            continue

        if accept(value):
            counter(f"coaching.{feature}.stage.{tier.stage.value}")
            if tier.stage is not FallbackStage.PRIMARY:
                log_event("coaching.stage_recovered", feature=feature, stage=tier.stage.value)
            return TierOutcome(value=value, stage=tier.stage, reason=reason)

        reason = f"{tier.stage.value}: weak result"
        logger.warning("%s tier %s returned a weak result", feature, tier.stage.value)

    counter(f"coaching.{feature}.stage.{FallbackStage.FALLBACK_LOCAL.value}")
    log_event("coaching.fallback_local", feature=feature, reason=reason)
    return TierOutcome(value=fallback(), stage=FallbackStage.FALLBACK_LOCAL, reason=reason)
