"""Unit tests for the tiered fallback runner"""

from __future__ import annotations

import json

import pytest

from aifriend.coaching.fallback import FallbackStage, Tier, run_tiers
from aifriend.llm.gemini import GeminiAPIError
from aifriend.observability.telemetry import get_counters


def _raise(exc):
    def attempt():
        raise exc

    return attempt


def test_primary_accepted():
    outcome = run_tiers(
        "demo",
        [Tier(FallbackStage.PRIMARY, lambda: "ok")],
        accept=bool,
        fallback=lambda: "local",
    )
    assert outcome.value == "ok"
    assert outcome.stage is FallbackStage.PRIMARY
    assert not outcome.used_fallback
    assert get_counters()["coaching.demo.stage.primary"] == 1


def test_malformed_and_weak_tiers_are_skipped():
    outcome = run_tiers(
        "demo",
        [
            Tier(FallbackStage.PRIMARY, _raise(json.JSONDecodeError("bad", "x", 0))),
            Tier(FallbackStage.RETRY_STRICT, lambda: ""),
            Tier(FallbackStage.RETRY_PLAINTEXT, lambda: "recovered"),
        ],
        accept=bool,
        fallback=lambda: "local",
    )
    assert outcome.value == "recovered"
    assert outcome.stage is FallbackStage.RETRY_PLAINTEXT
    assert outcome.reason == "retry_strict: weak result"


def test_all_tiers_fail_uses_local_fallback():
    outcome = run_tiers(
        "demo",
        [
            Tier(FallbackStage.PRIMARY, _raise(ValueError("empty"))),
            Tier(FallbackStage.SALVAGE, _raise(KeyError("text"))),
        ],
        accept=bool,
        fallback=lambda: "local",
    )
    assert outcome.value == "local"
    assert outcome.used_fallback
    assert get_counters()["coaching.demo.stage.fallback_local"] == 1


def test_upstream_errors_propagate():
    with pytest.raises(GeminiAPIError):
        run_tiers(
            "demo",
            [Tier(FallbackStage.PRIMARY, _raise(GeminiAPIError("quota", 429)))],
            accept=bool,
            fallback=lambda: "local",
        )
