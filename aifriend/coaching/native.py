"""
Native-speaker alternatives pipeline.

Produces exactly three everyday rewrites of the learner's message. Messages
mixing Korean and English are first converted into one English sentence so
every tier works from the same intent.

Tiers:
    PRIMARY          JSON prompt (Hangul-aware wording for mixed input)
    RETRY_STRICT     terse JSON-only prompt
    RETRY_PLAINTEXT  "text || tone || nuance" lines
    SALVAGE          bare numbered lines from the raw message
    FALLBACK_LOCAL   deterministic rewrites built from the source

A result is weak when it has fewer than three distinct options, echoes the
source, or leaks Hangul for a mixed-language message. This feature never
fails the request: upstream errors also end in the local fallback.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from aifriend.coaching.fallback import FallbackStage, Tier, run_tiers
from aifriend.coaching.text import (
    clean_alternative_text,
    contains_hangul,
    is_minor_sentence_difference,
    normalize_for_comparison,
    strip_hangul,
)
from aifriend.coaching.types import NativeAlternative
from aifriend.config import NATIVE_ALTERNATIVES_COUNT, NATIVE_GENERATION_CONFIG
from aifriend.llm.gemini import GeminiAPIError, describe_upstream_error
from aifriend.llm.parsing import parse_json_object
from aifriend.llm.prompts import (
    get_native_json_prompt,
    get_native_plaintext_prompt,
    get_native_prepare_prompt,
    get_native_salvage_prompt,
    get_native_strict_prompt,
)
from aifriend.observability.logging import get_logger
from aifriend.observability.telemetry import counter, log_event
from aifriend.utils.redaction import redact

logger = get_logger(__name__)

DEFAULT_FALLBACK_SENTENCE = "Could you say that again?"
_SAME_AS_ORIGINAL = re.compile(r"^same as original$", re.IGNORECASE)
_PLAINTEXT_NUMBERING = re.compile(r"^\d+\)\s*")
_SALVAGE_NUMBERING = re.compile(r"^\d+[.)]\s*")


def _call_llm(prompt: str, **kwargs: Any) -> str:
    from aifriend.llm.retry import call_llm

    return call_llm(prompt, **kwargs)


def normalize_native_alternatives(items: Iterable[Any] | None) -> list[NativeAlternative]:
    """
    Clean, de-duplicate and cap model alternatives.

    Items without string text, empty after cleanup, or literally "same as
    original" are dropped; missing tone / nuance get defaults. At most three
    are returned, first occurrence of each normalized text wins.
    """
    deduped: list[NativeAlternative] = []
    seen: set[str] = set()
    for item in items or []:
        if not isinstance(item, dict) or not isinstance(item.get("text"), str):
            continue
        text = clean_alternative_text(item["text"])
        if not text or _SAME_AS_ORIGINAL.match(text):
            continue
        key = normalize_for_comparison(text)
        if not key or key in seen:
            continue
        seen.add(key)

        tone, nuance = item.get("tone"), item.get("nuance")
        deduped.append(
            NativeAlternative(
                text=text,
                tone=tone.strip() if isinstance(tone, str) and tone.strip() else "Natural",
                nuance=(
                    nuance.strip()
                    if isinstance(nuance, str) and nuance.strip()
                    else "Natural phrasing"
                ),
            )
        )
        if len(deduped) == NATIVE_ALTERNATIVES_COUNT:
            break
    return deduped


def is_weak_native_alternatives_result(
    source_text: str, alternatives: list[NativeAlternative], *, mixed: bool | None = None
) -> bool:
    """
    True when the options are unusable: fewer than three distinct, one echoes
    the source, or Hangul leaks into the options of a mixed-language message.
    ``mixed`` defaults to whether ``source_text`` itself contains Hangul.
    """
    if len(alternatives) < NATIVE_ALTERNATIVES_COUNT:
        return True
    norms = [normalize_for_comparison(item.text) for item in alternatives]
    if len(set(norms)) < NATIVE_ALTERNATIVES_COUNT:
        return True
    if normalize_for_comparison(source_text) in norms:
        return True
    if mixed is None:
        mixed = contains_hangul(source_text)
    if mixed and any(contains_hangul(item.text) for item in alternatives):
        return True
    return False


def build_fallback_native_alternatives(text: str) -> list[NativeAlternative]:
    """Deterministic alternatives from the source itself, Hangul removed."""
    compact = text.strip()
    base = strip_hangul(compact) if contains_hangul(compact) else compact
    base = base or DEFAULT_FALLBACK_SENTENCE
    return [
        NativeAlternative(text=base, tone="Neutral", nuance="Closest available rewrite"),
        NativeAlternative(
            text=f"I feel like {base}", tone="Casual", nuance="Casual fallback wording"
        ),
        NativeAlternative(text=f"I think {base}", tone="Direct", nuance="Direct fallback wording"),
    ]


def parse_plaintext_alternatives(raw: str) -> list[dict[str, str]]:
    """Parse ``1) text || tone || nuance`` lines."""
    items = []
    for line in raw.splitlines():
        line = _PLAINTEXT_NUMBERING.sub("", line.strip())
        if not line:
            continue
        fields = [field.strip() for field in line.split("||")]
        items.append(
            {
                "text": fields[0],
                "tone": fields[1] if len(fields) > 1 else "Natural",
                "nuance": fields[2] if len(fields) > 2 else "Natural phrasing",
            }
        )
    return items


def parse_salvage_alternatives(raw: str) -> list[dict[str, str]]:
    """Parse bare numbered lines (``1.`` or ``1)``)."""
    items = []
    for line in raw.splitlines():
        line = line.strip()
        if not line:
            continue
        items.append(
            {
                "text": _SALVAGE_NUMBERING.sub("", line),
                "tone": "Natural",
                "nuance": "Everyday phrasing",
            }
        )
    return items


@dataclass
class NativeAlternativesResult:
    alternatives: list[NativeAlternative]
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"alternatives": [item.to_dict() for item in self.alternatives]}
        if self.error:
            payload["error"] = self.error
        return payload


class NativeAlternativesGenerator:
    """
    Generates three native-sounding rewrites of a learner message.

    Args:
        call_model: ``(prompt, **kwargs) -> str``; defaults to the shared
            retrying Gemini call
    """

    def __init__(self, call_model: Callable[..., str] | None = None):
        self._call_model = call_model or _call_llm

    def _ask(self, prompt: str, model: str | None, *, json_mode: bool = False) -> str:
        return self._call_model(
            prompt,
            model=model,
            generation_config=NATIVE_GENERATION_CONFIG,
            response_mime_type="application/json" if json_mode else None,
            counter_prefix="native",
        )

    def prepare_source(self, text: str, model: str | None = None) -> str:
        """
        Convert a mixed Korean+English message into one English sentence.

        Returns the input unchanged when it has no Hangul, or when the
        conversion fails, still contains Hangul, or says nothing new.
        """
        raw = text.strip()
        if not raw or not contains_hangul(raw):
            return raw
        try:
            prepared = clean_alternative_text(self._ask(get_native_prepare_prompt(raw), model))
        except GeminiAPIError as e:
            logger.warning("Native source preparation failed: %s", e)
            return raw
        if not prepared or contains_hangul(prepared) or is_minor_sentence_difference(raw, prepared):
            return raw
        return prepared

    def _from_json(self, prompt: str, model: str | None) -> list[NativeAlternative]:
        parsed = parse_json_object(self._ask(prompt, model, json_mode=True))
        return normalize_native_alternatives(parsed.get("alternatives"))

    def generate(self, text: str, model: str | None = None) -> NativeAlternativesResult:
        """
        Return three alternatives for ``text``; never raises for upstream errors.

        Raises:
            MissingAPIKeyError: No server key configured
        """
        source_input = text.strip()
        mixed = contains_hangul(source_input)
        prepared = self.prepare_source(source_input, model) if mixed else source_input
        source = prepared or source_input

        tiers = [
            Tier(
                FallbackStage.PRIMARY,
                lambda: self._from_json(
                    get_native_json_prompt(source_input, source, mixed=mixed), model
                ),
            ),
            Tier(
                FallbackStage.RETRY_STRICT,
                lambda: self._from_json(get_native_strict_prompt(source), model),
            ),
            Tier(
                FallbackStage.RETRY_PLAINTEXT,
                lambda: normalize_native_alternatives(
                    parse_plaintext_alternatives(
                        self._ask(get_native_plaintext_prompt(source, mixed=mixed), model)
                    )
                ),
            ),
            Tier(
                FallbackStage.SALVAGE,
                lambda: normalize_native_alternatives(
                    parse_salvage_alternatives(
                        self._ask(get_native_salvage_prompt(source_input), model)
                    )
                ),
            ),
        ]

        try:
            outcome = run_tiers(
                "native",
                tiers,
                accept=lambda alternatives: not is_weak_native_alternatives_result(
                    source, alternatives, mixed=mixed
                ),
                fallback=lambda: build_fallback_native_alternatives(source),
            )
        except GeminiAPIError as e:
            counter("coaching.native.upstream_error")
            logger.warning("Native alternatives upstream failure, using fallback: %s", e)
            return NativeAlternativesResult(
                alternatives=build_fallback_native_alternatives(source),
                error=describe_upstream_error(e),
            )

        log_event(
            "coaching.native.generated",
            text=redact(source_input),
            mixed=mixed,
            stage=outcome.stage.value,
        )
        error = "Insufficient alternatives" if outcome.used_fallback else ""
        return NativeAlternativesResult(alternatives=outcome.value, error=error)
