"""
Long-term memory summary maintenance.

Keeps a short bullet list of durable facts about the user, updated from the
recent chat. The model is asked for JSON; truncated or prose replies are
salvaged, then a plaintext prompt is tried. Whatever comes back is forced
into at most 12 "- " bullets within 1400 characters, with truncated trailing
bullets ("- Enjo") removed.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from aifriend.chat.history import normalize_chat_history, to_transcript
from aifriend.coaching.fallback import FallbackStage, Tier, run_tiers
from aifriend.config import (
    MEMORY_GENERATION_CONFIG,
    MEMORY_HISTORY_LIMIT,
    MEMORY_SUMMARY_INPUT_MAX_CHARS,
    MEMORY_SUMMARY_MAX_LINES,
    MEMORY_SUMMARY_OUTPUT_MAX_CHARS,
)
from aifriend.llm.parsing import parse_json_object
from aifriend.llm.prompts import get_memory_summary_plaintext_prompt, get_memory_summary_prompt
from aifriend.memory.profile import MemoryProfile
from aifriend.observability.logging import get_logger
from aifriend.observability.telemetry import log_event

logger = get_logger(__name__)

_BULLET_PREFIX = re.compile(r"^[•*-]\s*")
_BULLET_LINE = re.compile(r"^[-•*]\s+")
_SUMMARY_KEY = re.compile(r'"memorySummary"\s*:\s*"', re.IGNORECASE)
_JSON_TAIL = re.compile(r'"\s*[,}]\s*$', re.DOTALL)
_SHORT_WORD = re.compile(r"^[A-Za-z]+$")
_LAST_PARTIAL_WORD = re.compile(r"\s+\S*$")


def _call_llm(prompt: str, **kwargs: Any) -> str:
    from aifriend.llm.retry import call_llm

    return call_llm(prompt, **kwargs)


def is_likely_dangling_bullet(line: str) -> bool:
    """Detect a bullet cut off mid-generation ("-", "- Currently", "- Enjo")."""
    raw = str(line or "").strip()
    if not raw:
        return True
    content = re.sub(r"^-\s*", "", raw).strip()
    if not content:
        return True
    if len(content) <= 4:
        return True
    return bool(_SHORT_WORD.match(content)) and len(content) < 12


def remove_dangling_trailing_bullets(lines: Iterable[str]) -> list[str]:
    kept = list(lines)
    while kept and is_likely_dangling_bullet(kept[-1]):
        kept.pop()
    return kept


def clip_bullet_lines(lines: list[str], max_lines: int, max_chars: int) -> str:
    """
    Keep whole bullets while they fit in ``max_chars`` (newlines included).

    If not even the first bullet fits, it is cut at a word boundary rather
    than mid-word.
    """
    limited = lines[:max_lines]
    kept: list[str] = []
    used = 0
    for line in limited:
        candidate = str(line or "").strip()
        if not candidate:
            continue
        cost = len(candidate) + (1 if kept else 0)
        if used + cost > max_chars:
            break
        kept.append(candidate)
        used += cost

    if not kept and limited:
        hard = str(limited[0] or "").strip()[: max(0, max_chars)]
        soft = _LAST_PARTIAL_WORD.sub("", hard).strip()
        return (soft or hard).strip()

    return "\n".join(kept).strip()


def sanitize_memory_summary(value: Any, fallback: str = "") -> str:
    """Normalize model output into capped "- " bullets; ``fallback`` when nothing is left."""
    text = str(value or "").strip()
    if not text:
        return str(fallback or "").strip()

    lines = []
    for line in text.split("\n"):
        line = line.strip()
        if not line:
            continue
        lines.append(line if line.startswith("- ") else f"- {_BULLET_PREFIX.sub('', line)}")

    clipped = clip_bullet_lines(
        remove_dangling_trailing_bullets(lines),
        max_lines=MEMORY_SUMMARY_MAX_LINES,
        max_chars=MEMORY_SUMMARY_OUTPUT_MAX_CHARS,
    )
    clipped_lines = [line.strip() for line in clipped.split("\n") if line.strip()]
    cleaned = "\n".join(remove_dangling_trailing_bullets(clipped_lines)).strip()
    return cleaned or str(fallback or "").strip()


def extract_memory_summary_text(raw: str) -> str:
    """
    Recover summary text from a reply that is not valid JSON.

    Handles plain bullets, truncated JSON such as
    ``{"memorySummary":"- Likes jazz\\n- Studies`` and bullets wrapped in
    prose or code fences.
    """
    text = str(raw or "").strip()
    if not text:
        return ""
    if text.startswith("- "):
        return text

    match = _SUMMARY_KEY.search(text)
    if match:
        value = _JSON_TAIL.sub("", text[match.end() :])
        value = value.replace("\\n", "\n").replace('\\"', '"').replace("\\\\", "\\").strip()
        if value:
            return value

    bullets = [line.strip() for line in text.split("\n") if _BULLET_LINE.match(line.strip())]
    if bullets:
        return "\n".join(bullets)
    return text


@dataclass
class SummaryDraft:
    summary: str
    profile: MemoryProfile | None = None


@dataclass
class MemorySummaryResult:
    memory_summary: str
    memory_profile: MemoryProfile = field(default_factory=MemoryProfile)
    changed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "memorySummary": self.memory_summary,
            "memoryProfile": self.memory_profile.to_dict(),
            "changed": self.changed,
        }


class MemorySummarizer:
    """
    Updates the memory summary and profile from recent chat turns.

    Args:
        call_model: ``(prompt, **kwargs) -> str``; defaults to the shared
            retrying Gemini call
    """

    def __init__(self, call_model: Callable[..., str] | None = None):
        self._call_model = call_model or _call_llm

    def _ask(self, prompt: str, model: str | None, *, json_mode: bool) -> str:
        return self._call_model(
            prompt,
            model=model,
            generation_config=MEMORY_GENERATION_CONFIG,
            response_mime_type="application/json" if json_mode else None,
            counter_prefix="memory",
        )

    def summarize(
        self,
        current_summary: str = "",
        history: Any = None,
        current_profile: Any = None,
        model: str | None = None,
    ) -> MemorySummaryResult:
        """
        Merge useful facts from ``history`` into the summary and profile.

        With no usable history the inputs come back unchanged without a
        model call. Upstream errors propagate.
        """
        safe_summary = str(current_summary or "").strip()[:MEMORY_SUMMARY_INPUT_MAX_CHARS]
        profile = MemoryProfile.from_any(current_profile)
        turns = normalize_chat_history(history, MEMORY_HISTORY_LIMIT)
        if not turns:
            return MemorySummaryResult(memory_summary=safe_summary, memory_profile=profile)

        history_text = to_transcript(turns)
        raw_replies: list[str] = []

        def primary() -> SummaryDraft:
            raw = self._ask(
                get_memory_summary_prompt(
                    current_summary=safe_summary,
                    current_profile="" if profile.is_empty() else profile.to_prompt_json(),
                    history=history_text,
                    max_chars=MEMORY_SUMMARY_OUTPUT_MAX_CHARS,
                ),
                model,
                json_mode=True,
            )
            raw_replies.append(raw)
            parsed = parse_json_object(raw)
            if not parsed.get("hasNewMemory") and safe_summary:
                summary = safe_summary
            else:
                summary = sanitize_memory_summary(parsed.get("memorySummary"), safe_summary)
            raw_profile = parsed.get("memoryProfile")
            if not isinstance(raw_profile, dict):
                return SummaryDraft(summary=summary)
            return SummaryDraft(summary=summary, profile=MemoryProfile.from_any(raw_profile))

        def salvage() -> SummaryDraft:
            # model variants return partial JSON or bare bullets despite JSON mode
            summary = sanitize_memory_summary(
                extract_memory_summary_text(raw_replies[-1] if raw_replies else ""), ""
            )
            if not summary:
                raise ValueError("Nothing to salvage from memory reply")
            return SummaryDraft(summary=summary)

        def plaintext() -> SummaryDraft:
            raw = self._ask(
                get_memory_summary_plaintext_prompt(
                    current_summary=safe_summary,
                    history=history_text,
                    max_chars=MEMORY_SUMMARY_OUTPUT_MAX_CHARS,
                ),
                model,
                json_mode=False,
            )
            return SummaryDraft(summary=sanitize_memory_summary(raw, safe_summary))

        outcome = run_tiers(
            "memory",
            [
                Tier(FallbackStage.PRIMARY, primary),
                Tier(FallbackStage.SALVAGE, salvage),
                Tier(FallbackStage.RETRY_PLAINTEXT, plaintext),
            ],
            accept=lambda draft: draft is not None,
            fallback=lambda: SummaryDraft(summary=safe_summary),
        )

        draft = outcome.value
        next_summary = draft.summary or safe_summary
        next_profile = (profile.merge(draft.profile) if draft.profile else profile).rebalance()
        changed = next_summary != safe_summary or next_profile != profile
        log_event(
            "memory.summary.updated",
            stage=outcome.stage.value,
            changed=changed,
            lines=len(next_summary.splitlines()),
        )
        return MemorySummaryResult(
            memory_summary=next_summary, memory_profile=next_profile, changed=changed
        )
