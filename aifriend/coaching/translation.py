"""Conversational translation of chat replies (English -> target language)."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from aifriend.config import (
    DEFAULT_TRANSLATION_TARGET,
    TRANSLATE_GENERATION_CONFIG,
    TRANSLATION_EMPTY_FALLBACK,
)
from aifriend.llm.prompts import get_translate_prompt
from aifriend.observability.telemetry import counter


def _call_llm(prompt: str, **kwargs: Any) -> str:
    from aifriend.llm.retry import call_llm

    return call_llm(prompt, **kwargs)


def translate_text(
    text: str,
    target_lang: str | None = None,
    model: str | None = None,
    call_model: Callable[..., str] | None = None,
) -> str:
    """
    Translate ``text`` into ``target_lang`` (Korean by default).

    An empty model reply yields a fixed "translation failed" notice rather
    than an empty string. Upstream errors propagate.
    """
    target = (target_lang or "").strip() or DEFAULT_TRANSLATION_TARGET
    translation = (call_model or _call_llm)(
        get_translate_prompt(text.strip(), target),
        model=model,
        generation_config=TRANSLATE_GENERATION_CONFIG,
        counter_prefix="translate",
    )
    if not translation:
        counter("coaching.translate.empty")
        return TRANSLATION_EMPTY_FALLBACK
    return translation
