"""Unit tests for translation"""

from __future__ import annotations

import pytest

from aifriend.coaching.translation import translate_text
from aifriend.config import TRANSLATION_EMPTY_FALLBACK
from aifriend.llm.gemini import GeminiAPIError


def test_defaults_to_korean(scripted_llm):
    llm = scripted_llm("안녕, 잘 지냈어?")
    assert translate_text(" Hey, how have you been? ", call_model=llm) == "안녕, 잘 지냈어?"
    assert "Korean" in llm.prompts[0]
    assert '"Hey, how have you been?"' in llm.prompts[0]
    assert llm.calls[0][1]["generation_config"]["temperature"] == 0.1


def test_custom_target(scripted_llm):
    llm = scripted_llm("Hola")
    translate_text("Hello", target_lang="Spanish", call_model=llm)
    assert "Spanish" in llm.prompts[0]


def test_empty_reply_uses_notice(scripted_llm):
    assert translate_text("Hello", call_model=scripted_llm("")) == TRANSLATION_EMPTY_FALLBACK


def test_upstream_error_propagates(scripted_llm):
    with pytest.raises(GeminiAPIError):
        translate_text("Hello", call_model=scripted_llm(GeminiAPIError("denied", 403)))
