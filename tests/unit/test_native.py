"""Unit tests for the native-alternatives pipeline"""

from __future__ import annotations

import json

from aifriend.coaching.native import (
    DEFAULT_FALLBACK_SENTENCE,
    NativeAlternativesGenerator,
    build_fallback_native_alternatives,
    is_weak_native_alternatives_result,
    normalize_native_alternatives,
    parse_plaintext_alternatives,
    parse_salvage_alternatives,
)
from aifriend.coaching.text import contains_hangul, normalize_for_comparison
from aifriend.coaching.types import NativeAlternative
from aifriend.llm.gemini import GeminiAPIError
from aifriend.observability.telemetry import get_counters

SOURCE = "I very like coffee"

THREE = {
    "alternatives": [
        {"text": "I really like coffee.", "tone": "Neutral", "nuance": "Everyday"},
        {"text": "I'm a big coffee fan.", "tone": "Casual", "nuance": "Friendly"},
        {"text": "I love coffee.", "tone": "Warm", "nuance": "Strong liking"},
    ]
}


def _alts(*texts):
    return [NativeAlternative(text=text) for text in texts]


class TestNormalizeNativeAlternatives:
    def test_dedupes_cleans_and_caps(self):
        items = [
            {"text": '"I love coffee."'},
            {"text": "i love coffee"},
            {"text": "Same as original"},
            {"text": 5},
            "junk",
            {"text": "I really like coffee", "tone": " Casual "},
            {"text": "Coffee is my thing"},
            {"text": "One too many"},
        ]
        result = normalize_native_alternatives(items)
        assert [item.text for item in result] == [
            "I love coffee.",
            "I really like coffee",
            "Coffee is my thing",
        ]
        assert result[0].tone == "Natural"
        assert result[0].nuance == "Natural phrasing"
        assert result[1].tone == "Casual"

    def test_never_fewer_than_unique_count(self):
        items = [{"text": "A b"}, {"text": "a B."}, {"text": "C d"}]
        assert len(normalize_native_alternatives(items)) == 2

    def test_none(self):
        assert normalize_native_alternatives(None) == []


class TestWeakResult:
    def test_too_few(self):
        assert is_weak_native_alternatives_result(SOURCE, _alts("A", "B"))

    def test_echoes_source(self):
        assert is_weak_native_alternatives_result(SOURCE, _alts("A", "B", "i very like coffee."))

    def test_hangul_leak_for_mixed_input(self):
        alts = _alts("I want coffee", "커피 please", "Coffee time")
        assert is_weak_native_alternatives_result("I want 커피", alts)
        assert is_weak_native_alternatives_result("I want coffee badly", alts, mixed=True)
        assert not is_weak_native_alternatives_result("I want coffee badly", alts)

    def test_good(self):
        assert not is_weak_native_alternatives_result(SOURCE, _alts("A", "B", "C"))


class TestLocalFallback:
    def test_builds_three_from_source(self):
        texts = [item.text for item in build_fallback_native_alternatives(SOURCE)]
        assert texts == [SOURCE, f"I feel like {SOURCE}", f"I think {SOURCE}"]

    def test_strips_hangul(self):
        texts = [item.text for item in build_fallback_native_alternatives("나는 coffee 좋아")]
        assert texts[0] == "coffee"
        assert not any(contains_hangul(text) for text in texts)

    def test_hangul_only_uses_default_sentence(self):
        alts = build_fallback_native_alternatives("안녕하세요")
        assert alts[0].text == DEFAULT_FALLBACK_SENTENCE


def test_parse_plaintext_alternatives():
    raw = "1) I love coffee || Warm || Strong\n\n2) Coffee rocks\n3) I dig coffee || Slangy"
    items = parse_plaintext_alternatives(raw)
    assert items[0] == {"text": "I love coffee", "tone": "Warm", "nuance": "Strong"}
    assert items[1]["tone"] == "Natural"
    assert items[2]["nuance"] == "Natural phrasing"


def test_parse_salvage_alternatives():
    items = parse_salvage_alternatives("1. I love coffee\n2) Coffee rocks\nI dig coffee")
    assert [item["text"] for item in items] == ["I love coffee", "Coffee rocks", "I dig coffee"]


class TestGenerator:
    def test_primary_success(self, scripted_llm):
        llm = scripted_llm(json.dumps(THREE))
        result = NativeAlternativesGenerator(call_model=llm).generate(SOURCE)
        assert len(result.alternatives) == 3
        assert result.error == ""
        assert "error" not in result.to_dict()
        assert len(llm.calls) == 1

    def test_weak_primary_falls_to_strict(self, scripted_llm):
        weak = {"alternatives": THREE["alternatives"][:2]}
        llm = scripted_llm(json.dumps(weak), json.dumps(THREE))
        result = NativeAlternativesGenerator(call_model=llm).generate(SOURCE)
        assert len(result.alternatives) == 3
        assert get_counters()["coaching.native.stage.retry_strict"] == 1

    def test_plaintext_tier(self, scripted_llm):
        plaintext = "1) I really like coffee || Neutral || a\n2) I love coffee\n3) Coffee is great"
        llm = scripted_llm("bad", "bad", plaintext)
        result = NativeAlternativesGenerator(call_model=llm).generate(SOURCE)
        assert [item.text for item in result.alternatives][0] == "I really like coffee"
        assert result.error == ""

    def test_all_tiers_weak_uses_local_fallback(self, scripted_llm):
        llm = scripted_llm("bad", "bad", "", "")
        result = NativeAlternativesGenerator(call_model=llm).generate(SOURCE)
        assert result.error == "Insufficient alternatives"
        assert len(result.alternatives) == 3
        assert len(llm.calls) == 4

    def test_upstream_error_degrades_to_fallback(self, scripted_llm):
        llm = scripted_llm(GeminiAPIError("Quota exceeded for requests", 429))
        result = NativeAlternativesGenerator(call_model=llm).generate(SOURCE)
        assert result.error == "Gemini quota exceeded. Please try again later."
        assert result.alternatives[0].text == SOURCE

    def test_mixed_input_is_prepared_first(self, scripted_llm):
        alternatives = {
            "alternatives": [
                {"text": "I'd love a coffee."},
                {"text": "Coffee sounds great right now."},
                {"text": "I could really use a coffee."},
            ]
        }
        llm = scripted_llm("I want to drink coffee.", json.dumps(alternatives))
        result = NativeAlternativesGenerator(call_model=llm).generate("I want 커피 마시고 싶어")
        assert len(llm.calls) == 2
        assert "I want to drink coffee." in llm.prompts[1]
        assert not any(contains_hangul(item.text) for item in result.alternatives)

    def test_prepare_source_rejects_hangul_output(self, scripted_llm):
        llm = scripted_llm("커피 want")
        generator = NativeAlternativesGenerator(call_model=llm)
        assert generator.prepare_source("I want 커피") == "I want 커피"

    def test_prepare_source_skips_english(self, scripted_llm):
        llm = scripted_llm()
        assert NativeAlternativesGenerator(call_model=llm).prepare_source(SOURCE) == SOURCE
        assert llm.calls == []


def test_fallback_never_echoes_normalized_source_twice():
    texts = [normalize_for_comparison(a.text) for a in build_fallback_native_alternatives(SOURCE)]
    assert len(set(texts)) == 3
