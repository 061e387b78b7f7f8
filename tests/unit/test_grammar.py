"""Unit tests for the grammar review pipeline"""

from __future__ import annotations

import json

import pytest

from aifriend.coaching.grammar import (
    GrammarReviewer,
    build_grammar_review,
    diff_word_edits,
    normalize_feedback_points,
    normalize_edits,
)
from aifriend.coaching.reconciliation import apply_grammar_edits_to_text
from aifriend.coaching.types import Edit
from aifriend.llm.gemini import GeminiAPIError
from aifriend.observability.telemetry import get_counters

SOURCE = "I has two apple"

GOOD_REVIEW = {
    "hasErrors": True,
    "correctedText": "I have two apples",
    "edits": [
        {"wrong": "has", "right": "have", "reason": "Subject-verb agreement"},
        {"wrong": "apple", "right": "apples", "reason": ""},
    ],
    "feedback": "Two small fixes.",
}


class TestNormalization:
    def test_minor_and_malformed_edits_dropped(self):
        edits = normalize_edits(
            [
                {"wrong": "i", "right": "I"},
                {"wrong": "home", "right": "home."},
                {"wrong": "  has ", "right": " have "},
                {"wrong": 3, "right": "x"},
                "not a dict",
                {"wrong": "", "right": "x"},
            ]
        )
        assert edits == [Edit(wrong="has", right="have")]

    def test_non_list_edits(self):
        assert normalize_edits(None) == []
        assert normalize_edits({"wrong": "a"}) == []

    def test_feedback_points_derived_from_edits(self):
        edits = [Edit(wrong="has", right="have", reason="Agreement"), Edit(wrong="a", right="b")]
        points = normalize_feedback_points([], edits)
        assert [(p.part, p.issue, p.fix) for p in points] == [
            ("has", "Agreement", "have"),
            ("a", "Needs correction.", "b"),
        ]

    def test_feedback_points_capped(self):
        raw = [{"part": f"p{i}", "issue": "x", "fix": "y"} for i in range(9)]
        assert len(normalize_feedback_points(raw, [])) == 6

    def test_feedback_point_needs_issue_or_fix(self):
        assert normalize_feedback_points([{"part": "p"}], []) == []


class TestBuildGrammarReview:
    def test_full_review(self):
        review = build_grammar_review(SOURCE, GOOD_REVIEW)
        assert review.has_errors
        assert review.corrected_text == "I have two apples"
        assert len(review.edits) == 2
        assert len(review.feedback_points) == 2
        assert review.feedback == "Two small fixes."
        # the rewrite would only repeat the corrected text
        assert review.natural_rewrite == ""

    def test_corrected_text_repaired_from_edits(self):
        review = build_grammar_review(SOURCE, {**GOOD_REVIEW, "correctedText": "I have two apple"})
        assert review.corrected_text == "I have two apples"

    def test_only_minor_edits_means_no_errors(self):
        review = build_grammar_review(
            "i went home", {"hasErrors": True, "edits": [{"wrong": "i", "right": "I"}]}
        )
        assert not review.has_errors
        assert review.corrected_text == "i went home"
        assert review.edits == []

    def test_natural_alternative_cleaned_and_filtered(self):
        same = build_grammar_review("I went home.", {"naturalAlternative": "i went home"})
        assert same.natural_alternative == ""

        different = build_grammar_review(
            "I went home.",
            {
                "naturalAlternative": "I mean, I headed home.",
                "naturalReason": "More casual",
            },
        )
        assert different.natural_alternative == "I headed home."
        assert different.natural_reason == "More casual"

    def test_empty_payload_is_unchanged_review(self):
        review = build_grammar_review(SOURCE, {})
        assert not review.has_errors
        assert review.corrected_text == SOURCE
        assert review.feedback == "Looks good overall."


class TestDiffWordEdits:
    def test_replacements(self):
        edits = diff_word_edits(SOURCE, "I have two apples")
        assert [(e["wrong"], e["right"]) for e in edits] == [("has", "have"), ("apple", "apples")]

    @pytest.mark.parametrize(
        ("source", "corrected"),
        [
            ("I go school", "I go to school"),
            ("I am am happy", "I am happy"),
            ("went home", "I went home"),
        ],
    )
    def test_edits_reproduce_correction(self, source, corrected):
        edits = diff_word_edits(source, corrected)
        assert edits
        assert apply_grammar_edits_to_text(source, edits) == corrected

    def test_identical_has_no_edits(self):
        assert diff_word_edits("Hello there", "Hello there") == []


class TestGrammarReviewer:
    def test_primary_json(self, scripted_llm):
        llm = scripted_llm(json.dumps(GOOD_REVIEW))
        review = GrammarReviewer(call_model=llm).review(f"  {SOURCE}  ")
        assert review.corrected_text == "I have two apples"
        assert SOURCE in llm.prompts[0]
        assert llm.calls[0][1]["response_mime_type"] == "application/json"
        assert get_counters()["coaching.grammar.stage.primary"] == 1

    def test_strict_retry_after_malformed_json(self, scripted_llm):
        llm = scripted_llm("Sorry, I can't do JSON", json.dumps(GOOD_REVIEW))
        review = GrammarReviewer(call_model=llm).review(SOURCE)
        assert review.has_errors
        assert len(llm.calls) == 2
        assert get_counters()["coaching.grammar.stage.retry_strict"] == 1

    def test_plaintext_tier_uses_word_diff(self, scripted_llm):
        llm = scripted_llm("nope", "[1, 2]", '"I have two apples"')
        review = GrammarReviewer(call_model=llm).review(SOURCE)
        assert review.has_errors
        assert review.corrected_text == "I have two apples"
        assert [e.right for e in review.edits] == ["have", "apples"]
        assert llm.calls[2][1]["response_mime_type"] is None

    def test_everything_malformed_returns_unchanged(self, scripted_llm):
        llm = scripted_llm("nope", "nope", "")
        review = GrammarReviewer(call_model=llm).review(SOURCE)
        assert not review.has_errors
        assert review.corrected_text == SOURCE
        assert get_counters()["coaching.grammar.stage.fallback_local"] == 1

    def test_upstream_error_propagates(self, scripted_llm):
        llm = scripted_llm(GeminiAPIError("Quota exceeded", 429))
        with pytest.raises(GeminiAPIError):
            GrammarReviewer(call_model=llm).review(SOURCE)
