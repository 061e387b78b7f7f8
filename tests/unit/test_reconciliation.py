"""Unit tests for corrected-text reconciliation

Covers phrase matching, coverage checks, substitution and candidate scoring,
including the "I has two apple" scenario end to end.
"""

from __future__ import annotations

from aifriend.coaching.reconciliation import (
    apply_feedback_point_fixes,
    apply_grammar_edits_to_text,
    contains_phrase,
    corrected_text_covers_edits,
    corrected_text_covers_feedback_points,
    pick_best_corrected_text,
    score_candidate,
)
from aifriend.coaching.types import Edit, FeedbackPoint

SOURCE = "I has two apple"
EDITS = [{"wrong": "has", "right": "have"}, {"wrong": "apple", "right": "apples"}]


class TestContainsPhrase:
    def test_standalone_only(self):
        assert contains_phrase("two apple", "apple")
        assert not contains_phrase("two apples", "apple")
        assert not contains_phrase("pineapple", "apple")

    def test_case_insensitive(self):
        assert contains_phrase("I HAS two", "has")

    def test_punctuation_edges(self):
        assert contains_phrase("Wait, what?", "what?")
        assert contains_phrase("Hello, world", ", world")

    def test_empty_phrase(self):
        assert not contains_phrase("anything", "")


class TestCoverage:
    def test_covered_when_all_edits_applied(self):
        assert corrected_text_covers_edits(SOURCE, "I have two apples", EDITS)

    def test_not_covered_when_wrong_remains(self):
        assert not corrected_text_covers_edits(SOURCE, "I have two apple", EDITS)

    def test_edit_not_in_source_is_ignored(self):
        edits = [{"wrong": "banana", "right": "bananas"}]
        assert corrected_text_covers_edits(SOURCE, "I have two apples", edits)

    def test_empty_candidate_never_covers(self):
        assert not corrected_text_covers_edits(SOURCE, "   ", [])
        assert not corrected_text_covers_feedback_points(SOURCE, "", [])

    def test_fix_containing_old_phrase(self):
        edits = [{"wrong": "go", "right": "go to"}]
        assert corrected_text_covers_edits("I go school", "I go to school", edits)

    def test_accepts_model_objects(self):
        edits = [Edit(wrong="has", right="have"), Edit(wrong="apple", right="apples")]
        assert corrected_text_covers_edits(SOURCE, "I have two apples", edits)

    def test_feedback_points_skip_minor_fixes(self):
        points = [FeedbackPoint(part="i", issue="Capitalize", fix="I")]
        assert corrected_text_covers_feedback_points("i went", "i went home", points)


class TestApplyReplacements:
    def test_apply_edits(self):
        assert apply_grammar_edits_to_text(SOURCE, EDITS) == "I have two apples"

    def test_longest_phrase_first_without_overlap(self):
        edits = [
            {"wrong": "a", "right": "an"},
            {"wrong": "a apple", "right": "an apple"},
        ]
        assert apply_grammar_edits_to_text("I ate a apple", edits) == "I ate an apple"

    def test_replacement_output_not_rewritten(self):
        edits = [{"wrong": "is", "right": "was"}, {"wrong": "was", "right": "were"}]
        assert apply_grammar_edits_to_text("It is fine", edits) == "It was fine"

    def test_feedback_fixes(self):
        points = [{"part": "apple", "issue": "Plural", "fix": "apples"}]
        assert apply_feedback_point_fixes("I have two apple", points) == "I have two apples"

    def test_no_edits(self):
        assert apply_grammar_edits_to_text(SOURCE, None) == SOURCE


class TestPickBestCorrectedText:
    def test_source_only_candidate_returns_source(self):
        assert pick_best_corrected_text(SOURCE, [SOURCE], [], []) == SOURCE

    def test_no_candidates_returns_source(self):
        assert pick_best_corrected_text(SOURCE, ["", None], [], []) == SOURCE

    def test_missed_edit_scores_worse(self):
        edits = [{"wrong": "leven", "right": "level"}]
        source = "My English leven is low"
        missed = score_candidate(source, "My English leven is quite low", edits, [])
        fixed = score_candidate(source, "My English level is low", edits, [])
        assert fixed < missed

    def test_prefers_candidate_covering_edits(self):
        candidates = ["I have two apple", "I have two apples"]
        assert pick_best_corrected_text(SOURCE, candidates, EDITS, []) == "I have two apples"

    def test_ties_keep_first_candidate(self):
        candidates = ["I have two apples!", "I have two apples."]
        assert pick_best_corrected_text(SOURCE, candidates, EDITS, []) == "I have two apples!"

    def test_end_to_end_two_apples(self):
        """Model text misses one edit; the fixed-up candidate wins."""
        model_text = "I have two apple"
        points = [{"part": "has", "fix": "have"}, {"part": "apple", "fix": "apples"}]
        best = pick_best_corrected_text(
            SOURCE,
            [
                model_text,
                apply_feedback_point_fixes(model_text, points),
                apply_grammar_edits_to_text(SOURCE, EDITS),
            ],
            EDITS,
            points,
        )
        assert contains_phrase(best, "have")
        assert contains_phrase(best, "apples")
        assert not contains_phrase(best, "has")
        assert not contains_phrase(best, "apple")
