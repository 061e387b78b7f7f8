"""
Grammar review pipeline.

Tiers:
    PRIMARY          full JSON review prompt (JSON mode)
    RETRY_STRICT     terse JSON-only prompt with the same schema
    RETRY_PLAINTEXT  corrected sentence only; edits derived from a word diff
    FALLBACK_LOCAL   the input unchanged, nothing flagged

The model's review is then normalized: capitalization / final-punctuation
edits are dropped, feedback points are capped, and the corrected text is
reconciled against the edit list (see ``coaching.reconciliation``).
"""

from __future__ import annotations

import difflib
from collections.abc import Callable
from typing import Any

from aifriend.coaching.fallback import FallbackStage, Tier, run_tiers
from aifriend.coaching.reconciliation import (
    apply_feedback_point_fixes,
    apply_grammar_edits_to_text,
    pick_best_corrected_text,
)
from aifriend.coaching.text import (
    clean_alternative_text,
    is_minor_grammar_edit,
    is_minor_sentence_difference,
)
from aifriend.coaching.types import Edit, FeedbackPoint, GrammarReview
from aifriend.config import FEEDBACK_POINTS_MAX, GRAMMAR_GENERATION_CONFIG
from aifriend.llm.parsing import parse_json_object
from aifriend.llm.prompts import (
    get_grammar_plaintext_prompt,
    get_grammar_prompt,
)
from aifriend.observability.logging import get_logger
from aifriend.observability.telemetry import log_event
from aifriend.utils.redaction import redact

logger = get_logger(__name__)

DEFAULT_FEEDBACK = "Looks good overall."
DIFF_FEEDBACK = "Fixed a few grammar and spelling issues."
DEFAULT_ISSUE = "Needs correction."


def _call_llm(prompt: str, **kwargs: Any) -> str:
    from aifriend.llm.retry import call_llm

    return call_llm(prompt, **kwargs)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def normalize_edits(raw_edits: Any) -> list[Edit]:
    """Keep well-formed edits, stripped, minus capitalization/punctuation-only ones."""
    edits = []
    for item in raw_edits if isinstance(raw_edits, list) else []:
        if not isinstance(item, dict):
            continue
        wrong, right = item.get("wrong"), item.get("right")
        if not isinstance(wrong, str) or not isinstance(right, str):
            continue
        edit = Edit(wrong=wrong.strip(), right=right.strip(), reason=_text(item.get("reason")))
        if not edit.wrong or is_minor_grammar_edit(edit.wrong, edit.right):
            continue
        edits.append(edit)
    return edits


def normalize_feedback_points(raw_points: Any, edits: list[Edit]) -> list[FeedbackPoint]:
    """Model feedback points (capped), or points derived from the edits when it gave none."""
    points = []
    for item in raw_points if isinstance(raw_points, list) else []:
        if not isinstance(item, dict):
            continue
        point = FeedbackPoint(
            part=_text(item.get("part")), issue=_text(item.get("issue")), fix=_text(item.get("fix"))
        )
        if point.part and (point.issue or point.fix):
            points.append(point)
    if points:
        return points[:FEEDBACK_POINTS_MAX]

    return [
        FeedbackPoint(part=edit.wrong, issue=edit.reason or DEFAULT_ISSUE, fix=edit.right)
        for edit in edits[:FEEDBACK_POINTS_MAX]
    ]


def build_grammar_review(source_text: str, parsed: dict[str, Any]) -> GrammarReview:
    """
    Turn a parsed model review into a consistent GrammarReview.

    Args:
        source_text: The user's message, already stripped
        parsed: Model JSON (any shape; fields are type-checked here)

    Returns:
        GrammarReview whose corrected text is the best of four candidates
    """
    edits = normalize_edits(parsed.get("edits"))
    feedback_points = normalize_feedback_points(parsed.get("feedbackPoints"), edits)

    corrected_raw = _text(parsed.get("correctedText")) or source_text
    corrected_heuristic = apply_grammar_edits_to_text(source_text, edits)
    corrected_text = pick_best_corrected_text(
        source_text,
        [
            corrected_raw,
            apply_feedback_point_fixes(corrected_raw, feedback_points),
            corrected_heuristic,
            apply_feedback_point_fixes(corrected_heuristic, feedback_points),
        ],
        edits,
        feedback_points,
    )
    has_errors = bool(parsed.get("hasErrors")) and len(edits) > 0

    natural_alternative = clean_alternative_text(parsed.get("naturalAlternative"))
    natural_reason = _text(parsed.get("naturalReason"))
    natural_rewrite = clean_alternative_text(parsed.get("naturalRewrite"))
    changed = not is_minor_sentence_difference(source_text, corrected_text)
    if not natural_rewrite and edits and changed:
        natural_rewrite = corrected_text

    alternative_usable = bool(natural_alternative) and not is_minor_sentence_difference(
        source_text, natural_alternative
    )
    rewrite_usable = (
        bool(natural_rewrite)
        and not is_minor_sentence_difference(source_text, natural_rewrite)
        and not is_minor_sentence_difference(corrected_text, natural_rewrite)
    )

    return GrammarReview(
        has_errors=has_errors,
        corrected_text=corrected_text if has_errors else source_text,
        edits=edits,
        feedback=_text(parsed.get("feedback")) or DEFAULT_FEEDBACK,
        feedback_points=feedback_points,
        natural_alternative=natural_alternative if alternative_usable else "",
        natural_reason=natural_reason if alternative_usable else "",
        natural_rewrite=natural_rewrite if rewrite_usable else "",
    )


def _join_span(tokens: list[str], start: int, end: int) -> str:
    return " ".join(tokens[start:end])


def diff_word_edits(source_text: str, corrected_text: str) -> list[dict[str, str]]:
    """
    Derive ``{wrong, right}`` edits from a word-level diff.

    Insertions and deletions are anchored on the neighbouring source word so
    every edit has a non-empty ``wrong`` phrase that occurs in the source.
    """
    source = source_text.split()
    corrected = corrected_text.split()
    matcher = difflib.SequenceMatcher(a=source, b=corrected, autojunk=False)

    edits = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        if tag == "replace":
            wrong, right = _join_span(source, i1, i2), _join_span(corrected, j1, j2)
        elif tag == "delete":
            if i1 > 0:
                wrong, right = _join_span(source, i1 - 1, i2), source[i1 - 1]
            elif i2 < len(source):
                wrong, right = _join_span(source, i1, i2 + 1), source[i2]
            else:
                continue
        else:  # insert
            inserted = _join_span(corrected, j1, j2)
            if i1 > 0:
                wrong, right = source[i1 - 1], f"{source[i1 - 1]} {inserted}"
            elif source:
                wrong, right = source[0], f"{inserted} {source[0]}"
            else:
                continue
        edits.append({"wrong": wrong, "right": right, "reason": ""})
    return edits


class GrammarReviewer:
    """
    Reviews one learner message through the tiered fallback.

    Args:
        call_model: ``(prompt, **kwargs) -> str``; defaults to the shared
            retrying Gemini call
    """

    def __init__(self, call_model: Callable[..., str] | None = None):
        self._call_model = call_model or _call_llm

    def _ask(self, prompt: str, model: str | None, *, json_mode: bool) -> str:
        raw = self._call_model(
            prompt,
            model=model,
            generation_config=GRAMMAR_GENERATION_CONFIG,
            response_mime_type="application/json" if json_mode else None,
            counter_prefix="grammar",
        )
        if not raw:
            raise ValueError("No grammar analysis returned")
        return raw

    def _review_json(self, text: str, model: str | None, *, strict: bool) -> dict[str, Any]:
        prompt = get_grammar_prompt(text, strict=strict)
        return parse_json_object(self._ask(prompt, model, json_mode=True))

    def _review_plaintext(self, text: str, model: str | None) -> dict[str, Any]:
        corrected = clean_alternative_text(
            self._ask(get_grammar_plaintext_prompt(text), model, json_mode=False)
        )
        if not corrected:
            raise ValueError("Empty plaintext correction")
        edits = diff_word_edits(text, corrected)
        return {
            "hasErrors": bool(edits),
            "correctedText": corrected,
            "edits": edits,
            "feedback": DIFF_FEEDBACK if edits else DEFAULT_FEEDBACK,
        }

    def review(self, text: str, model: str | None = None) -> GrammarReview:
        """
        Review ``text`` and return a normalized GrammarReview.

        Malformed model output degrades through the tiers down to an
        unchanged review. Upstream errors propagate.

        Raises:
            GeminiAPIError: Upstream failure after retries
            MissingAPIKeyError: No server key configured
        """
        source = text.strip()
        outcome = run_tiers(
            "grammar",
            [
                Tier(FallbackStage.PRIMARY, lambda: self._review_json(source, model, strict=False)),
                Tier(
                    FallbackStage.RETRY_STRICT,
                    lambda: self._review_json(source, model, strict=True),
                ),
                Tier(FallbackStage.RETRY_PLAINTEXT, lambda: self._review_plaintext(source, model)),
            ],
            accept=lambda parsed: isinstance(parsed, dict),
            fallback=dict,
        )
        review = build_grammar_review(source, outcome.value)
        log_event(
            "coaching.grammar.reviewed",
            text=redact(source),
            stage=outcome.stage.value,
            has_errors=review.has_errors,
            edits=len(review.edits),
        )
        return review
