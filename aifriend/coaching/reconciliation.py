"""
Candidate reconciliation for grammar corrections.

The model returns a corrected sentence *and* a list of edits / feedback
points, and the two frequently disagree (the corrected text misses an edit,
or the edit list is right but the sentence was rewritten wholesale). We build
several candidates (model text, model text with fixes applied, source with
edits applied, ...) and keep the one that honours the most required
replacements without being a no-op.

Phrases are matched as standalone text: case-insensitive, and a phrase edge
that is a word character must not touch another word character. "apple" is
therefore absent from "apples", which keeps plural / tense fixes countable.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from functools import lru_cache
from typing import Any

from aifriend.coaching.text import is_minor_sentence_difference, normalize_for_comparison

MISSED_EDIT_PENALTY = 10
MISSED_FEEDBACK_PENALTY = 10
NO_OP_PENALTY = 5


@lru_cache(maxsize=512)
def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    prefix = r"(?<!\w)" if re.match(r"\w", phrase) else ""
    suffix = r"(?!\w)" if re.search(r"\w$", phrase) else ""
    return re.compile(prefix + re.escape(phrase) + suffix, re.IGNORECASE)


def contains_phrase(text: str, phrase: str) -> bool:
    """True if ``phrase`` occurs in ``text`` as a standalone phrase."""
    if not phrase:
        return False
    return _phrase_pattern(phrase).search(text) is not None


def _field(item: Any, name: str) -> str:
    if isinstance(item, Mapping):
        value = item.get(name)
    else:
        value = getattr(item, name, None)
    return value.strip() if isinstance(value, str) else ""


def _replacement_covered(source: str, corrected: str, wrong: str, right: str) -> bool:
    if not contains_phrase(source, wrong):
        return True
    if not contains_phrase(corrected, right):
        return False
    # "go" -> "go to": the fix itself may legitimately contain the old phrase
    remainder = _phrase_pattern(right).sub(" ", corrected)
    return not contains_phrase(remainder, wrong)


def corrected_text_covers_edits(
    source_text: str, corrected_text: str, edits: Iterable[Any] | None
) -> bool:
    """
    Check that every edit applicable to the source is reflected in the candidate.

    An edit applies when its ``wrong`` phrase occurs in the source; it is
    covered when the candidate no longer has ``wrong`` and does have ``right``.
    An empty candidate never covers anything.
    """
    source = str(source_text or "")
    corrected = str(corrected_text or "")
    if not corrected.strip():
        return False
    for edit in edits or []:
        wrong, right = _field(edit, "wrong"), _field(edit, "right")
        if not wrong or not right:
            continue
        if not _replacement_covered(source, corrected, wrong, right):
            return False
    return True


def corrected_text_covers_feedback_points(
    source_text: str, corrected_text: str, feedback_points: Iterable[Any] | None
) -> bool:
    """Same contract as ``corrected_text_covers_edits`` for ``{part, fix}`` points.

    Points whose fix only changes case or final punctuation are ignored.
    """
    source = str(source_text or "")
    corrected = str(corrected_text or "")
    if not corrected.strip():
        return False
    for point in feedback_points or []:
        part, fix = _field(point, "part"), _field(point, "fix")
        if not part or not fix:
            continue
        if is_minor_sentence_difference(part, fix):
            continue
        if not _replacement_covered(source, corrected, part, fix):
            return False
    return True


def _apply_replacements(text: str, replacements: Sequence[tuple[str, str]]) -> str:
    """Replace the first free occurrence of each phrase, longest phrase first.

    Occurrences are located in the original text and may not overlap a span
    already claimed by a longer phrase, so one replacement never rewrites the
    output of another.
    """
    claimed: list[tuple[int, int, str]] = []
    for wrong, right in sorted(replacements, key=lambda pair: len(pair[0]), reverse=True):
        for match in _phrase_pattern(wrong).finditer(text):
            start, end = match.span()
            if any(start < c_end and c_start < end for c_start, c_end, _ in claimed):
                continue
            claimed.append((start, end, right))
            break

    result = []
    cursor = 0
    for start, end, right in sorted(claimed):
        result.append(text[cursor:start])
        result.append(right)
        cursor = end
    result.append(text[cursor:])
    return "".join(result)


def apply_grammar_edits_to_text(source_text: str, edits: Iterable[Any] | None) -> str:
    replacements = []
    for edit in edits or []:
        wrong, right = _field(edit, "wrong"), _field(edit, "right")
        if wrong and right and wrong != right:
            replacements.append((wrong, right))
    return _apply_replacements(str(source_text or ""), replacements)


def apply_feedback_point_fixes(source_text: str, feedback_points: Iterable[Any] | None) -> str:
    replacements = []
    for point in feedback_points or []:
        part, fix = _field(point, "part"), _field(point, "fix")
        if part and fix and not is_minor_sentence_difference(part, fix):
            replacements.append((part, fix))
    return _apply_replacements(str(source_text or ""), replacements)


def score_candidate(
    source_text: str,
    candidate: str,
    edits: Iterable[Any] | None,
    feedback_points: Iterable[Any] | None,
) -> int:
    """Lower is better. Missed edits and missed feedback cost 10 each, a no-op costs 5."""
    score = 0
    if not corrected_text_covers_edits(source_text, candidate, edits):
        score += MISSED_EDIT_PENALTY
    if not corrected_text_covers_feedback_points(source_text, candidate, feedback_points):
        score += MISSED_FEEDBACK_PENALTY
    if is_minor_sentence_difference(source_text, candidate):
        score += NO_OP_PENALTY
    return score


def pick_best_corrected_text(
    source_text: str,
    candidates: Iterable[str | None],
    edits: Sequence[Any] | None = None,
    feedback_points: Sequence[Any] | None = None,
) -> str:
    """
    Choose the candidate corrected text that best reflects the required fixes.

    Candidates are stripped and de-duplicated by normalized form (first
    spelling wins). Ties keep the earliest candidate, so callers list the
    model's own text first.

    Returns:
        The lowest-scoring candidate, or ``source_text`` when there are none
    """
    source = str(source_text or "")
    unique: list[str] = []
    seen: set[str] = set()
    for candidate in candidates or []:
        value = str(candidate or "").strip()
        if not value:
            continue
        key = normalize_for_comparison(value)
        if key in seen:
            continue
        seen.add(key)
        unique.append(value)

    if not unique:
        return source

    best = unique[0]
    best_score = None
    for candidate in unique:
        score = score_candidate(source, candidate, edits, feedback_points)
        if best_score is None or score < best_score:
            best, best_score = candidate, score
    return best
