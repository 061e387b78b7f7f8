"""Text comparison helpers shared by the coaching pipelines."""

from __future__ import annotations

import re

_TRAILING_PUNCTUATION = re.compile(r"[.!?]+$")
_WHITESPACE = re.compile(r"\s+")
_HANGUL = re.compile(r"[\u3131-\u318E\uAC00-\uD7A3]")
_HANGUL_RUN = re.compile(r"[\u3131-\u318E\uAC00-\uD7A3]+")

_WRAPPING_QUOTES = re.compile(r'^"(.*)"$', re.DOTALL)
_META_PREFIXES = (
    re.compile(r"^(i mean[,:]?\s*)", re.IGNORECASE),
    re.compile(r"^(a more natural way(?: to say this)? is[,:]?\s*)", re.IGNORECASE),
    re.compile(r"^(more naturally[,:]?\s*)", re.IGNORECASE),
)


def normalize_for_comparison(value: str | None) -> str:
    """Trim, drop final . ! ?, collapse whitespace, lowercase."""
    text = str(value or "").strip()
    text = _TRAILING_PUNCTUATION.sub("", text)
    return _WHITESPACE.sub(" ", text).lower()


def is_minor_sentence_difference(source: str | None, target: str | None) -> bool:
    """True when two sentences differ only by case, spacing or final punctuation."""
    return normalize_for_comparison(source) == normalize_for_comparison(target)


def contains_hangul(value: str | None) -> bool:
    return bool(_HANGUL.search(str(value or "")))


def strip_hangul(value: str | None) -> str:
    """Remove Hangul runs and collapse the whitespace left behind."""
    return _WHITESPACE.sub(" ", _HANGUL_RUN.sub("", str(value or ""))).strip()


def collapse_whitespace(value: str | None) -> str:
    return _WHITESPACE.sub(" ", str(value or "")).strip()


def clean_alternative_text(value) -> str:
    """
    Strip wrapping quotes and meta intros the model adds despite instructions.

    "I mean, ..." / "A more natural way to say this is ..." / "More naturally, ..."
    are removed so the suggestion can be reused verbatim.
    """
    if not isinstance(value, str):
        return ""
    text = _WRAPPING_QUOTES.sub(r"\1", value.strip())
    for prefix in _META_PREFIXES:
        text = prefix.sub("", text)
    return text.strip()


def _strip_end_punctuation(value: str) -> str:
    return _TRAILING_PUNCTUATION.sub("", value.strip()).strip()


def is_minor_grammar_edit(wrong: str | None, right: str | None) -> bool:
    """True for capitalization-only or final-punctuation-only edits.

    Identical strings are not an edit at all, so they are not "minor" either.
    """
    if not wrong or not right:
        return False
    if wrong == right:
        return False
    return _strip_end_punctuation(wrong).lower() == _strip_end_punctuation(right).lower()
