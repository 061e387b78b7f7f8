"""
Coaching domain models.

Wire format is camelCase (the browser client's convention); Python code uses
snake_case attributes. Serialize with ``to_dict()`` / ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class Edit(CamelModel):
    """One grammar correction: replace ``wrong`` with ``right``."""

    wrong: str
    right: str
    reason: str = ""


class FeedbackPoint(CamelModel):
    """One flagged span of the user's text."""

    part: str
    issue: str = ""
    fix: str = ""


class GrammarReview(CamelModel):
    """
    Result of reviewing one user message.

    ``corrected_text`` equals the input whenever ``has_errors`` is False.
    ``natural_alternative`` / ``natural_rewrite`` are empty unless they say
    something different from both the input and the corrected text.
    """

    has_errors: bool = False
    corrected_text: str
    edits: list[Edit] = Field(default_factory=list)
    feedback: str = "Looks good overall."
    feedback_points: list[FeedbackPoint] = Field(default_factory=list)
    sentence_feedback: list[Any] = Field(default_factory=list)
    natural_alternative: str = ""
    natural_reason: str = ""
    natural_rewrite: str = ""

    @classmethod
    def unchanged(cls, text: str) -> GrammarReview:
        """Best-effort default: the original text with nothing flagged."""
        return cls(corrected_text=text)


class NativeAlternative(CamelModel):
    text: str
    tone: str = "Natural"
    nuance: str = "Natural phrasing"


class EntryKind(str, Enum):
    NATIVE = "native"  # saved native-speaker alternative
    GRAMMAR = "grammar"  # saved corrected sentence


class DictionaryEntry(CamelModel):
    """A phrase the user saved, with where it came from."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    kind: EntryKind
    text: str
    source_text: str = Field(..., description="The user's original message")
    note: str = ""
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_grammar_review(cls, source_text: str, review: GrammarReview) -> DictionaryEntry:
        note = "; ".join(f"{edit.wrong} -> {edit.right}" for edit in review.edits)
        return cls(
            kind=EntryKind.GRAMMAR,
            text=review.corrected_text,
            source_text=source_text,
            note=note,
        )

    @classmethod
    def from_native_alternative(
        cls, source_text: str, alternative: NativeAlternative
    ) -> DictionaryEntry:
        return cls(
            kind=EntryKind.NATIVE,
            text=alternative.text,
            source_text=source_text,
            note=f"{alternative.tone}: {alternative.nuance}",
        )


class ChatRole(str, Enum):
    USER = "user"
    AI = "ai"


class ChatMessage(CamelModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: ChatRole
    text: str
    time: str = ""
    translation: str | None = None
    grammar_review: GrammarReview | None = None
    sent_at: datetime | None = None
