"""
Categorized long-term memory about the user.

The profile is a fixed set of string lists. Every list is whitespace-collapsed,
clipped per item, de-duplicated case-insensitively and capped, whatever shape
the client or the model sent. Free-text ``notes`` are reclassified into the
typed categories by ``rebalance``.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from aifriend.coaching.text import collapse_whitespace
from aifriend.config import (
    LONG_TERM_MEMORY_MAX_CHARS,
    MEMORY_ITEM_MAX_CHARS,
    MEMORY_ITEMS_PER_FIELD,
)

PROFILE_FIELDS: tuple[str, ...] = (
    "hobbies",
    "goals",
    "projects",
    "personality_traits",
    "daily_routine",
    "preferences",
    "background",
    "notes",
)

PROFILE_LABELS: dict[str, str] = {
    "hobbies": "Hobbies",
    "goals": "Goals",
    "projects": "Projects",
    "personality_traits": "Traits",
    "daily_routine": "Routine",
    "preferences": "Preferences",
    "background": "Background",
    "notes": "Notes",
}

# Tag words a note may carry explicitly ("[Hobby] ...", "Goal: ...")
_TAG_ALIASES: dict[str, str] = {
    "hobby": "hobbies",
    "hobbies": "hobbies",
    "interest": "hobbies",
    "interests": "hobbies",
    "goal": "goals",
    "goals": "goals",
    "project": "projects",
    "projects": "projects",
    "trait": "personality_traits",
    "traits": "personality_traits",
    "personality": "personality_traits",
    "routine": "daily_routine",
    "daily routine": "daily_routine",
    "preference": "preferences",
    "preferences": "preferences",
    "background": "background",
}

_BRACKET_TAG = re.compile(r"^\[([A-Za-z ]+)\]\s*(.+)$")
_COLON_TAG = re.compile(r"^([A-Za-z ]+?)\s*:\s*(.+)$")

# Checked in order; the first category whose pattern matches wins.
_CATEGORY_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "projects",
        re.compile(
            r"\b(project|side project|building|developing|working on|startup|thesis|portfolio)\b",
            re.IGNORECASE,
        ),
    ),
    (
        "goals",
        re.compile(
            r"\b(goal|wants? to|plans? to|hopes? to|aims? to|dreams? of|trying to|preparing for"
            r"|studying for|get better at|improve)\b",
            re.IGNORECASE,
        ),
    ),
    (
        "daily_routine",
        re.compile(
            r"\b(every (day|morning|night|evening|weekend)|wakes? up|commutes?|before work"
            r"|after work|daily|routine|usually)\b",
            re.IGNORECASE,
        ),
    ),
    (
        "hobbies",
        re.compile(
            r"\b(hobby|hobbies|enjoys?|likes? to|loves? to|plays?|playing|hiking|gaming|cooking"
            r"|reading|guitar|piano|soccer|football|basketball|tennis|yoga"
            r"|travell?ing|movies|music)\b",
            re.IGNORECASE,
        ),
    ),
    (
        "preferences",
        re.compile(
            r"\b(prefers?|favou?rite|dislikes?|hates?|doesn't like|likes|replies|short answers"
            r"|casual tone)\b",
            re.IGNORECASE,
        ),
    ),
    (
        "personality_traits",
        re.compile(
            r"\b(introvert(ed)?|extrovert(ed)?|shy|outgoing|curious|patient|anxious|calm"
            r"|personality|tends? to)\b",
            re.IGNORECASE,
        ),
    ),
    (
        "background",
        re.compile(
            r"\b(lives? in|(is|comes) from|born|works? as|job|student|university|college"
            r"|majors? in|years? old|family|married)\b",
            re.IGNORECASE,
        ),
    ),
)


def sanitize_items(value: Any) -> list[str]:
    """Collapse, clip, de-duplicate (case-insensitive) and cap one profile field."""
    if not isinstance(value, list):
        return []
    items: list[str] = []
    seen: set[str] = set()
    for raw in value:
        if raw is None:
            continue
        text = collapse_whitespace(str(raw))[:MEMORY_ITEM_MAX_CHARS].strip()
        if not text or text.lower() in seen:
            continue
        seen.add(text.lower())
        items.append(text)
        if len(items) >= MEMORY_ITEMS_PER_FIELD:
            break
    return items


def classify_note(note: str) -> tuple[str, str]:
    """
    Pick the category for one free-text note.

    Explicit tags win ("[Hobbies] climbing", "Goal: pass TOEIC"); otherwise
    the first matching keyword pattern; otherwise the note stays a note.

    Returns:
        (field name, note text without its tag)
    """
    for pattern in (_BRACKET_TAG, _COLON_TAG):
        match = pattern.match(note)
        if match:
            field = _TAG_ALIASES.get(match.group(1).strip().lower())
            if field:
                return field, match.group(2).strip()
    for field, category_pattern in _CATEGORY_PATTERNS:
        if category_pattern.search(note):
            return field, note
    return "notes", note


class MemoryProfile(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    hobbies: list[str] = Field(default_factory=list)
    goals: list[str] = Field(default_factory=list)
    projects: list[str] = Field(default_factory=list)
    personality_traits: list[str] = Field(default_factory=list)
    daily_routine: list[str] = Field(default_factory=list)
    preferences: list[str] = Field(default_factory=list)
    background: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)

    @field_validator(*PROFILE_FIELDS, mode="before")
    @classmethod
    def sanitize_fields(cls, value: Any) -> list[str]:
        return sanitize_items(value)

    @classmethod
    def from_any(cls, value: Any) -> MemoryProfile:
        """Build a sanitized profile from untrusted input; non-objects become empty."""
        if isinstance(value, MemoryProfile):
            return value
        if not isinstance(value, dict):
            return cls()
        return cls.model_validate(value)

    def is_empty(self) -> bool:
        return all(not getattr(self, field) for field in PROFILE_FIELDS)

    def merge(self, newer: MemoryProfile) -> MemoryProfile:
        """Combine per field, newer items first, then the ones only we still hold."""
        return MemoryProfile(
            **{field: [*getattr(newer, field), *getattr(self, field)] for field in PROFILE_FIELDS}
        )

    def rebalance(self) -> MemoryProfile:
        """Move classifiable notes into their typed category."""
        fields = {field: list(getattr(self, field)) for field in PROFILE_FIELDS}
        fields["notes"] = []
        for note in self.notes:
            field, text = classify_note(note)
            fields[field].append(text)
        return MemoryProfile(**fields)

    def to_dict(self) -> dict[str, list[str]]:
        return self.model_dump(by_alias=True)

    def to_prompt_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def to_memory_lines(self) -> list[str]:
        return [
            f"- [{PROFILE_LABELS[field]}] {item}"
            for field in PROFILE_FIELDS
            for item in getattr(self, field)
        ]


def build_long_term_memory_text(profile: MemoryProfile | None, summary: str = "") -> str:
    """Memory block for the chat system prompt: the profile when it has
    anything, else the free-text summary. Both are capped."""
    if profile is not None and not profile.is_empty():
        return "\n".join(profile.to_memory_lines())[:LONG_TERM_MEMORY_MAX_CHARS].strip()
    return str(summary or "").strip()[:LONG_TERM_MEMORY_MAX_CHARS]
