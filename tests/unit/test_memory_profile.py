"""Unit tests for the categorized memory profile"""

from __future__ import annotations

import pytest

from aifriend.memory.profile import (
    MemoryProfile,
    build_long_term_memory_text,
    classify_note,
    sanitize_items,
)


class TestSanitizeItems:
    def test_collapses_dedupes_and_caps(self):
        raw = ["  likes   jazz ", "Likes Jazz", None, "", *[f"item {i}" for i in range(20)]]
        items = sanitize_items(raw)
        assert items[0] == "likes jazz"
        assert len(items) == 10
        assert "Likes Jazz" not in items

    def test_clips_long_items(self):
        assert len(sanitize_items(["x" * 500])[0]) == 180

    def test_non_list(self):
        assert sanitize_items("hiking") == []


class TestMemoryProfile:
    def test_from_any_accepts_camel_case_and_junk(self):
        profile = MemoryProfile.from_any(
            {"personalityTraits": ["curious"], "dailyRoutine": "not a list", "unknown": [1]}
        )
        assert profile.personality_traits == ["curious"]
        assert profile.daily_routine == []

    @pytest.mark.parametrize("value", [None, "text", 3, ["list"]])
    def test_from_any_non_object_is_empty(self, value):
        assert MemoryProfile.from_any(value).is_empty()

    def test_to_dict_is_camel_case(self):
        data = MemoryProfile(goals=["Pass TOEIC"]).to_dict()
        assert set(data) == {
            "hobbies",
            "goals",
            "projects",
            "personalityTraits",
            "dailyRoutine",
            "preferences",
            "background",
            "notes",
        }
        assert data["goals"] == ["Pass TOEIC"]

    def test_merge_puts_newer_first_and_dedupes(self):
        current = MemoryProfile(hobbies=["Hiking", "Chess"])
        newer = MemoryProfile(hobbies=["Climbing", "hiking"])
        assert current.merge(newer).hobbies == ["Climbing", "hiking", "Chess"]

    def test_rebalance_moves_notes(self):
        profile = MemoryProfile(
            notes=[
                "[Hobby] bouldering",
                "Goal: pass TOEIC",
                "Is building a budgeting app",
                "Wakes up at 6 every day",
                "Something unclassifiable",
            ]
        ).rebalance()
        assert profile.hobbies == ["bouldering"]
        assert profile.goals == ["pass TOEIC"]
        assert profile.projects == ["Is building a budgeting app"]
        assert profile.daily_routine == ["Wakes up at 6 every day"]
        assert profile.notes == ["Something unclassifiable"]

    def test_memory_lines(self):
        lines = MemoryProfile(hobbies=["Jazz"], personality_traits=["Shy"]).to_memory_lines()
        assert lines == ["- [Hobbies] Jazz", "- [Traits] Shy"]


@pytest.mark.parametrize(
    ("note", "field"),
    [
        ("Lives in Busan", "background"),
        ("Prefers short answers", "preferences"),
        ("Is a bit introverted", "personality_traits"),
        ("Loves to play guitar", "hobbies"),
        ("Wants to move abroad", "goals"),
        ("Cat named Mochi", "notes"),
    ],
)
def test_classify_note(note, field):
    assert classify_note(note)[0] == field


class TestLongTermMemoryText:
    def test_profile_wins_over_summary(self):
        text = build_long_term_memory_text(MemoryProfile(goals=["Pass TOEIC"]), "- old summary")
        assert text == "- [Goals] Pass TOEIC"

    def test_summary_when_profile_empty(self):
        assert build_long_term_memory_text(MemoryProfile(), "  - Likes jazz ") == "- Likes jazz"
        assert build_long_term_memory_text(None, "") == ""

    def test_capped(self):
        profile = MemoryProfile(**{"notes": [f"{'n' * 170} {i}" for i in range(10)]})
        long_summary = "x" * 5000
        assert len(build_long_term_memory_text(profile)) <= 2600
        assert len(build_long_term_memory_text(None, long_summary)) == 2600
