"""Unit tests for coaching domain models"""

from aifriend.coaching.types import (
    ChatMessage,
    DictionaryEntry,
    Edit,
    EntryKind,
    GrammarReview,
    NativeAlternative,
)


def test_grammar_review_wire_format_is_camel_case():
    review = GrammarReview(
        has_errors=True,
        corrected_text="I have two apples.",
        edits=[Edit(wrong="has", right="have", reason="subject-verb agreement")],
    )
    data = review.to_dict()

    assert data["hasErrors"] is True
    assert data["correctedText"] == "I have two apples."
    assert data["edits"] == [
        {"wrong": "has", "right": "have", "reason": "subject-verb agreement"}
    ]
    assert data["naturalAlternative"] == ""


def test_unchanged_review():
    review = GrammarReview.unchanged("Hello there")
    assert review.has_errors is False
    assert review.corrected_text == "Hello there"
    assert review.feedback == "Looks good overall."


def test_dictionary_entry_from_grammar_review():
    review = GrammarReview(
        has_errors=True,
        corrected_text="I have two apples.",
        edits=[Edit(wrong="has", right="have"), Edit(wrong="apple", right="apples")],
    )
    entry = DictionaryEntry.from_grammar_review("I has two apple.", review)

    assert entry.kind == EntryKind.GRAMMAR.value
    assert entry.text == "I have two apples."
    assert entry.note == "has -> have; apple -> apples"
    data = entry.to_dict()
    assert data["sourceText"] == "I has two apple."
    assert data["kind"] == "grammar"
    assert "createdAt" in data


def test_dictionary_entry_from_native_alternative():
    alternative = NativeAlternative(text="I'm beat.", tone="Casual", nuance="Very informal")
    entry = DictionaryEntry.from_native_alternative("I am very tired.", alternative)

    assert entry.kind == "native"
    assert entry.note == "Casual: Very informal"


def test_chat_message_accepts_camel_case():
    message = ChatMessage.model_validate({"role": "ai", "text": "hey", "sentAt": None})
    assert message.role == "ai"
    assert message.id


def test_package_exposes_core_types_lazily():
    import aifriend
    from aifriend.llm.parsing import parse_json_safely

    assert aifriend.GrammarReview is GrammarReview
    assert aifriend.parse_json_safely is parse_json_safely
