"""Unit tests for chat replies"""

from __future__ import annotations

import pytest

from aifriend.chat.service import (
    MEMORY_BLOCK_HEADER,
    SAFETY_NOTICE,
    ChatService,
    EmptyReplyError,
)
from aifriend.llm.gemini import GeminiAPIError
from aifriend.llm.retry import GeminiReply


class FakeGenerate:
    """Records calls; each scripted item is a GeminiReply or an exception."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def __call__(self, contents, **kwargs):
        self.calls.append((contents, kwargs))
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


def test_reply_sends_history_and_new_message():
    generate = FakeGenerate(GeminiReply(text="Haha same, what are you up to?"))
    history = [
        {"role": "user", "text": "hey"},
        {"role": "ai", "text": "yo!"},
        {"role": "narrator", "text": "dropped"},
        {"role": "user", "text": "   "},
    ]

    reply = ChatService(generate=generate).reply("  I'm bored  ", history=history)

    assert reply.to_dict() == {
        "reply": "Haha same, what are you up to?",
        "model": "gemini-3-flash-preview",
    }
    contents, kwargs = generate.calls[0]
    assert contents == [
        {"role": "user", "parts": ["hey"]},
        {"role": "model", "parts": ["yo!"]},
        {"role": "user", "parts": ["I'm bored"]},
    ]
    assert kwargs["counter_prefix"] == "chat"
    assert all(s["threshold"] == "BLOCK_NONE" for s in kwargs["safety_settings"])


def test_history_is_limited_to_recent_turns():
    generate = FakeGenerate(GeminiReply(text="ok"))
    history = [{"role": "user", "text": f"message {i}"} for i in range(30)]

    ChatService(generate=generate).reply("latest", history=history)

    contents, _ = generate.calls[0]
    assert len(contents) == 17
    assert contents[0]["parts"] == ["message 14"]


def test_system_prompt_carries_persona_and_memory():
    generate = FakeGenerate(GeminiReply(text="ok"))

    ChatService(generate=generate).reply(
        "hi",
        memory_profile={"hobbies": ["Bouldering"]},
        memory_summary="- ignored while the profile has items",
        persona_profile={"warmth": 5},
    )

    system_prompt = generate.calls[0][1]["system_instruction"]
    assert "- Warmth 5/5:" in system_prompt
    assert MEMORY_BLOCK_HEADER in system_prompt
    assert "- [Hobbies] Bouldering" in system_prompt
    assert "ignored while the profile" not in system_prompt


def test_no_memory_block_without_memory():
    generate = FakeGenerate(GeminiReply(text="ok"))
    ChatService(generate=generate).reply("hi")
    assert MEMORY_BLOCK_HEADER not in generate.calls[0][1]["system_instruction"]


def test_unavailable_model_falls_back():
    generate = FakeGenerate(
        GeminiAPIError("models/gemini-x is not found", status_code=404),
        GeminiReply(text="hello from flash"),
    )

    reply = ChatService(generate=generate).reply("hi", model="gemini-x")

    assert reply.model == "gemini-3-flash-preview"
    assert [kwargs["model"] for _, kwargs in generate.calls] == [
        "gemini-x",
        "gemini-3-flash-preview",
    ]


def test_legacy_model_name_is_rewritten():
    generate = FakeGenerate(GeminiReply(text="ok"))
    reply = ChatService(generate=generate).reply("hi", model="gemini-1.5-pro")
    assert reply.model == "gemini-3-pro-preview"


def test_other_upstream_errors_propagate():
    generate = FakeGenerate(GeminiAPIError("quota", status_code=429))
    with pytest.raises(GeminiAPIError):
        ChatService(generate=generate).reply("hi")
    assert len(generate.calls) == 1


def test_last_model_unavailable_propagates():
    generate = FakeGenerate(
        GeminiAPIError("not found", status_code=404),
        GeminiAPIError("not found", status_code=404),
    )
    with pytest.raises(GeminiAPIError):
        ChatService(generate=generate).reply("hi")


def test_safety_block_returns_notice():
    generate = FakeGenerate(GeminiReply(text="", finish_reason="SAFETY"))
    reply = ChatService(generate=generate).reply("something edgy")
    assert reply.reply == SAFETY_NOTICE
    assert reply.blocked is True


def test_empty_reply_raises():
    generate = FakeGenerate(GeminiReply(text="", finish_reason="STOP"))
    with pytest.raises(EmptyReplyError):
        ChatService(generate=generate).reply("hi")
