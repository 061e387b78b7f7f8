"""Chat history normalization shared by the chat and memory features."""

from __future__ import annotations

from typing import Any

from aifriend.coaching.types import ChatMessage, ChatRole

_ROLES = {role.value for role in ChatRole}


def normalize_chat_history(history: Any, limit: int) -> list[ChatMessage]:
    """
    Keep user/ai turns that have text, newest ``limit`` only.

    Client history is untrusted: non-list input, unknown roles and blank
    messages are dropped silently.
    """
    if not isinstance(history, list):
        return []
    messages = []
    for item in history:
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        text = str(item.get("text") or "").strip()
        if role in _ROLES and text:
            messages.append(ChatMessage(role=role, text=text))
    return messages[-limit:] if limit > 0 else messages


def to_gemini_contents(history: list[ChatMessage], message: str) -> list[dict[str, Any]]:
    """History plus the new user message as Gemini content turns."""
    contents = [
        {"role": "model" if turn.role == ChatRole.AI.value else "user", "parts": [turn.text]}
        for turn in history
    ]
    contents.append({"role": "user", "parts": [message]})
    return contents


def to_transcript(history: list[ChatMessage]) -> str:
    """``USER: ...`` / ``AI: ...`` lines for prompts that embed the history."""
    return "\n".join(f"{turn.role.upper()}: {turn.text}" for turn in history)
