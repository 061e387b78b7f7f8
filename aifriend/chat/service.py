"""
Chat replies from the AI friend.

Builds the system prompt (base persona + slider directives + long-term
memory), sends the trimmed history, and walks the model fallback chain when
the requested model is unavailable.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from aifriend.chat.history import normalize_chat_history, to_gemini_contents
from aifriend.chat.persona import PersonaProfile, build_persona_prompt_block
from aifriend.config import CHAT_GENERATION_CONFIG, CHAT_HISTORY_LIMIT, LONG_TERM_MEMORY_MAX_CHARS
from aifriend.llm.gemini import (
    GeminiAPIError,
    is_model_unavailable,
    model_fallback_chain,
    permissive_safety_settings,
)
from aifriend.llm.prompts import get_chat_system_prompt
from aifriend.memory.profile import MemoryProfile, build_long_term_memory_text
from aifriend.observability.logging import get_logger
from aifriend.observability.telemetry import counter, log_event

logger = get_logger(__name__)

SAFETY_NOTICE = "Hmm, I'd rather not go there. Want to talk about something else?"

MEMORY_BLOCK_HEADER = (
    "Long-term memory about the user (use only when relevant, naturally, "
    "and do not mention this memory list explicitly):"
)


class EmptyReplyError(RuntimeError):
    """The model finished normally but produced no text."""

    status_code = 502

    def __init__(self, message: str = "Empty chat reply"):
        super().__init__(message)


@dataclass(frozen=True)
class ChatReply:
    reply: str
    model: str
    blocked: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"reply": self.reply, "model": self.model}


def _generate_content(contents: Any, **kwargs: Any):
    from aifriend.llm.retry import generate_content

    return generate_content(contents, **kwargs)


def build_system_prompt(memory_text: str, persona: PersonaProfile) -> str:
    prompt = f"{get_chat_system_prompt()}\n\n{build_persona_prompt_block(persona)}"
    if not memory_text:
        return prompt
    return f"{prompt}\n\n{MEMORY_BLOCK_HEADER}\n{memory_text}"


class ChatService:
    """
    Generates the friend's next message.

    Args:
        generate: ``(contents, **kwargs) -> GeminiReply``; defaults to the
            shared retrying Gemini call
    """

    def __init__(self, generate: Callable[..., Any] | None = None):
        self._generate = generate or _generate_content

    def reply(
        self,
        message: str,
        *,
        model: str | None = None,
        history: Any = None,
        memory_summary: str = "",
        memory_profile: Any = None,
        persona_profile: Any = None,
    ) -> ChatReply:
        """
        Reply to ``message`` in the configured persona.

        Raises:
            EmptyReplyError: Model returned no text (not a safety block)
            GeminiAPIError: Upstream failure on the last model tried
            MissingAPIKeyError: No server key configured
        """
        turns = normalize_chat_history(history, CHAT_HISTORY_LIMIT)
        memory_text = build_long_term_memory_text(
            MemoryProfile.from_any(memory_profile),
            str(memory_summary or "").strip()[:LONG_TERM_MEMORY_MAX_CHARS],
        )
        system_prompt = build_system_prompt(memory_text, PersonaProfile.from_any(persona_profile))
        contents = to_gemini_contents(turns, message.strip())

        chain = model_fallback_chain(model)
        for index, candidate_model in enumerate(chain):
            try:
                result = self._generate(
                    contents,
                    model=candidate_model,
                    system_instruction=system_prompt,
                    generation_config=CHAT_GENERATION_CONFIG,
                    safety_settings=permissive_safety_settings(),
                    counter_prefix="chat",
                )
            except GeminiAPIError as e:
                if index + 1 < len(chain) and is_model_unavailable(e):
                    counter("chat.model_fallback")
                    logger.warning(
                        "Model %s unavailable, trying %s: %s", candidate_model, chain[index + 1], e
                    )
                    continue
                raise

            if result.blocked:
                counter("chat.safety_blocked")
                return ChatReply(reply=SAFETY_NOTICE, model=candidate_model, blocked=True)
            if not result.text:
                raise EmptyReplyError()

            log_event(
                "chat.replied",
                model=candidate_model,
                history_turns=len(turns),
                has_memory=bool(memory_text),
            )
            return ChatReply(reply=result.text, model=candidate_model)

        # model_fallback_chain always yields at least the default model
        raise EmptyReplyError()
