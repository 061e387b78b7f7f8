"""Chat endpoint: the friend's next message."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from aifriend.api.errors import require_server_api_key, require_text
from aifriend.api.models import ChatRequest
from aifriend.chat.service import ChatService
from aifriend.observability.telemetry import time_block

router = APIRouter(prefix="/api", tags=["chat"])


def get_chat_service() -> ChatService:
    return ChatService()


@router.post("/chat")
def chat(
    request: ChatRequest, service: ChatService = Depends(get_chat_service)
) -> dict[str, Any]:
    """
    Reply to ``message`` given recent history, long-term memory and persona.

    Returns ``{"reply", "model"}``; a safety-blocked reply is a fixed notice.
    """
    message = require_text(request.message, "message")
    require_server_api_key()

    with time_block("api.chat"):
        result = service.reply(
            message,
            model=request.model,
            history=request.history,
            memory_summary=request.memory_summary,
            memory_profile=request.memory_profile,
            persona_profile=request.persona_profile,
        )
    return result.to_dict()
