"""Text-to-speech endpoint returning ``audio/wav``."""

from __future__ import annotations

from fastapi import APIRouter, Response

from aifriend.api.errors import require_server_api_key, require_text
from aifriend.api.models import TTSRequest
from aifriend.observability.telemetry import time_block
from aifriend.speech.tts import synthesize_speech

router = APIRouter(prefix="/api", tags=["speech"])


@router.post("/tts")
def tts(request: TTSRequest) -> Response:
    text = require_text(request.text, "text")
    require_server_api_key()

    with time_block("api.tts"):
        audio = synthesize_speech(text, voice_name=request.voice_name, style=request.style)
    return Response(
        content=audio,
        media_type="audio/wav",
        headers={"Cache-Control": "no-store"},
    )
