"""Translation endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from aifriend.api.errors import require_server_api_key, require_text
from aifriend.api.models import TranslateRequest
from aifriend.coaching.translation import translate_text
from aifriend.observability.telemetry import time_block

router = APIRouter(prefix="/api", tags=["coaching"])


@router.post("/translate")
def translate(request: TranslateRequest) -> dict[str, str]:
    """Translate ``text`` into ``targetLang`` (Korean when omitted)."""
    text = require_text(request.text, "text")
    require_server_api_key()

    with time_block("api.translate"):
        translation = translate_text(text, request.target_lang, model=request.model)
    return {"translation": translation}
