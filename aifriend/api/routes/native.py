"""Native-speaker alternatives endpoint. Always answers 200 once the input is valid."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from aifriend.api.errors import require_server_api_key, require_text
from aifriend.api.models import TextRequest
from aifriend.coaching.native import NativeAlternativesGenerator
from aifriend.observability.telemetry import time_block

router = APIRouter(prefix="/api", tags=["coaching"])


def get_native_generator() -> NativeAlternativesGenerator:
    return NativeAlternativesGenerator()


@router.post("/native-alternatives")
def native_alternatives(
    request: TextRequest,
    generator: NativeAlternativesGenerator = Depends(get_native_generator),
) -> dict[str, Any]:
    text = require_text(request.text, "text")
    require_server_api_key()

    with time_block("api.native"):
        result = generator.generate(text, model=request.model)
    return result.to_dict()
