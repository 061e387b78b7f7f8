"""Grammar feedback endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from aifriend.api.errors import (
    error_response,
    require_server_api_key,
    require_text,
    upstream_status,
)
from aifriend.api.models import TextRequest
from aifriend.coaching.grammar import GrammarReviewer
from aifriend.coaching.types import GrammarReview
from aifriend.llm.gemini import GeminiAPIError, describe_upstream_error
from aifriend.observability.logging import get_logger
from aifriend.observability.telemetry import time_block

router = APIRouter(prefix="/api", tags=["coaching"])
logger = get_logger(__name__)


def get_grammar_reviewer() -> GrammarReviewer:
    return GrammarReviewer()


@router.post("/grammar-feedback")
def grammar_feedback(
    request: TextRequest, reviewer: GrammarReviewer = Depends(get_grammar_reviewer)
) -> Any:
    """
    Review ``text`` for grammar mistakes.

    Upstream failures still answer with an unchanged review, plus ``error``
    and the upstream status, so the client can render the same shape.
    """
    text = require_text(request.text, "text")
    require_server_api_key()

    try:
        with time_block("api.grammar"):
            review = reviewer.review(text, model=request.model)
    except GeminiAPIError as e:
        logger.warning("Grammar review failed upstream (status=%s): %s", e.status_code, e)
        return error_response(
            upstream_status(e),
            describe_upstream_error(e),
            **GrammarReview.unchanged(text).to_dict(),
        )
    return review.to_dict()
