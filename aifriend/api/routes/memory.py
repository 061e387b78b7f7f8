"""Long-term memory endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from aifriend.api.errors import require_server_api_key
from aifriend.api.models import MemorySummaryRequest
from aifriend.memory.summary import MemorySummarizer
from aifriend.observability.telemetry import time_block

router = APIRouter(prefix="/api", tags=["memory"])


def get_memory_summarizer() -> MemorySummarizer:
    return MemorySummarizer()


@router.post("/memory-summary")
def memory_summary(
    request: MemorySummaryRequest,
    summarizer: MemorySummarizer = Depends(get_memory_summarizer),
) -> dict[str, Any]:
    """
    Fold recent chat turns into the memory summary and profile.

    Returns ``{"memorySummary", "memoryProfile", "changed"}``.
    """
    require_server_api_key()

    with time_block("api.memory"):
        result = summarizer.summarize(
            request.current_summary,
            request.history,
            request.current_profile,
            model=request.model,
        )
    return result.to_dict()
