"""Shared LLM call with retry logic.

Provides the single retry-decorated entry point every feature uses to call
Gemini. Transient upstream failures (429, 5xx, network) are retried with
exponential backoff; everything else propagates immediately so each feature
can apply its own final-failure policy (fallback payload vs HTTP status).

``google.api_core`` exceptions are converted to ``GeminiAPIError`` so callers
only ever handle one upstream error type.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from google.api_core.exceptions import GoogleAPICallError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from aifriend.config import LLM_MAX_RETRIES, LLM_TIMEOUT_SECONDS
from aifriend.llm.gemini import GeminiAPIError, get_gemini_model
from aifriend.llm.parsing import extract_candidate_text, extract_finish_reason
from aifriend.observability.logging import get_logger
from aifriend.observability.telemetry import counter

logger = get_logger(__name__)


@dataclass(frozen=True)
class GeminiReply:
    """Text of the first candidate plus why generation stopped."""

    text: str
    finish_reason: str = ""

    @property
    def blocked(self) -> bool:
        return self.finish_reason == "SAFETY"


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, GeminiAPIError) and exc.retryable


def upstream_error(message: str, status: int | None, counter_prefix: str) -> GeminiAPIError:
    """Count and log an upstream failure, returning it as a GeminiAPIError."""
    if status == 429:
        counter(f"llm.{counter_prefix}.rate_limited")
        logger.warning("LLM rate limited (429), will retry: %s", message)
    elif status is None:
        counter(f"llm.{counter_prefix}.network_error")
        logger.warning("LLM network failure, will retry: %s", message)
    elif status >= 500:
        counter(f"llm.{counter_prefix}.server_error")
        logger.warning("LLM upstream error (%s), will retry: %s", status, message)
    else:
        counter(f"llm.{counter_prefix}.client_error")
        logger.error("LLM call rejected (%s): %s", status, message)
    return GeminiAPIError(message, status_code=status)


def _to_gemini_error(exc: Exception, counter_prefix: str) -> GeminiAPIError:
    if isinstance(exc, GoogleAPICallError):
        status = int(exc.code) if isinstance(exc.code, int) else 500
        return upstream_error(exc.message or str(exc), status, counter_prefix)
    return upstream_error(str(exc) or exc.__class__.__name__, None, counter_prefix)


# Shared policy for every Gemini request, SDK or REST.
retry_transient = retry(
    stop=stop_after_attempt(LLM_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(_is_retryable),
    reraise=True,
)


@retry_transient
def generate_content(
    contents: Any,
    *,
    model: str | None = None,
    system_instruction: str | None = None,
    generation_config: dict | None = None,
    safety_settings: list[dict[str, str]] | None = None,
    response_mime_type: str | None = None,
    counter_prefix: str = "llm",
) -> GeminiReply:
    """Call Gemini once (plus retries) and return the first candidate.

    Args:
        contents: Prompt string or list of ``{"role", "parts"}`` turns.
        model: Requested model name; resolved through the legacy map.
        system_instruction: Optional system instruction.
        generation_config: Sampling settings (temperature, top_p, ...).
        safety_settings: Optional harm-category thresholds.
        response_mime_type: ``"application/json"`` to ask for JSON mode.
        counter_prefix: Telemetry counter prefix (e.g. "grammar", "chat").

    Returns:
        GeminiReply with stripped text (possibly empty) and finish reason.

    Raises:
        MissingAPIKeyError: No server key configured (never retried).
        GeminiAPIError: Upstream or network failure after retries.
    """
    gemini_model = get_gemini_model(
        model, system_instruction=system_instruction, safety_settings=safety_settings
    )

    config = dict(generation_config or {})
    if response_mime_type:
        config["response_mime_type"] = response_mime_type

    counter(f"llm.{counter_prefix}.calls")
    try:
        response = gemini_model.generate_content(
            contents,
            generation_config=config,
            request_options={"timeout": LLM_TIMEOUT_SECONDS},
        )
    except GoogleAPICallError as e:
        raise _to_gemini_error(e, counter_prefix) from e
    except (TimeoutError, ConnectionError, OSError) as e:
        raise _to_gemini_error(e, counter_prefix) from e

    return GeminiReply(
        text=extract_candidate_text(response),
        finish_reason=extract_finish_reason(response),
    )


def call_llm(
    prompt: str,
    *,
    model: str | None = None,
    generation_config: dict | None = None,
    response_mime_type: str | None = None,
    counter_prefix: str = "llm",
) -> str:
    """Single-turn convenience wrapper returning only the reply text."""
    reply = generate_content(
        prompt,
        model=model,
        generation_config=generation_config,
        response_mime_type=response_mime_type,
        counter_prefix=counter_prefix,
    )
    return reply.text
