"""Error responses for the AI Friend API

Every failure is answered as ``{"error": "<message>"}`` so the browser client
can show one field regardless of which endpoint failed.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from aifriend.chat.service import EmptyReplyError
from aifriend.infrastructure.settings import get_server_api_key
from aifriend.llm.gemini import GeminiAPIError, MissingAPIKeyError, describe_upstream_error
from aifriend.observability.logging import get_logger
from aifriend.observability.telemetry import counter
from aifriend.push.service import EmptyProactiveMessageError, PushConfigurationError
from aifriend.speech.tts import NoAudioError
from aifriend.utils.redaction import redact

logger = get_logger(__name__)

# Network failures have no upstream status of their own
UPSTREAM_UNREACHABLE_STATUS = status.HTTP_502_BAD_GATEWAY


class APIError(Exception):
    """An error answered directly with ``status_code`` and ``{"error": message}``."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={**extra, "error": message})


def require_text(value: Any, field: str) -> str:
    """
    Return ``value`` stripped, or raise a 400 when it is blank.

    Raises:
        APIError: 400 ``<field> is required``
    """
    text = str(value or "").strip()
    if not text:
        raise APIError(status.HTTP_400_BAD_REQUEST, f"{field} is required")
    return text


def require_server_api_key() -> None:
    """Fail fast with 500 before any upstream call when no key is configured."""
    if not get_server_api_key():
        raise MissingAPIKeyError()


def upstream_status(exc: GeminiAPIError) -> int:
    return exc.status_code or UPSTREAM_UNREACHABLE_STATUS


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return error_response(exc.status_code, exc.message)


async def missing_api_key_handler(request: Request, exc: MissingAPIKeyError) -> JSONResponse:
    logger.error("Request to %s rejected: %s", request.url.path, exc)
    counter("api.missing_api_key")
    return error_response(exc.status_code, str(exc))


async def gemini_error_handler(request: Request, exc: GeminiAPIError) -> JSONResponse:
    logger.warning(
        "Upstream failure on %s (status=%s): %s", request.url.path, exc.status_code, exc
    )
    counter("api.upstream_errors")
    return error_response(upstream_status(exc), describe_upstream_error(exc))


async def service_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Domain errors that carry their own ``status_code`` (empty reply, no audio, ...)."""
    logger.warning("Request to %s failed: %s", request.url.path, exc)
    return error_response(getattr(exc, "status_code", 500), str(exc))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report which fields were invalid without echoing validation rules or input."""
    logger.warning("Validation error on %s: %s", redact(str(request.url)), exc.errors())
    counter("api.validation_errors")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Invalid request format. Please check your request and try again.",
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


EXCEPTION_HANDLERS = {
    APIError: api_error_handler,
    MissingAPIKeyError: missing_api_key_handler,
    GeminiAPIError: gemini_error_handler,
    EmptyReplyError: service_error_handler,
    NoAudioError: service_error_handler,
    EmptyProactiveMessageError: service_error_handler,
    PushConfigurationError: service_error_handler,
    RequestValidationError: validation_exception_handler,
}
