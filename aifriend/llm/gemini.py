"""
Gemini model factory and upstream error types.

Every feature talks to the same hosted Gemini API through google-generativeai
with a server-side API key. The key is read at call time (see
``get_server_api_key``) so a ``.env`` loaded after import is still honoured,
and ``genai.configure`` is re-run whenever the key changes.
"""

from __future__ import annotations

import threading

import google.generativeai as genai

from aifriend.config import FALLBACK_MODELS, GEMINI_MODEL, HARM_CATEGORIES, LEGACY_MODEL_MAP
from aifriend.infrastructure.settings import get_server_api_key
from aifriend.observability.logging import get_logger

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

_configure_lock = threading.Lock()
_configured_key: str | None = None


class MissingAPIKeyError(RuntimeError):
    """Raised when no server-side Gemini key is configured."""

    status_code = 500

    def __init__(self, message: str = "Missing GEMINI_API_KEY"):
        super().__init__(message)


class GeminiAPIError(RuntimeError):
    """Upstream Gemini failure carrying the HTTP status when one is known.

    ``status_code`` is None for network-level failures (DNS, reset, timeout
    before a response), which are always worth retrying.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code in RETRYABLE_STATUS_CODES


def _ensure_configured() -> str:
    """Configure the SDK with the current server key and return it.

    Raises:
        MissingAPIKeyError: If no key is available
    """
    global _configured_key
    api_key = get_server_api_key()
    if not api_key:
        raise MissingAPIKeyError()

    with _configure_lock:
        if api_key != _configured_key:
            genai.configure(api_key=api_key)
            _configured_key = api_key
            logger.info("Configured google-generativeai client")
    return api_key


def resolve_model_name(model: str | None = None) -> str:
    """Map a requested model name onto one the API still serves.

    Blank names fall back to the default model; retired 1.5 names are
    rewritten to their current equivalents.
    """
    name = str(model or "").strip() or GEMINI_MODEL
    return LEGACY_MODEL_MAP.get(name, name)


def model_fallback_chain(model: str | None = None) -> list[str]:
    """Requested model first, then the remaining fallback models, no repeats."""
    chain: list[str] = []
    for name in (resolve_model_name(model), *FALLBACK_MODELS):
        if name and name not in chain:
            chain.append(name)
    return chain


def permissive_safety_settings() -> list[dict[str, str]]:
    return [{"category": category, "threshold": "BLOCK_NONE"} for category in HARM_CATEGORIES]


def get_gemini_model(
    model_name: str | None = None,
    system_instruction: str | None = None,
    safety_settings: list[dict[str, str]] | None = None,
):
    """
    Create a Gemini model instance.

    System instructions are per-model-instance in the Gemini API, so a fresh
    GenerativeModel is built per call. Construction is local and cheap; no
    request is made until ``generate_content``.

    Args:
        model_name: Requested model (resolved through ``resolve_model_name``)
        system_instruction: Optional system instruction for the model
        safety_settings: Optional safety thresholds

    Returns:
        genai.GenerativeModel

    Raises:
        MissingAPIKeyError: If no server key is configured
    """
    _ensure_configured()
    kwargs = {}
    if system_instruction:
        kwargs["system_instruction"] = system_instruction
    if safety_settings:
        kwargs["safety_settings"] = safety_settings
    return genai.GenerativeModel(resolve_model_name(model_name), **kwargs)


def is_model_unavailable(exc: Exception) -> bool:
    """True when the upstream says the model itself is unknown or unsupported."""
    if isinstance(exc, GeminiAPIError) and exc.status_code == 404:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in ("not found", "not supported", "unknown model"))


def describe_upstream_error(exc: Exception) -> str:
    """User-facing message for an upstream failure.

    Distinguishes invalid key, quota exhaustion and connectivity problems;
    anything else keeps the upstream message.
    """
    if isinstance(exc, MissingAPIKeyError):
        return str(exc)

    message = str(exc) or exc.__class__.__name__
    status = getattr(exc, "status_code", None)
    upper = message.upper()

    if status in (400, 401, 403) and ("API_KEY" in upper or "API KEY" in upper or status != 400):
        return "The Gemini API key is invalid or lacks permission."
    if "API_KEY_INVALID" in upper:
        return "The Gemini API key is invalid or lacks permission."
    if status == 429 or "QUOTA" in upper or "RESOURCE_EXHAUSTED" in upper:
        return "Gemini quota exceeded. Please try again later."
    if isinstance(exc, GeminiAPIError) and status is None:
        return "Could not reach Gemini. Check the network connection."
    return message
