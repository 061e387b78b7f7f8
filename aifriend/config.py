"""Centralized configuration for the AI Friend backend.

Re-exports everything from aifriend.infrastructure.settings so callers have a
single import point, then adds typed constants for LLM calls, chat context,
memory, coaching, push and rate-limiting.  Environment variable overrides use
safe defaults so the app starts without extra env configuration.
"""

from __future__ import annotations

import os

from aifriend.infrastructure.settings import *  # noqa: F401, F403  re-export existing

# --- App ---
APP_VERSION: str = "1.0.0"

# --- LLM ---
LLM_TIMEOUT_SECONDS: int = int(os.getenv("AIFRIEND_LLM_TIMEOUT", "30"))
LLM_MAX_RETRIES: int = int(os.getenv("AIFRIEND_LLM_MAX_RETRIES", "3"))

LEGACY_MODEL_MAP: dict[str, str] = {
    "gemini-1.5-flash": "gemini-3-flash-preview",
    "gemini-1.5-pro": "gemini-3-pro-preview",
}
FALLBACK_MODELS: tuple[str, ...] = ("gemini-3-flash-preview", "gemini-3-pro-preview")

HARM_CATEGORIES: tuple[str, ...] = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

# --- Generation configs (per feature) ---
CHAT_GENERATION_CONFIG: dict[str, float | int] = {
    "temperature": 0.8,
    "top_p": 0.95,
    "top_k": 40,
    "max_output_tokens": 512,
}
GRAMMAR_GENERATION_CONFIG: dict[str, float | int] = {"temperature": 0.1, "max_output_tokens": 2048}
NATIVE_GENERATION_CONFIG: dict[str, float | int] = {"temperature": 0.4, "max_output_tokens": 1024}
TRANSLATE_GENERATION_CONFIG: dict[str, float | int] = {
    "temperature": 0.1,
    "max_output_tokens": 1024,
}
MEMORY_GENERATION_CONFIG: dict[str, float | int] = {"temperature": 0, "max_output_tokens": 768}

# --- Chat context ---
CHAT_HISTORY_LIMIT: int = 16
MEMORY_HISTORY_LIMIT: int = 20
LONG_TERM_MEMORY_MAX_CHARS: int = 2600

# --- Memory ---
MEMORY_SUMMARY_INPUT_MAX_CHARS: int = 2600
MEMORY_SUMMARY_OUTPUT_MAX_CHARS: int = 1400
MEMORY_SUMMARY_MAX_LINES: int = 12
MEMORY_ITEM_MAX_CHARS: int = 180
MEMORY_ITEMS_PER_FIELD: int = 10

# --- Coaching ---
NATIVE_ALTERNATIVES_COUNT: int = 3
FEEDBACK_POINTS_MAX: int = 6
DEFAULT_TRANSLATION_TARGET: str = "Korean"
TRANSLATION_EMPTY_FALLBACK: str = "번역 실패 (데이터 없음)"

# --- TTS ---
TTS_DEFAULT_SAMPLE_RATE: int = 24000

# --- Push / cron ---
PUSH_SUBSCRIPTIONS_SET: str = "subscriptions"
PUSH_NOTIFICATION_TITLE: str = "AI Friend"
CRON_ACTIVE_START_HOUR_KST: int = 9
CRON_ACTIVE_END_HOUR_KST: int = 22
CRON_SEND_PROBABILITY: float = 0.17

# --- Rate Limiting ---
RATE_LIMIT_RPM: int = int(os.getenv("AIFRIEND_RATE_LIMIT_RPM", "60"))
RATE_LIMIT_RPH: int = int(os.getenv("AIFRIEND_RATE_LIMIT_RPH", "1000"))
RATE_LIMIT_MAX_IPS: int = 10000
# Header set by the hosting proxy; X-Forwarded-For is only trusted when present
RATE_LIMIT_TRUSTED_PROXY_HEADER: str = os.getenv(
    "AIFRIEND_TRUSTED_PROXY_HEADER", "X-Cloud-Trace-Context"
)

# --- Database ---
DB_CONNECT_TIMEOUT: float = 10.0
DB_RETRY_MAX: int = 5
DB_RETRY_BASE_DELAY: float = 0.1
DB_RETRY_MAX_DELAY: float = 2.0
DB_RETRY_JITTER: float = 0.1
