"""
Application-wide settings and environment configuration
"""

from __future__ import annotations

import os
from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
AIFRIEND_ROOT = Path(__file__).parent.parent

# Environment
ENV = os.getenv("AIFRIEND_ENV", "development")
DEBUG = ENV == "development"

# API Configuration
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
LOG_LEVEL = os.getenv("AIFRIEND_LOG_LEVEL", "INFO")

# Gemini
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-3-flash-preview")
GEMINI_TTS_MODEL = os.getenv("GEMINI_TTS_MODEL", "gemini-2.5-flash-preview-tts")
GEMINI_TTS_VOICE = os.getenv("GEMINI_TTS_VOICE", "Kore")
GEMINI_API_BASE_URL = os.getenv(
    "GEMINI_API_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)

# Web push (VAPID)
VAPID_MAILTO = os.getenv("VAPID_MAILTO", "mailto:test@example.com")

# Storage
DB_PATH = AIFRIEND_ROOT / "data" / "aifriend.db"


def get_server_api_key() -> str:
    """Gemini key for server-side calls.

    Read fresh on every call so a .env loaded after import is still honoured.
    """
    return (
        os.getenv("GEMINI_API_KEY")
        or os.getenv("VITE_GEMINI_API_KEY")
        or os.getenv("GOOGLE_API_KEY")
        or ""
    )


def get_vapid_public_key() -> str:
    return os.getenv("VAPID_PUBLIC_KEY") or os.getenv("VITE_VAPID_PUBLIC_KEY") or ""


def get_vapid_private_key() -> str:
    return os.getenv("VAPID_PRIVATE_KEY", "")


def get_db_path() -> Path:
    """Database path, overridable with AIFRIEND_DB_PATH (tests point it at tmp_path)."""
    if env_path := os.getenv("AIFRIEND_DB_PATH"):
        return Path(env_path)
    return DB_PATH


def is_production() -> bool:
    """Check if running in production"""
    return ENV == "production"


def is_development() -> bool:
    """Check if running in development"""
    return ENV == "development"
