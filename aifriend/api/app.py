"""FastAPI server for AI Friend"""

from __future__ import annotations

import os
import sqlite3
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aifriend.api.errors import EXCEPTION_HANDLERS
from aifriend.api.middleware.rate_limit import RateLimitMiddleware
from aifriend.api.middleware.security_headers import SecurityHeadersMiddleware
from aifriend.api.routes.chat import router as chat_router
from aifriend.api.routes.grammar import router as grammar_router
from aifriend.api.routes.health import router as health_router
from aifriend.api.routes.memory import router as memory_router
from aifriend.api.routes.native import router as native_router
from aifriend.api.routes.push import router as push_router
from aifriend.api.routes.translate import router as translate_router
from aifriend.api.routes.tts import router as tts_router
from aifriend.config import APP_VERSION, RATE_LIMIT_RPH, RATE_LIMIT_RPM
from aifriend.infrastructure.database import init_database
from aifriend.infrastructure.settings import API_HOST, API_PORT, LOG_LEVEL, is_development
from aifriend.observability.logging import get_logger
from aifriend.observability.telemetry import log_event

# Load environment variables from .env file
load_dotenv()

app = FastAPI(title="AI Friend API", version=APP_VERSION)

logger = get_logger(__name__)

for exc_class, handler in EXCEPTION_HANDLERS.items():
    app.add_exception_handler(exc_class, handler)

# CORS - the deployed web app plus any origins listed in AIFRIEND_ALLOWED_ORIGINS
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("AIFRIEND_ALLOWED_ORIGINS", "").split(",")
    if origin.strip()
]

if is_development():
    ALLOWED_ORIGINS.extend(
        [
            "http://localhost:5173",
            "http://localhost:3000",
            "http://127.0.0.1:5173",
            "http://127.0.0.1:3000",
        ]
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)

app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=RATE_LIMIT_RPM,
    requests_per_hour=RATE_LIMIT_RPH,
    allowed_origins=ALLOWED_ORIGINS,
)

app.add_middleware(SecurityHeadersMiddleware)

# Subscription storage schema
try:
    db_path = init_database()
    logger.info("Database ready at %s", db_path)
except sqlite3.OperationalError as e:
    logger.critical("Database schema error: %s", e)
    raise RuntimeError(f"Database initialization failed: {e}") from e

app.include_router(health_router)
app.include_router(chat_router)
app.include_router(grammar_router)
app.include_router(native_router)
app.include_router(translate_router)
app.include_router(memory_router)
app.include_router(tts_router)
app.include_router(push_router)

log_event("api.startup", service="aifriend", version=APP_VERSION)


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "AI Friend API",
        "version": APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "chat": "/api/chat",
            "grammar_feedback": "/api/grammar-feedback",
            "native_alternatives": "/api/native-alternatives",
            "translate": "/api/translate",
            "memory_summary": "/api/memory-summary",
            "tts": "/api/tts",
            "push": "/api/push",
            "cron": "/api/cron",
            "debug_stats": "/debug/stats",
        },
    }


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "aifriend.api.app:app",
        host=API_HOST,
        port=API_PORT,
        log_level=LOG_LEVEL.lower(),
    )
