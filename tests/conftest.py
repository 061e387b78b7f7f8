"""
Pytest configuration shared by the unit and integration suites

Every test gets a server API key, its own SQLite file and fresh telemetry.
Gemini is never called: tests script model replies with ``ScriptedLLM``.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

import pytest

# Must be set before aifriend.api.app is imported (it initializes the DB and
# builds the rate limiter at import time).
os.environ.setdefault(
    "AIFRIEND_DB_PATH", str(Path(tempfile.mkdtemp(prefix="aifriend-tests-")) / "aifriend.db")
)
os.environ.setdefault("AIFRIEND_RATE_LIMIT_RPM", "100000")
os.environ.setdefault("AIFRIEND_RATE_LIMIT_RPH", "100000")


class ScriptedLLM:
    """
    Stand-in for ``call_llm``: returns the scripted replies in order.

    A scripted item that is an exception is raised instead of returned.
    Every call is recorded as ``(prompt, kwargs)``.
    """

    def __init__(self, *replies: Any):
        self.replies = list(replies)
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, prompt: str, **kwargs: Any) -> str:
        self.calls.append((prompt, kwargs))
        if not self.replies:
            raise AssertionError(f"Unexpected LLM call #{len(self.calls)}")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    @property
    def prompts(self) -> list[str]:
        return [prompt for prompt, _ in self.calls]


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    """API key present, per-test database, clean counters."""
    from aifriend.observability.telemetry import reset_telemetry

    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("AIFRIEND_DB_PATH", str(tmp_path / "aifriend.db"))
    reset_telemetry()
    yield
    reset_telemetry()


@pytest.fixture
def no_api_key(monkeypatch):
    for name in ("GEMINI_API_KEY", "VITE_GEMINI_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def scripted_llm():
    """Factory: ``scripted_llm("reply 1", ValueError(), ...)``."""
    return ScriptedLLM


@pytest.fixture
def patch_llm(monkeypatch):
    """Route every ``call_llm`` in the app through a ScriptedLLM and return it."""

    def install(*replies: Any) -> ScriptedLLM:
        fake = ScriptedLLM(*replies)
        monkeypatch.setattr("aifriend.llm.retry.call_llm", fake)
        return fake

    return install
