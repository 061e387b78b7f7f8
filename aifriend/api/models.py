"""Request bodies for the AI Friend API.

Bodies are camelCase on the wire. Text fields are lenient: ``null`` and
numbers are coerced to strings so that blank input reaches the route and is
answered with ``400 <field> is required`` rather than a validation error.
Nested structures (history, profiles) stay loosely typed here and are
sanitized by the domain modules.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


class ModelSelection(RequestModel):
    model: str | None = None

    @field_validator("model", mode="before")
    @classmethod
    def coerce_model(cls, value: Any) -> str | None:
        if value is None:
            return None
        return _coerce_text(value).strip() or None


class ChatRequest(ModelSelection):
    message: str = ""
    history: list[Any] | None = None
    memory_summary: str = ""
    memory_profile: dict[str, Any] | None = None
    persona_profile: dict[str, Any] | None = None

    @field_validator("message", "memory_summary", mode="before")
    @classmethod
    def coerce_strings(cls, value: Any) -> str:
        return _coerce_text(value)


class TextRequest(ModelSelection):
    """Body shared by grammar-feedback and native-alternatives."""

    text: str = ""

    @field_validator("text", mode="before")
    @classmethod
    def coerce_strings(cls, value: Any) -> str:
        return _coerce_text(value)


class TranslateRequest(TextRequest):
    target_lang: str = ""

    @field_validator("target_lang", mode="before")
    @classmethod
    def coerce_target(cls, value: Any) -> str:
        return _coerce_text(value)


class MemorySummaryRequest(ModelSelection):
    current_summary: str = ""
    history: list[Any] | None = None
    current_profile: dict[str, Any] | None = None

    @field_validator("current_summary", mode="before")
    @classmethod
    def coerce_strings(cls, value: Any) -> str:
        return _coerce_text(value)


class TTSRequest(RequestModel):
    text: str = ""
    voice_name: str = ""
    style: str = ""

    @field_validator("text", "voice_name", "style", mode="before")
    @classmethod
    def coerce_strings(cls, value: Any) -> str:
        return _coerce_text(value)


class PushSubscriptionRequest(BaseModel):
    """A browser ``PushSubscription.toJSON()``; unknown fields are kept as sent."""

    model_config = ConfigDict(extra="allow")

    endpoint: str = ""
    keys: dict[str, str] | None = None

    @field_validator("endpoint", mode="before")
    @classmethod
    def coerce_endpoint(cls, value: Any) -> str:
        return _coerce_text(value).strip()
