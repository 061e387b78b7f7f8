"""
Per-chat personality sliders.

Five 1-5 sliders are turned into plain-language style directives appended to
the chat system prompt.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ValidationInfo, field_validator

PERSONA_DEFAULTS: dict[str, int] = {
    "warmth": 4,
    "playfulness": 3,
    "directness": 3,
    "curiosity": 4,
    "verbosity": 2,
}

# (label shown to the model, one directive per slider value 1..5)
PERSONA_DIRECTIVES: dict[str, tuple[str, tuple[str, ...]]] = {
    "warmth": (
        "Warmth",
        (
            "Keep the tone emotionally neutral and calm.",
            "Keep the tone calm with light friendliness.",
            "Use a balanced friendly tone.",
            "Use a warm and supportive tone.",
            "Be very warm, affectionate, and encouraging without sounding artificial.",
        ),
    ),
    "playfulness": (
        "Playfulness",
        (
            "Stay mostly serious and straightforward.",
            "Use very light playful energy only when natural.",
            "Use occasional light playful phrasing.",
            "Be noticeably playful with friendly reactions when appropriate.",
            "Use a playful, lively texting vibe often, but keep it natural.",
        ),
    ),
    "directness": (
        "Directness",
        (
            "Be gentle and indirect when phrasing suggestions or opinions.",
            "Lean soft and polite in phrasing.",
            "Use balanced directness.",
            "Be fairly direct and clear about your point.",
            "Be very direct and concise, but not rude.",
        ),
    ),
    "curiosity": (
        "Curiosity",
        (
            "Ask follow-up questions rarely unless needed.",
            "Ask occasional follow-up questions only when helpful.",
            "Use balanced curiosity with some follow-up questions.",
            "Show clear curiosity and ask follow-up questions fairly often.",
            "Be highly curious and often ask short, relevant follow-up questions.",
        ),
    ),
    "verbosity": (
        "Reply length",
        (
            "Prefer extremely compact replies within the existing concise style.",
            "Keep replies short and tight.",
            "Use a balanced reply length while staying concise.",
            "Use slightly fuller replies, still concise.",
            "Use the fullest replies allowed by the existing concise style "
            "(still short, no paragraphs).",
        ),
    ),
}


def clamp_persona_value(value: Any, default: int) -> int:
    """Round to the nearest integer in 1..5; non-numeric input gives ``default``.

    A cleared slider (``None`` or a blank string) counts as 0 and clamps to 1.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return 1
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    # half-up like the client slider, not banker's rounding
    return min(5, max(1, math.floor(number + 0.5)))


class PersonaProfile(BaseModel):
    warmth: int = PERSONA_DEFAULTS["warmth"]
    playfulness: int = PERSONA_DEFAULTS["playfulness"]
    directness: int = PERSONA_DEFAULTS["directness"]
    curiosity: int = PERSONA_DEFAULTS["curiosity"]
    verbosity: int = PERSONA_DEFAULTS["verbosity"]

    @field_validator(*PERSONA_DEFAULTS, mode="before")
    @classmethod
    def clamp_sliders(cls, value: Any, info: ValidationInfo) -> int:
        return clamp_persona_value(value, PERSONA_DEFAULTS[info.field_name])

    @classmethod
    def from_any(cls, value: Any) -> PersonaProfile:
        if isinstance(value, PersonaProfile):
            return value
        if not isinstance(value, dict):
            return cls()
        return cls.model_validate({key: value[key] for key in PERSONA_DEFAULTS if key in value})


def build_persona_prompt_block(persona: PersonaProfile) -> str:
    lines = ["Per-chat personality settings (apply naturally):"]
    for key, (label, directives) in PERSONA_DIRECTIVES.items():
        level = getattr(persona, key)
        lines.append(f"- {label} {level}/5: {directives[level - 1]}")
    return "\n".join(lines)
