"""
Text-to-speech through the Gemini TTS model.

google-generativeai has no speech config, so this module calls the REST
``generateContent`` endpoint directly with ``requests``. Gemini returns raw
16-bit mono PCM (base64) with the sample rate in the mime type; it is wrapped
in a RIFF/WAV container so browsers can play it.
"""

from __future__ import annotations

import base64
import io
import re
import wave

import requests

from aifriend.config import (
    GEMINI_API_BASE_URL,
    GEMINI_TTS_MODEL,
    GEMINI_TTS_VOICE,
    LLM_TIMEOUT_SECONDS,
    TTS_DEFAULT_SAMPLE_RATE,
)
from aifriend.infrastructure.settings import get_server_api_key
from aifriend.llm.gemini import MissingAPIKeyError
from aifriend.llm.prompts import get_tts_prompt
from aifriend.llm.retry import retry_transient, upstream_error
from aifriend.observability.logging import get_logger
from aifriend.observability.telemetry import counter, log_event

logger = get_logger(__name__)

_SAMPLE_RATE = re.compile(r"rate=(\d+)", re.IGNORECASE)


class NoAudioError(RuntimeError):
    """Gemini answered successfully but without inline audio."""

    status_code = 502

    def __init__(self, message: str = "No audio returned from Gemini TTS"):
        super().__init__(message)


def parse_sample_rate(mime_type: str | None) -> int:
    """Sample rate from e.g. ``audio/L16;codec=pcm;rate=24000``; default 24000."""
    match = _SAMPLE_RATE.search(str(mime_type or ""))
    rate = int(match.group(1)) if match else 0
    return rate if rate > 0 else TTS_DEFAULT_SAMPLE_RATE


def pcm_to_wav(pcm: bytes, sample_rate: int = TTS_DEFAULT_SAMPLE_RATE) -> bytes:
    """Wrap 16-bit little-endian mono PCM in a 44-byte RIFF header."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buffer.getvalue()


def build_tts_request(prompt: str, voice_name: str) -> dict:
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "responseModalities": ["AUDIO"],
            "speechConfig": {"voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice_name}}},
        },
    }


@retry_transient
def _post_generate_content(api_key: str, payload: dict) -> dict:
    url = f"{GEMINI_API_BASE_URL}/models/{GEMINI_TTS_MODEL}:generateContent"
    try:
        response = requests.post(
            url,
            json=payload,
            headers={"x-goog-api-key": api_key},
            timeout=LLM_TIMEOUT_SECONDS,
        )
    except requests.exceptions.RequestException as e:
        raise upstream_error(str(e), None, "tts") from e

    try:
        data = response.json()
    except ValueError:
        data = {}

    if not response.ok:
        error = data.get("error") if isinstance(data, dict) else None
        message = (error or {}).get("message") or f"HTTP {response.status_code}"
        raise upstream_error(message, response.status_code, "tts")
    return data if isinstance(data, dict) else {}


def extract_inline_audio(data: dict) -> tuple[bytes, str]:
    """(pcm bytes, mime type) from the first candidate part.

    Raises:
        NoAudioError: If the reply carries no inline audio
    """
    try:
        part = data["candidates"][0]["content"]["parts"][0]
        inline = part["inlineData"]
        encoded = inline["data"]
    except (KeyError, IndexError, TypeError) as e:
        raise NoAudioError() from e
    if not encoded:
        raise NoAudioError()
    return base64.b64decode(encoded), str(inline.get("mimeType") or "")


def synthesize_speech(text: str, voice_name: str | None = None, style: str | None = None) -> bytes:
    """
    Speak ``text`` and return a WAV file.

    Args:
        text: What to say
        voice_name: Prebuilt Gemini voice; defaults to GEMINI_TTS_VOICE
        style: Optional delivery instruction placed before the text

    Raises:
        MissingAPIKeyError: No server key configured
        GeminiAPIError: Upstream non-2xx or network failure
        NoAudioError: Upstream replied without audio
    """
    api_key = get_server_api_key()
    if not api_key:
        raise MissingAPIKeyError()

    voice = (voice_name or "").strip() or GEMINI_TTS_VOICE
    prompt = get_tts_prompt(text.strip(), (style or "").strip())
    counter("speech.tts.calls")
    data = _post_generate_content(api_key, build_tts_request(prompt, voice))

    pcm, mime_type = extract_inline_audio(data)
    sample_rate = parse_sample_rate(mime_type)
    log_event("speech.tts.synthesized", voice=voice, sample_rate=sample_rate, pcm_bytes=len(pcm))
    return pcm_to_wav(pcm, sample_rate)
