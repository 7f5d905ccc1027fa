"""Reverie text-to-speech client using aiohttp."""

from __future__ import annotations

import logging

import aiohttp

from krishi.config import settings
from krishi.errors import (
    ConfigurationError,
    EmptyAudioError,
    UpstreamProviderError,
    ValidationError,
)

logger = logging.getLogger(__name__)

AUDIO_MIME_TYPE = "audio/wav"
DEFAULT_LANGUAGE = "en"

_session: aiohttp.ClientSession | None = None


def _get_session() -> aiohttp.ClientSession:
    """Return (and lazily create) the shared aiohttp session."""
    global _session  # noqa: PLW0603
    if _session is None or _session.closed:
        _session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=settings.http_timeout_seconds * 3),
        )
    return _session


async def close_session() -> None:
    """Close the shared session (server shutdown)."""
    global _session  # noqa: PLW0603
    if _session is not None and not _session.closed:
        await _session.close()
    _session = None


def speaker_for(language: str) -> str:
    """Reverie speaker id for a language tag, e.g. ``hi`` → ``hi_female``."""
    return f"{language}_female"


def _preview(text: str) -> str:
    return text[:50] + ("..." if len(text) > 50 else "")


async def synthesize(text: str, language: str | None = None) -> bytes:
    """Synthesize *text* in *language* and return raw WAV bytes.

    One attempt only; every failure is raised so the caller can fall back
    to browser speech.

    Raises:
        ValidationError: *text* is empty after trimming.
        ConfigurationError: Reverie credentials are missing.
        UpstreamProviderError: Reverie answered with a non-success status.
        EmptyAudioError: Reverie answered successfully with no audio.
    """
    spoken = (text or "").strip()
    if not spoken:
        raise ValidationError("Text is required")

    if not settings.reverie_api_key.strip():
        raise ConfigurationError("TTS service not configured. Please set REVERIE_API_KEY")
    if not settings.reverie_app_id.strip():
        raise ConfigurationError("TTS service not configured. Please set REVERIE_APP_ID")

    lang = language or DEFAULT_LANGUAGE
    speaker = speaker_for(lang)
    logger.info(
        'TTS request: language=%s, speaker=%s, text="%s" (%d chars)',
        lang,
        speaker,
        _preview(spoken),
        len(spoken),
    )

    headers = {
        "Content-Type": "application/json; charset=utf-8",
        "REV-API-KEY": settings.reverie_api_key,
        "REV-APP-ID": settings.reverie_app_id,
        "REV-APPNAME": "tts",
        "speaker": speaker,
    }

    session = _get_session()
    try:
        async with session.post(
            settings.reverie_tts_url, json={"text": spoken}, headers=headers
        ) as resp:
            if resp.status >= 400:
                body = await resp.text()
                logger.error("Reverie error [%d] for %s: %s", resp.status, lang, body[:200])
                raise UpstreamProviderError(
                    f'Reverie TTS failed for language "{lang}": {body}',
                    provider="reverie",
                    status=resp.status,
                    body=body,
                )
            audio = await resp.read()
    except aiohttp.ClientError as exc:
        logger.error("Reverie request failed for %s: %s", lang, exc)
        raise UpstreamProviderError(
            "TTS service is unreachable", provider="reverie"
        ) from exc

    if not audio:
        logger.error("Reverie returned empty audio for %s", lang)
        raise EmptyAudioError("Empty audio received from TTS service", provider="reverie")

    logger.info("TTS success: %d bytes for %s", len(audio), lang)
    return audio
