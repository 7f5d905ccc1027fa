"""Lookup tables from detected language codes to speech and TTS tags.

The detector reports ISO 639-3 codes (``hin``) while a caller override
yields the ISO 639-1 primary subtag (``hi``); both resolve to the same
entry. Unknown codes fall back to English silently.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_SPEECH_LOCALE = "en-US"
DEFAULT_TTS_LANGUAGE = "en"


@dataclass(frozen=True)
class Language:
    """One supported language."""

    name: str
    iso1: str
    speech_locale: str
    tts_language: str


LANGUAGES: dict[str, Language] = {
    "eng": Language("English", "en", "en-US", "en"),
    "hin": Language("Hindi", "hi", "hi-IN", "hi"),
    "tam": Language("Tamil", "ta", "ta-IN", "ta"),
    "tel": Language("Telugu", "te", "te-IN", "te"),
    "kan": Language("Kannada", "kn", "kn-IN", "kn"),
    "asm": Language("Assamese", "as", "as-IN", "as"),
    "ben": Language("Bengali", "bn", "bn-IN", "bn"),
    "guj": Language("Gujarati", "gu", "gu-IN", "gu"),
    "mal": Language("Malayalam", "ml", "ml-IN", "ml"),
    "mar": Language("Marathi", "mr", "mr-IN", "mr"),
    "pan": Language("Punjabi", "pa", "pa-IN", "pa"),
    "ori": Language("Odia", "or", "or-IN", "or"),
    "urd": Language("Urdu", "ur", "ur-IN", "ur"),
    "nep": Language("Nepali", "ne", "ne-NP", "ne"),
    "fra": Language("French", "fr", "fr-FR", "fr"),
    "spa": Language("Spanish", "es", "es-ES", "es"),
}

# Reverse lookup: ISO 639-1 → ISO 639-3
ISO1_TO_ISO3: dict[str, str] = {lang.iso1: code for code, lang in LANGUAGES.items()}


def lookup(code: str) -> Language | None:
    """Resolve a 639-3 or 639-1 code (case-insensitive). Returns None if unsupported."""
    key = code.strip().lower()
    if key in LANGUAGES:
        return LANGUAGES[key]
    if key in ISO1_TO_ISO3:
        return LANGUAGES[ISO1_TO_ISO3[key]]
    return None


def to_speech_locale(code: str) -> str:
    """Browser speech-API locale for *code*, e.g. ``hin`` → ``hi-IN``."""
    lang = lookup(code)
    return lang.speech_locale if lang else DEFAULT_SPEECH_LOCALE


def to_tts_language(code: str) -> str:
    """Reverie TTS language tag for *code*, e.g. ``hin`` → ``hi``."""
    lang = lookup(code)
    return lang.tts_language if lang else DEFAULT_TTS_LANGUAGE


def language_name(code: str) -> str:
    """English display name, or the code itself when unsupported."""
    lang = lookup(code)
    return lang.name if lang else code
