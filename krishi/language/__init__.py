"""Language detection and code translation."""

from krishi.language.codes import language_name, to_speech_locale, to_tts_language
from krishi.language.detect import DEFAULT_LANGUAGE, detect_language

__all__ = [
    "DEFAULT_LANGUAGE",
    "detect_language",
    "language_name",
    "to_speech_locale",
    "to_tts_language",
]
