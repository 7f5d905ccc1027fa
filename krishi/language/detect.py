"""Statistical language detection restricted to the supported set."""

from __future__ import annotations

import logging

from langdetect import DetectorFactory, LangDetectException, detect_langs

from krishi.config import settings
from krishi.language.codes import ISO1_TO_ISO3

logger = logging.getLogger(__name__)

# langdetect is randomised unless seeded
DetectorFactory.seed = 0

DEFAULT_LANGUAGE = "eng"
AUTO = "auto"
MIN_SAMPLE_LENGTH = 3


def _primary_subtag(tag: str) -> str:
    return tag.strip().split("-")[0]


def detect_language(
    text: str,
    override: str | None = None,
    *,
    min_confidence: float | None = None,
) -> str:
    """Return the language code for *text*.

    A caller override other than ``"auto"`` wins outright and is reduced to
    its primary subtag (``"hi-IN"`` → ``"hi"``). Otherwise the best
    supported candidate from langdetect is returned as an ISO 639-3 code;
    its confidence is its share of the probability held by supported
    languages.
    Short samples, low-confidence results and detector errors all fall
    back to ``"eng"``; this function never raises.
    """
    if override and override.strip() and override.strip().lower() != AUTO:
        return _primary_subtag(override)

    sample = (text or "").strip()
    if len(sample) < MIN_SAMPLE_LENGTH:
        return DEFAULT_LANGUAGE

    threshold = settings.language_min_confidence if min_confidence is None else min_confidence
    try:
        candidates = detect_langs(sample)
    except LangDetectException:
        logger.debug("No detectable features in %r, using %s", sample[:40], DEFAULT_LANGUAGE)
        return DEFAULT_LANGUAGE
    except Exception:
        logger.exception("Language detection failed")
        return DEFAULT_LANGUAGE

    supported = [(ISO1_TO_ISO3[c.lang], c.prob) for c in candidates if c.lang in ISO1_TO_ISO3]
    total = sum(prob for _, prob in supported)
    if supported and total > 0:
        code, prob = max(supported, key=lambda item: item[1])
        # confidence among supported languages only
        if prob / total >= threshold:
            return code

    logger.debug("No confident supported language for %r, using %s", sample[:40], DEFAULT_LANGUAGE)
    return DEFAULT_LANGUAGE
