"""
Language Detection Service

Picks the answer language for a question using langdetect, restricted to the
languages Formateur has templates for. Anything else (short text, other
languages, detection failure) falls back to the configured default.
"""

from dataclasses import dataclass

from langdetect import DetectorFactory, detect_langs
from langdetect.lang_detect_exception import LangDetectException

# Seed langdetect for deterministic results
DetectorFactory.seed = 0

SUPPORTED_LANGUAGES = ("fr", "en")

# Below this many characters langdetect is unreliable
MIN_DETECTION_LENGTH = 12
MIN_PROBABILITY = 0.2


@dataclass(frozen=True)
class LanguageInfo:
    """Detected language information"""
    code: str           # ISO 639-1: "fr", "en"
    confidence: float   # 0.0~1.0
    detected: bool      # False when the default was used


def detect_language(text: str, default: str = "fr") -> LanguageInfo:
    """Detect the answer language of input text.

    Args:
        text: Question text
        default: Language used when detection is not conclusive

    Returns:
        LanguageInfo with a code from SUPPORTED_LANGUAGES
    """
    fallback = LanguageInfo(code=default, confidence=0.0, detected=False)

    if not text or len(text.strip()) < MIN_DETECTION_LENGTH:
        return fallback

    try:
        results = detect_langs(text.strip())
    except LangDetectException:
        return fallback

    for candidate in results:
        if candidate.lang in SUPPORTED_LANGUAGES and candidate.prob >= MIN_PROBABILITY:
            return LanguageInfo(
                code=candidate.lang,
                confidence=round(candidate.prob, 4),
                detected=True,
            )

    return fallback


def resolve_language(text: str, setting: str, default: str = "fr") -> str:
    """Return the answer language code for a pipeline ``language`` setting."""
    if setting in SUPPORTED_LANGUAGES:
        return setting
    return detect_language(text, default=default).code
