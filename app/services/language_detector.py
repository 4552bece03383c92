"""
Script-based language detection for English/Arabic messages.
"""
import re
from dataclasses import dataclass

ARABIC_CHAR_PATTERN = re.compile(r"[\u0600-\u06FF]")
LATIN_CHAR_PATTERN = re.compile(r"[A-Za-z]")

DEFAULT_LANGUAGE = "en"


@dataclass
class LanguageDetection:
    """Result of a detection pass with the raw character counts."""
    language: str
    arabic_chars: int
    latin_chars: int
    certainty: float


def detect_with_certainty(text: str, ratio: float = 0.5) -> LanguageDetection:
    """
    Classify text as Arabic or English by character counts.

    Args:
        text: Raw message text
        ratio: Arabic wins when arabic_chars > ratio * latin_chars

    Returns:
        LanguageDetection; certainty is |arabic - latin| / (arabic + latin)
        and 0.0 when the text has no letters at all.
    """
    if not text or not text.strip():
        return LanguageDetection(DEFAULT_LANGUAGE, 0, 0, 0.0)

    arabic = len(ARABIC_CHAR_PATTERN.findall(text))
    latin = len(LATIN_CHAR_PATTERN.findall(text))
    total = arabic + latin
    if total == 0:
        return LanguageDetection(DEFAULT_LANGUAGE, 0, 0, 0.0)

    language = "ar" if arabic > latin * ratio else "en"
    certainty = abs(arabic - latin) / total
    return LanguageDetection(language, arabic, latin, certainty)


def detect_language(text: str, ratio: float = 0.5) -> str:
    """Return "ar" or "en" for the given text."""
    return detect_with_certainty(text, ratio).language
