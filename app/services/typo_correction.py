"""
Typo Correction Service.

Suggests spelling corrections for a draft message before it is sent. The
suggestion never touches conversation context; callers decide whether to
apply it.

Key features:
- OpenAI JSON-mode correction with Arabic-specific guidance
- Filtering of insignificant corrections (case-only, tiny edits)
- Debounced submission: a new input cancels the pending request
"""
import os
import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass

from openai import OpenAI

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 3
MIN_DIFFERENCE_RATIO = 0.1
COMMON_WORDS = {"the", "a", "an", "is", "are", "in", "on", "at", "to", "for", "of"}

LANGUAGE_GUIDANCE = {
    "ar": (
        "The text is in Arabic. Pay special attention to Arabic spelling, including proper hamzas "
        "(ء,أ,إ,ئ,ؤ), taa marbouta (ة/ه), alif maqsura (ى/ي), and similar looking letters such as "
        "(س/ش), (ص/ض), (ط/ظ). Always keep diacritics (tashkeel) if present in the original text."
    ),
    "en": "The text is in English. Provide corrections if there are obvious spelling errors.",
}

SYSTEM_PROMPT = """You are a helpful assistant that corrects typos. {guidance}
Only respond with corrections if there are obvious typos.
Do not change the meaning of the text or correct grammar unless it is clearly a typo.
Do NOT suggest corrections that only capitalize letters.
Always return the complete corrected text, not just the corrected word.
Respond as JSON with keys: "hasTypos" (boolean), "corrected" (string), "confidence" (0-1),
"originalWord" (string), "correctedWord" (string), "numberOfCorrections" (integer)."""


@dataclass
class CorrectionSuggestion:
    """A correction worth showing to the user."""
    original: str
    corrected: str
    original_word: str
    corrected_word: str
    confidence: float
    multiple_corrections: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original": self.original,
            "corrected": self.corrected,
            "original_word": self.original_word,
            "corrected_word": self.corrected_word,
            "confidence": self.confidence,
            "multiple_corrections": self.multiple_corrections,
        }


def is_only_capitalization_difference(original: str, corrected: str) -> bool:
    return len(original) == len(corrected) and original.lower() == corrected.lower()


def is_significant_correction(original: str, corrected: str) -> bool:
    """
    Decide whether a correction is worth surfacing.

    Identical text, case-only edits, changes among common short words and
    edits touching under 10% of the characters are not significant.
    """
    if original == corrected or is_only_capitalization_difference(original, corrected):
        return False

    original_words = original.lower().split()
    corrected_words = corrected.lower().split()
    if len(original_words) <= 3 and len(corrected_words) <= 3:
        if all(w in COMMON_WORDS for w in original_words) and all(w in COMMON_WORDS for w in corrected_words):
            return False

    max_length = max(len(original), len(corrected))
    differences = sum(
        1 for a, b in zip(original.lower(), corrected.lower()) if a != b
    ) + abs(len(original) - len(corrected))
    return differences / max_length >= MIN_DIFFERENCE_RATIO


def count_word_differences(original: str, corrected: str) -> int:
    original_words = original.lower().split()
    corrected_words = corrected.lower().split()
    differing = sum(1 for a, b in zip(original_words, corrected_words) if a != b)
    return differing + abs(len(original_words) - len(corrected_words))


def find_difference(source: str, target: str) -> str:
    """First word of source that differs from target (last word as fallback)."""
    source_words = source.split()
    target_words = target.split()
    for source_word, target_word in zip(source_words, target_words):
        if source_word.lower() != target_word.lower():
            return source_word
    return source_words[-1] if source_words else ""


class TypoCorrectionService:
    """Service for suggesting typo corrections with OpenAI."""

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None):
        """Initialize typo correction service."""
        if client is None:
            api_key = os.getenv('OPENAI_API_KEY')
            if not api_key:
                raise ValueError("OPENAI_API_KEY environment variable is required")
            client = OpenAI(api_key=api_key)
        self.client = client
        self.model = model or os.getenv('OPENAI_MODEL', 'gpt-4.1-mini')

    def correct(self, text: str, language: str = "en") -> Optional[CorrectionSuggestion]:
        """
        Suggest a correction for the text.

        Args:
            text: Draft message
            language: "en" or "ar"

        Returns:
            CorrectionSuggestion, or None when no significant typo was found
            or the API call failed
        """
        if not text or len(text.strip()) < MIN_TEXT_LENGTH:
            return None

        guidance = LANGUAGE_GUIDANCE.get(language, LANGUAGE_GUIDANCE["en"])
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT.format(guidance=guidance)},
                    {"role": "user", "content": text},
                ],
                temperature=0.3,
                max_completion_tokens=150 if language == "ar" else 100,
                response_format={"type": "json_object"},
            )
            payload = json.loads(response.choices[0].message.content or "{}")
        except Exception as e:
            logger.error(f"Typo correction request failed: {str(e)}")
            return None

        if not payload.get("hasTypos"):
            return None

        original_word = payload.get("originalWord") or ""
        corrected_word = payload.get("correctedWord") or ""
        corrected = payload.get("corrected") or ""

        # Some responses carry only the corrected word; rebuild the sentence
        if not corrected or corrected == corrected_word:
            words = text.split()
            lowered = [w.lower() for w in words]
            if original_word and original_word.lower() in lowered:
                words[lowered.index(original_word.lower())] = corrected_word
                corrected = " ".join(words)
            else:
                corrected = text

        if not is_significant_correction(text, corrected):
            return None

        number_of_corrections = payload.get("numberOfCorrections")
        if number_of_corrections is None:
            number_of_corrections = count_word_differences(text, corrected)

        return CorrectionSuggestion(
            original=text,
            corrected=corrected,
            original_word=original_word or find_difference(text, corrected),
            corrected_word=corrected_word or find_difference(corrected, text),
            confidence=float(payload.get("confidence", 0.0)),
            multiple_corrections=int(number_of_corrections) > 1,
        )


class DebouncedCorrector:
    """
    Debounces correction requests for one input field.

    Each submit() cancels the pending timer, so at most one request runs per
    input pause. Results of superseded requests are dropped.

    Args:
        service: TypoCorrectionService used for the actual call
        delay_seconds: Quiet period before the request fires
        timer_factory: threading.Timer compatible factory (injectable for tests)
    """

    def __init__(
        self,
        service: TypoCorrectionService,
        delay_seconds: float = 0.3,
        timer_factory: Callable[..., Any] = threading.Timer
    ):
        self.service = service
        self.delay_seconds = delay_seconds
        self.timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer = None
        self._generation = 0

    def submit(
        self,
        text: str,
        language: str,
        callback: Callable[[Optional[CorrectionSuggestion]], None]
    ) -> None:
        """Schedule a correction for text, replacing any pending one."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            timer = self.timer_factory(
                self.delay_seconds,
                self._run,
                args=(self._generation, text, language, callback)
            )
            timer.daemon = True
            self._timer = timer
        timer.start()

    def cancel(self) -> None:
        """Drop the pending request, if any."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._generation += 1

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def _run(self, generation: int, text: str, language: str, callback) -> None:
        if not self._is_current(generation):
            return
        suggestion = self.service.correct(text, language)
        if not self._is_current(generation):
            logger.debug("Discarding superseded typo correction")
            return
        with self._lock:
            self._timer = None
        callback(suggestion)

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation


__all__: List[str] = [
    "CorrectionSuggestion", "TypoCorrectionService", "DebouncedCorrector",
    "is_significant_correction",
]
