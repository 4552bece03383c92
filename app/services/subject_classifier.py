"""
Subject/Topic Classification Service.

Scores candidate academic subjects and question topics for a message against
the bilingual lexicon tables.

Key features:
1. Language-aware subject scoring with cross-language discounts
2. Colloquial Arabic study-intent dictionaries checked first
3. Deterministic tie-breaking by lexicon order
4. Mutually exclusive topic classification
5. Attribute, clarification and assistant-response topic detection
"""
import logging
from typing import List, Optional
from dataclasses import dataclass

from app.services.lexicon import (
    SUBJECTS, SubjectEntry, TOPIC_PATTERNS, ATTRIBUTE_PATTERNS,
    SUBJECT_INDICATORS, STUDY_CARRIERS, STUDY_INTENT_MARKERS, DIALECT_STUDY_PHRASES,
    POSSESSIVE_PATTERNS, CLARIFICATION_PATTERNS, RESPONSE_TOPIC_FAMILIES,
    MARKDOWN_HEADING, contains_term,
)

logger = logging.getLogger(__name__)

CROSS_LANGUAGE_DISCOUNT = 0.9
KEYWORD_DISCOUNT = 0.95
CARRIER_KEYWORD_DISCOUNT = 0.8
DIALECT_KEYWORD_BONUS = 0.1
MAX_RESPONSE_TOPICS = 5


@dataclass
class SubjectMatch:
    """Best subject candidate for a message."""
    subject: Optional[str] = None
    confidence: float = 0.0

    def __bool__(self) -> bool:
        return self.subject is not None


def _other_language(language: str) -> str:
    return "en" if language == "ar" else "ar"


class SubjectClassifier:
    """
    Classifies subjects and topics from message text.

    Args:
        confidence_floor: Minimum confidence for a subject to be returned
    """

    def __init__(self, confidence_floor: float = 0.4):
        self.confidence_floor = confidence_floor

    def classify_subject(self, text: str, language: str = "en") -> SubjectMatch:
        """
        Find the academic subject a message talks about.

        Args:
            text: Raw message
            language: Conversation language ("en" or "ar")

        Returns:
            SubjectMatch; empty (None, 0.0) when nothing reaches the floor
        """
        if not text or not text.strip():
            return SubjectMatch()

        if language == "ar":
            dialect = self._classify_colloquial_arabic(text)
            if dialect and dialect.confidence >= self.confidence_floor:
                return dialect

        best = SubjectMatch()
        for entry in SUBJECTS:
            confidence = self._score_subject(entry, text, language)
            # Strict comparison keeps the first-registered subject on ties
            if confidence > best.confidence:
                best = SubjectMatch(entry.subject.value, confidence)

        if best.confidence < self.confidence_floor:
            return SubjectMatch()
        return best

    def _score_subject(self, entry: SubjectEntry, text: str, language: str) -> float:
        other = _other_language(language)
        score = 0.0

        if entry.pattern_for(language).search(text):
            score = entry.confidence
        elif entry.pattern_for(other).search(text):
            score = entry.confidence * CROSS_LANGUAGE_DISCOUNT

        if score == 0.0 and any(contains_term(text, kw) for kw in entry.keywords_for(language)):
            score = entry.confidence * KEYWORD_DISCOUNT

        if score == 0.0 and STUDY_CARRIERS[language].search(text):
            if any(contains_term(text, kw) for kw in entry.keywords_for(other)):
                score = entry.confidence * CARRIER_KEYWORD_DISCOUNT

        return score

    def _classify_colloquial_arabic(self, text: str) -> SubjectMatch:
        """Dialect phrases first, then the text following a study-intent marker."""
        for pattern, confidence in DIALECT_STUDY_PHRASES:
            if not pattern.search(text):
                continue
            for entry in SUBJECTS:
                if entry.ar_pattern.search(text) or any(contains_term(text, kw) for kw in entry.ar_keywords):
                    return SubjectMatch(entry.subject.value, min(1.0, confidence + DIALECT_KEYWORD_BONUS))

        for marker in STUDY_INTENT_MARKERS:
            if marker not in text:
                continue
            tail = text.split(marker, 1)[1]
            for entry in SUBJECTS:
                if entry.ar_pattern.search(tail) or any(contains_term(tail, kw) for kw in entry.ar_keywords):
                    logger.debug(f"Colloquial study intent '{marker}' -> {entry.subject.value}")
                    return SubjectMatch(entry.subject.value, entry.confidence)

        return SubjectMatch()

    def classify_topic(self, text: str, language: str = "en") -> Optional[str]:
        """Return the first topic category with a matching keyword."""
        if not text or not text.strip():
            return None
        for topic, en_pattern, ar_pattern in TOPIC_PATTERNS:
            primary, secondary = (ar_pattern, en_pattern) if language == "ar" else (en_pattern, ar_pattern)
            if primary.search(text) or secondary.search(text):
                return topic.value
        return None

    def detect_attributes(self, text: str) -> List[str]:
        """All attribute categories mentioned in the text, in table order."""
        if not text:
            return []
        return [
            attribute.value
            for attribute, en_pattern, ar_pattern in ATTRIBUTE_PATTERNS
            if en_pattern.search(text) or ar_pattern.search(text)
        ]

    def has_subject_indicators(self, text: str) -> bool:
        """Whether the message uses study-related vocabulary."""
        return any(pattern.search(text) for pattern in SUBJECT_INDICATORS.values())

    def find_possessive_reference(self, text: str) -> Optional[str]:
        """
        Return the possessed phrase of "its X" / "their Y" style references.

        An empty string means a possessive was found without a usable phrase.
        """
        for pattern in POSSESSIVE_PATTERNS.values():
            match = pattern.search(text)
            if match:
                return match.group(1).strip().lower()
        return None

    def is_clarification(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in CLARIFICATION_PATTERNS.values())

    def extract_response_topics(self, text: str) -> List[str]:
        """
        Topics an assistant response covered.

        Markdown headings win when present; otherwise the keyword families
        matched by the response body are returned.
        """
        if not text or not text.strip():
            return []

        headings = []
        for match in MARKDOWN_HEADING.finditer(text):
            heading = match.group(1).strip().strip("*_").strip()
            if heading and heading not in headings:
                headings.append(heading)
        if headings:
            return headings[:MAX_RESPONSE_TOPICS]

        return [name for name, pattern in RESPONSE_TOPIC_FAMILIES if pattern.search(text)]
