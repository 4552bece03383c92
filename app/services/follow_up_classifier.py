"""
Follow-up Classification Service.

Decides whether a user message only makes sense against the preceding turns.
Several weak, independent signals are summed into a capped score, normalized
into a confidence, and compared with a threshold.

Key features:
1. Possessive and referential pronoun detection
2. Canonical continuation phrases ("okay", "tell me more", "طيب")
3. Leading discourse markers and message brevity
4. Subject persistence and previous-number references
5. Back-reference words and incomplete questions
"""
import re
import logging
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field

from app.services.conversation_context import ConversationContext
from app.services.entity_extraction import format_number
from app.services.lexicon import (
    CONTINUATION_PHRASES, LEADING_MARKERS, REFERENTIAL_PRONOUNS,
    BACK_REFERENCE_PATTERNS, INCOMPLETE_QUESTIONS, NUMBER_CATEGORY_REFERENCES,
)
from app.services.subject_classifier import SubjectClassifier

logger = logging.getLogger(__name__)

TRAILING_PUNCTUATION = re.compile(r"[\s.!?؟،,]+$")


@dataclass
class FollowUpWeights:
    """Score contributed by each signal."""
    possessive: float = 3.0
    pronoun: float = 1.5
    continuation: float = 4.0
    leading_marker: float = 2.0
    short_message: float = 1.0          # <= 4 words
    very_short_message: float = 1.0     # <= 2 words, on top of short_message
    subject_maintained: float = 1.5
    same_subject: float = 1.0
    number_literal: float = 1.5
    number_category: float = 1.0
    back_reference: float = 1.0
    incomplete_question: float = 2.0


@dataclass
class FollowUpResult:
    """Outcome of follow-up classification for one message."""
    is_follow_up: bool = False
    confidence: float = 0.0
    score: float = 0.0
    pure_continuation: bool = False
    possessive_reference: bool = False
    maintain_subject: bool = False
    referenced_attribute: Optional[str] = None
    signals: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_follow_up": self.is_follow_up,
            "confidence": round(self.confidence, 4),
            "score": round(self.score, 4),
            "pure_continuation": self.pure_continuation,
            "possessive_reference": self.possessive_reference,
            "maintain_subject": self.maintain_subject,
            "referenced_attribute": self.referenced_attribute,
            "signals": list(self.signals),
        }


def normalize_message(text: str) -> str:
    """Lowercase, collapse whitespace and drop trailing punctuation."""
    collapsed = re.sub(r"\s+", " ", text.strip().lower())
    return TRAILING_PUNCTUATION.sub("", collapsed)


def is_continuation_phrase(text: str) -> bool:
    """Whether the whole message is a canonical continuation phrase."""
    if not text:
        return False
    normalized = normalize_message(text)
    return any(pattern.fullmatch(normalized) for pattern in CONTINUATION_PHRASES.values())


class FollowUpClassifier:
    """
    Scores a message for follow-up likelihood against a conversation context.

    Args:
        subject_classifier: Used for the subject-persistence and possessive signals
        weights: Per-signal weights
        threshold: Minimum score for a follow-up
        max_score: Score cap; confidence = score / max_score
        continuation_min_confidence: Confidence floor for continuation phrases
    """

    def __init__(
        self,
        subject_classifier: Optional[SubjectClassifier] = None,
        weights: Optional[FollowUpWeights] = None,
        threshold: float = 2.0,
        max_score: float = 5.0,
        continuation_min_confidence: float = 0.95
    ):
        self.subject_classifier = subject_classifier or SubjectClassifier()
        self.weights = weights or FollowUpWeights()
        self.threshold = threshold
        self.max_score = max_score
        self.continuation_min_confidence = continuation_min_confidence

    def classify(
        self,
        text: str,
        context: ConversationContext,
        language: Optional[str] = None
    ) -> FollowUpResult:
        """
        Classify a message as follow-up or not.

        Args:
            text: Raw user message
            context: Context as it was before this message
            language: Vocabulary to use; defaults to the context language

        Returns:
            FollowUpResult with the decision, confidence and fired signals
        """
        if not text or not text.strip() or context.user_message_count == 0:
            return FollowUpResult()

        language = language or context.language
        lowered = text.strip().lower()
        normalized = normalize_message(text)
        w = self.weights
        result = FollowUpResult()
        score = 0.0

        # 1. Possessive / referential pronouns
        possessed = self.subject_classifier.find_possessive_reference(text)
        if possessed is not None:
            score += w.possessive
            result.possessive_reference = True
            result.maintain_subject = True
            result.referenced_attribute = possessed or None
            result.signals.append("possessive_reference")
        elif REFERENTIAL_PRONOUNS[language].search(lowered):
            score += w.pronoun
            result.maintain_subject = True
            result.signals.append("referential_pronoun")

        # 2. Continuation phrases
        if is_continuation_phrase(text):
            score += w.continuation
            result.pure_continuation = True
            result.maintain_subject = True
            result.signals.append("continuation_phrase")

        # 3. Leading discourse markers
        if LEADING_MARKERS[language].search(lowered):
            score += w.leading_marker
            result.signals.append("leading_marker")

        # 4. Brevity
        word_count = len(normalized.split())
        if word_count <= 4:
            score += w.short_message
            result.signals.append("short_message")
            if word_count <= 2:
                score += w.very_short_message
                result.signals.append("very_short_message")

        # 5. Subject persistence
        if context.current_subject:
            match = self.subject_classifier.classify_subject(text, language)
            if not match:
                score += w.subject_maintained
                result.maintain_subject = True
                result.signals.append("subject_maintained")
            elif match.subject == context.current_subject:
                score += w.same_subject
                result.signals.append("same_subject")

        # 6. Previous numbers
        for key, value in context.last_numbers.items():
            literal = re.escape(format_number(value))
            if re.search(r"(?<![\d.])" + literal + r"(?!\d)", text):
                score += w.number_literal
                result.signals.append(f"number_literal:{key}")
            elif key in NUMBER_CATEGORY_REFERENCES and not re.search(r"\d", text):
                if NUMBER_CATEGORY_REFERENCES[key].search(lowered):
                    score += w.number_category
                    result.signals.append(f"number_category:{key}")

        # 7. Back-references
        for pattern in BACK_REFERENCE_PATTERNS[language]:
            if pattern.search(lowered):
                score += w.back_reference
                result.signals.append("back_reference")

        # 8. Incomplete questions
        if any(pattern.search(lowered) for pattern in INCOMPLETE_QUESTIONS[language]):
            score += w.incomplete_question
            result.signals.append("incomplete_question")

        result.score = min(score, self.max_score)
        result.confidence = min(result.score / self.max_score, 1.0)
        result.is_follow_up = result.score >= self.threshold

        if result.pure_continuation:
            result.is_follow_up = True
            result.confidence = max(result.confidence, self.continuation_min_confidence)

        logger.debug(
            f"Follow-up score {result.score:.2f} (confidence {result.confidence:.2f}) "
            f"signals={result.signals}"
        )
        return result
