"""
Query Enrichment Service.

The remote assistant API has no memory of its own, so every outbound query
must be self-contained. This service rewrites possessive references and bare
continuation phrases against the current conversation context.
"""
import logging
from typing import Optional

from app.services.conversation_context import ConversationContext
from app.services.follow_up_classifier import is_continuation_phrase
from app.services.lexicon import ATTRIBUTE_LABELS_AR, SUBJECTS_BY_NAME
from app.services.subject_classifier import SubjectClassifier

logger = logging.getLogger(__name__)

POSSESSIVE_TEMPLATE_EN = (
    "What is the {attribute} for {subject}? "
    "Please provide specific information about {subject}'s {attribute}."
)
POSSESSIVE_TEMPLATE_AR = "ما هي {attribute} لتخصص {subject}؟ يرجى تقديم معلومات محددة عن {attribute} في تخصص {subject}."

CONTINUATION_TEMPLATE_EN = (
    "Continue providing information about {anchor}. "
    "Provide more details about what you just mentioned."
)
CONTINUATION_TEMPLATE_AR = "تابع تقديم المعلومات حول {anchor}. قدم المزيد من التفاصيل حول ما ذكرته للتو."

GENERIC_CONTINUATION_EN = (
    "Please continue explaining what you were discussing. "
    "Provide more details on the same topic."
)
GENERIC_CONTINUATION_AR = "يرجى متابعة شرح ما كنت تتحدث عنه. قدم المزيد من التفاصيل حول نفس الموضوع."


class QueryEnricher:
    """Rewrites context-dependent messages into self-contained queries."""

    def __init__(self, subject_classifier: Optional[SubjectClassifier] = None):
        self.subject_classifier = subject_classifier or SubjectClassifier()

    def enrich(self, message: str, context: ConversationContext) -> str:
        """
        Enrich a message using the conversation context.

        Rules, in priority order:
        1. Possessive reference with a current subject -> explicit question
        2. Canonical continuation phrase -> continue about the last response
           topic, the subject or the topic
        3. Anything else is returned unchanged

        Args:
            message: Raw user message
            context: Current conversation context

        Returns:
            The enriched query, or the message itself
        """
        if not message or not message.strip():
            return message

        arabic = context.language == "ar"

        possessed = self.subject_classifier.find_possessive_reference(message)
        if possessed is not None and context.current_subject:
            attribute = self._resolve_attribute(message, possessed, arabic)
            subject = self._subject_label(context.current_subject, arabic)
            template = POSSESSIVE_TEMPLATE_AR if arabic else POSSESSIVE_TEMPLATE_EN
            enriched = template.format(attribute=attribute, subject=subject)
            logger.info(f"Enriched possessive query for subject {context.current_subject}")
            return enriched

        if is_continuation_phrase(message):
            anchor = self._continuation_anchor(context, arabic)
            if anchor:
                template = CONTINUATION_TEMPLATE_AR if arabic else CONTINUATION_TEMPLATE_EN
                enriched = template.format(anchor=anchor)
            else:
                enriched = GENERIC_CONTINUATION_AR if arabic else GENERIC_CONTINUATION_EN
            logger.info(f"Enriched continuation query (anchor={anchor!r})")
            return enriched

        return message

    def _resolve_attribute(self, message: str, possessed: str, arabic: bool) -> str:
        attributes = self.subject_classifier.detect_attributes(message)
        if arabic:
            if attributes:
                return ATTRIBUTE_LABELS_AR.get(attributes[0], attributes[0])
            return possessed or "المعلومات"
        if possessed:
            return possessed
        return attributes[0] if attributes else "information"

    def _subject_label(self, subject: str, arabic: bool) -> str:
        entry = SUBJECTS_BY_NAME.get(subject)
        if arabic and entry:
            return entry.arabic_name
        return subject

    def _continuation_anchor(self, context: ConversationContext, arabic: bool) -> Optional[str]:
        if context.last_response_topics:
            return context.last_response_topics[0]
        if context.current_subject:
            return self._subject_label(context.current_subject, arabic)
        return context.current_topic
