"""
Conversation Context Engine.

Orchestrates cross-turn context tracking for the bilingual campus assistant.
For every user message it decides whether the message is a follow-up, which
subject and topic it concerns, and what it references; for every assistant
message it records the topics the answer covered.

Key features:
1. Sticky language detection
2. Subject-update policy with follow-up aware retention
3. Topic transitions with attribute carryover
4. Bounded entity/number memory and recomputed context confidence
5. Per-conversation state machine with transition history
6. Serialize/hydrate pair for an external persistence layer
"""
import copy
import logging
from typing import Dict, Any, List, Optional
from datetime import datetime
from dataclasses import dataclass, field

from app.core.settings import EngineSettings
from app.middleware.error_handling import ContextHydrationException
from app.services.context_store import ContextStore
from app.services.conversation_context import (
    ActiveTopic, ContextState, ConversationContext, TopicTransition, TransitionKind,
)
from app.services.entity_extraction import EntityExtractor
from app.services.follow_up_classifier import FollowUpClassifier, FollowUpResult
from app.services.language_detector import LanguageDetection, detect_with_certainty
from app.services.query_enrichment import QueryEnricher
from app.services.subject_classifier import SubjectClassifier
from app.utils.logging_config import LogContext, log_performance

logger = logging.getLogger(__name__)

# Context confidence blend
SUBJECT_CONTINUITY_WEIGHT = 0.4
NEW_SUBJECT_WEIGHT = 0.2
TOPIC_PRESENCE_WEIGHT = 0.3
ENTITY_OVERLAP_STEP = 0.05
ENTITY_OVERLAP_CAP = 0.2
FOLLOW_UP_WEIGHT = 0.1


@dataclass
class ContextSnapshot:
    """Context metadata sent along with the outbound query."""
    subject: Optional[str]
    topic: Optional[str]
    is_follow_up: bool
    confidence: float
    language: str
    last_numbers: Dict[str, float] = field(default_factory=dict)
    last_entities: List[str] = field(default_factory=list)
    carried_attributes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "topic": self.topic,
            "is_follow_up": self.is_follow_up,
            "confidence": self.confidence,
            "language": self.language,
            "last_numbers": dict(self.last_numbers),
            "last_entities": list(self.last_entities),
            "carried_attributes": list(self.carried_attributes),
        }


class ContextEngine:
    """
    Single entry point for conversation context tracking.

    Constructed once per application and passed by reference; every
    collaborator can be injected for testing.
    """

    def __init__(
        self,
        store: Optional[ContextStore] = None,
        settings: Optional[EngineSettings] = None,
        extractor: Optional[EntityExtractor] = None,
        subject_classifier: Optional[SubjectClassifier] = None,
        follow_up_classifier: Optional[FollowUpClassifier] = None,
        enricher: Optional[QueryEnricher] = None
    ):
        self.settings = settings or EngineSettings()
        s = self.settings
        self.store = store or ContextStore(
            session_timeout_minutes=s.session_timeout_minutes,
            max_contexts=s.max_contexts
        )
        self.extractor = extractor or EntityExtractor()
        self.subject_classifier = subject_classifier or SubjectClassifier(
            confidence_floor=s.subject_confidence_floor
        )
        self.follow_up_classifier = follow_up_classifier or FollowUpClassifier(
            subject_classifier=self.subject_classifier,
            threshold=s.follow_up_threshold,
            max_score=s.follow_up_max_score,
            continuation_min_confidence=s.continuation_min_confidence
        )
        self.enricher = enricher or QueryEnricher(self.subject_classifier)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    @log_performance("context_update")
    def on_user_message(self, conversation_id: str, text: str) -> FollowUpResult:
        """
        Update the conversation context with a user message.

        Never raises: if classification or extraction fails, the previous
        context is kept and the turn is reported as not being a follow-up.

        Args:
            conversation_id: Conversation key
            text: Raw user message

        Returns:
            FollowUpResult for this message
        """
        context = self.store.get_or_create(conversation_id)
        if not text or not text.strip():
            logger.debug(f"Ignoring empty message for conversation {conversation_id}")
            return FollowUpResult()

        working = copy.deepcopy(context)
        with LogContext(conversation_id=conversation_id):
            try:
                result = self._apply_user_message(working, text)
            except Exception:
                logger.exception(
                    f"Context update failed for conversation {conversation_id}; keeping previous context"
                )
                return FollowUpResult()

        self.store.put(conversation_id, working)
        return result

    def on_assistant_message(self, conversation_id: str, text: str) -> List[str]:
        """
        Record the topics an assistant response covered.

        Returns:
            The extracted response topics (empty when none were found)
        """
        context = self.store.get_or_create(conversation_id)
        if not text or not text.strip():
            return []

        try:
            topics = self.subject_classifier.extract_response_topics(text)
        except Exception:
            logger.exception(f"Response topic extraction failed for conversation {conversation_id}")
            return []

        if topics:
            context.last_response_topics = topics
            logger.debug(f"Conversation {conversation_id} response topics: {topics}")
        return topics

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def get_enriched_query(self, conversation_id: str, text: str) -> str:
        """Return a self-contained version of the message (or the message itself)."""
        context = self.store.get_or_create(conversation_id)
        try:
            return self.enricher.enrich(text, context)
        except Exception:
            logger.exception(f"Query enrichment failed for conversation {conversation_id}")
            return text

    def get_context_snapshot(self, conversation_id: str) -> ContextSnapshot:
        """Read-only view of the context metadata for the outbound request."""
        context = self.store.get_or_create(conversation_id)
        return ContextSnapshot(
            subject=context.current_subject,
            topic=context.current_topic,
            is_follow_up=context.last_is_follow_up,
            confidence=context.context_confidence,
            language=context.language,
            last_numbers=dict(context.last_numbers),
            last_entities=list(context.last_entities),
            carried_attributes=list(context.last_discussed_attributes),
        )

    def get_debug_context(self, conversation_id: str) -> Dict[str, Any]:
        """Read-only diagnostics view for debug panels."""
        context = self.store.get_or_create(conversation_id)
        debug = self.get_context_snapshot(conversation_id).to_dict()
        debug.update({
            "conversation_id": conversation_id,
            "state": context.state.current.value,
            "state_transitions": [t.to_dict() for t in context.state.transitions],
            "follow_up_count": context.follow_up_count,
            "user_message_count": context.user_message_count,
            "follow_up_confidence": context.last_follow_up_confidence,
            "active_topics": [t.to_dict() for t in context.active_topics],
            "topic_transitions": [t.to_dict() for t in context.topic_transitions],
            "last_response_topics": list(context.last_response_topics),
            "last_user_message": context.last_user_message,
            "last_interaction_at": context.last_interaction_at.isoformat(),
            "live_contexts": len(self.store),
        })
        return debug

    # ------------------------------------------------------------------
    # Persistence collaborator
    # ------------------------------------------------------------------

    def serialize_context(self, conversation_id: str) -> Dict[str, Any]:
        """JSON-safe snapshot of the full context."""
        return self.store.get_or_create(conversation_id).to_dict()

    def hydrate_context(self, conversation_id: str, data: Dict[str, Any]) -> ConversationContext:
        """
        Restore a context from serialize_context() output.

        Raises:
            ContextHydrationException: If the snapshot is malformed
        """
        if not isinstance(data, dict):
            raise ContextHydrationException(conversation_id, "snapshot must be an object")

        payload = dict(data)
        payload["conversation_id"] = conversation_id
        try:
            context = ConversationContext.from_dict(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ContextHydrationException(conversation_id, str(e), original_error=e)

        self.store.put(conversation_id, context)
        logger.info(f"Hydrated context for conversation {conversation_id}")
        return context

    def reset_context(self, conversation_id: str) -> bool:
        """Forget a conversation; returns False when it was not live."""
        return self.store.evict(conversation_id)

    # ------------------------------------------------------------------
    # Update procedure
    # ------------------------------------------------------------------

    def _apply_user_message(self, context: ConversationContext, text: str) -> FollowUpResult:
        s = self.settings
        now = self.store.clock()

        detection = detect_with_certainty(text, s.arabic_ratio)
        if self._should_switch_language(context, detection):
            logger.info(
                f"Conversation {context.conversation_id} language {context.language} -> {detection.language}"
            )
            context.language = detection.language

        follow_up = self.follow_up_classifier.classify(text, context)
        previous_subject = context.current_subject
        subject_changed = False

        if follow_up.pure_continuation or (follow_up.possessive_reference and context.current_subject):
            # Established subject and topic survive "okay" and "its fees"
            context.follow_up_count += 1
            self._remember_attributes(context, self.subject_classifier.detect_attributes(text))
        else:
            subject_changed = self._apply_subject_policy(context, text, follow_up, now)
            self._apply_topic(context, text, now)

        overlap = self._merge_extraction(context, text)

        context.context_confidence = self._compute_confidence(
            context, previous_subject, subject_changed, overlap, follow_up
        )
        context.last_is_follow_up = follow_up.is_follow_up
        context.last_follow_up_confidence = follow_up.confidence
        context.last_user_message = text
        context.user_message_count += 1
        context.touch(now)

        self._update_state(context, text, follow_up, now)
        return follow_up

    def _should_switch_language(self, context: ConversationContext, detection: LanguageDetection) -> bool:
        if detection.language == context.language:
            return False
        if detection.certainty < self.settings.language_switch_certainty:
            return False
        # After the first message, short replies such as "ok" never switch language
        letters = detection.arabic_chars + detection.latin_chars
        return context.user_message_count == 0 or letters >= self.settings.language_switch_min_letters

    def _apply_subject_policy(
        self,
        context: ConversationContext,
        text: str,
        follow_up: FollowUpResult,
        now: datetime
    ) -> bool:
        """Apply the subject-update policy; returns True when the subject changed."""
        match = self.subject_classifier.classify_subject(text, context.language)
        current = context.current_subject

        if match:
            if match.subject == current:
                context.follow_up_count += 1
                return False
            if match.confidence >= self.settings.subject_confidence_high or current is None:
                self._change_subject(context, match.subject, now)
                return True
            # A weak mention of another subject does not displace the current one
            context.follow_up_count += 1
            return False

        if current and follow_up.is_follow_up:
            context.follow_up_count += 1
            return False

        if not follow_up.is_follow_up and not self.subject_classifier.has_subject_indicators(text):
            if current:
                self._change_subject(context, None, now)
                return True
            context.follow_up_count = 0
            return False

        context.follow_up_count += 1
        return False

    def _change_subject(self, context: ConversationContext, subject: Optional[str], now: datetime) -> None:
        context.topic_transitions.append(TopicTransition(
            from_value=context.current_subject,
            to_value=subject,
            timestamp=now,
            carried_attributes=list(context.last_discussed_attributes),
            kind=TransitionKind.SUBJECT
        ))
        logger.info(f"Conversation {context.conversation_id} subject {context.current_subject} -> {subject}")
        context.current_subject = subject
        context.follow_up_count = 0

    def _apply_topic(self, context: ConversationContext, text: str, now: datetime) -> bool:
        """Classify topic and attributes; returns True when the topic changed."""
        topic = self.subject_classifier.classify_topic(text, context.language)
        attributes = self.subject_classifier.detect_attributes(text)
        changed = False

        if topic and topic != context.current_topic:
            context.topic_transitions.append(TopicTransition(
                from_value=context.current_topic,
                to_value=topic,
                timestamp=now,
                carried_attributes=list(context.last_discussed_attributes),
                kind=TransitionKind.TOPIC
            ))
            context.current_topic = topic
            changed = True

        if topic:
            self._upsert_active_topic(context, topic, attributes, text, now)

        self._remember_attributes(context, attributes)
        return changed

    @staticmethod
    def _remember_attributes(context: ConversationContext, attributes: List[str]) -> None:
        # Attributes stay live until the user names new ones
        if attributes:
            context.last_discussed_attributes = attributes

    def _upsert_active_topic(
        self,
        context: ConversationContext,
        topic: str,
        attributes: List[str],
        text: str,
        now: datetime
    ) -> None:
        entry = next((t for t in context.active_topics if t.name == topic), None)
        if entry is None:
            entry = ActiveTopic(name=topic, last_discussed_at=now)
        else:
            context.active_topics.remove(entry)

        entry.last_discussed_at = now
        for attribute in attributes:
            if attribute not in entry.attributes:
                entry.attributes.append(attribute)
        entry.related_queries.append(text)
        del entry.related_queries[:-self.settings.max_related_queries]

        context.active_topics.insert(0, entry)
        del context.active_topics[self.settings.max_active_topics:]

    def _merge_extraction(self, context: ConversationContext, text: str) -> int:
        """Merge entities and numbers; returns overlap with previously known entities."""
        extraction = self.extractor.extract(text)
        lowered = text.lower()
        overlap = sum(1 for entity in context.last_entities if entity.lower() in lowered)

        for entity in extraction.entities:
            if entity in context.last_entities:
                context.last_entities.remove(entity)
            context.last_entities.append(entity)
        overflow = len(context.last_entities) - self.settings.max_entities
        if overflow > 0:
            del context.last_entities[:overflow]

        context.last_numbers.update(extraction.numbers)
        return overlap

    def _compute_confidence(
        self,
        context: ConversationContext,
        previous_subject: Optional[str],
        subject_changed: bool,
        overlap: int,
        follow_up: FollowUpResult
    ) -> float:
        score = 0.0
        if context.current_subject:
            retained = not subject_changed and context.current_subject == previous_subject
            score += SUBJECT_CONTINUITY_WEIGHT if retained else NEW_SUBJECT_WEIGHT
        if context.current_topic:
            score += TOPIC_PRESENCE_WEIGHT
        score += min(ENTITY_OVERLAP_CAP, ENTITY_OVERLAP_STEP * overlap)
        if follow_up.is_follow_up:
            score += FOLLOW_UP_WEIGHT
        return round(min(1.0, score), 4)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _update_state(
        self,
        context: ConversationContext,
        text: str,
        follow_up: FollowUpResult,
        now: datetime
    ) -> None:
        target = self._next_state(context, text, follow_up)
        previous = context.state.current
        if context.state.transition_to(target, text, now):
            logger.debug(f"Conversation {context.conversation_id} state {previous.value} -> {target.value}")

    def _next_state(self, context: ConversationContext, text: str, follow_up: FollowUpResult) -> ContextState:
        current = context.state.current

        if self.subject_classifier.is_clarification(text):
            return ContextState.CLARIFICATION
        if follow_up.is_follow_up:
            return ContextState.FOLLOW_UP

        if current == ContextState.INITIAL:
            return ContextState.SUBJECT_SELECTED if context.current_subject else ContextState.INITIAL
        if current == ContextState.SUBJECT_SELECTED:
            if not context.current_subject:
                return ContextState.INITIAL
            return ContextState.TOPIC_FOCUSED if context.current_topic else ContextState.SUBJECT_SELECTED
        # topic_focused, or follow_up/clarification whose condition lapsed
        return self._most_specific_state(context)

    @staticmethod
    def _most_specific_state(context: ConversationContext) -> ContextState:
        if context.current_topic:
            return ContextState.TOPIC_FOCUSED
        if context.current_subject:
            return ContextState.SUBJECT_SELECTED
        return ContextState.INITIAL
