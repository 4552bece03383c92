"""
Unit tests for the context engine: multi-turn scenarios, subject policy,
state machine, bounded memory and the serialize/hydrate pair.
"""
import pytest
import sys
import os
from unittest.mock import Mock

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.settings import EngineSettings
from app.middleware.error_handling import ContextHydrationException
from app.services.context_engine import ContextEngine
from app.services.context_store import ContextStore
from app.services.conversation_context import ContextState, TransitionKind
from app.services.follow_up_classifier import FollowUpResult


def send(engine, conversation_id, *messages):
    """Send several user messages; returns the last FollowUpResult."""
    result = None
    for message in messages:
        result = engine.on_user_message(conversation_id, message)
    return result


class TestFirstMessage:
    """Tests for the first turn of a conversation."""

    def test_first_message_is_not_follow_up(self, engine):
        """Even a continuation phrase is not a follow-up on the first turn."""
        result = engine.on_user_message("c1", "okay")
        assert result.is_follow_up is False
        assert result.confidence == 0.0

    def test_first_subject_is_adopted(self, engine):
        """The first named subject becomes current and selects a state."""
        engine.on_user_message("c1", "I am studying Optometry")
        context = engine.store.get("c1")
        assert context.current_subject == "Optometry"
        assert context.user_message_count == 1
        assert context.state.current == ContextState.SUBJECT_SELECTED
        assert context.context_confidence == pytest.approx(0.2)
        assert context.topic_transitions[0].kind == TransitionKind.SUBJECT

    def test_empty_message_is_ignored(self, engine):
        """Blank messages do not count as turns."""
        engine.on_user_message("c1", "   ")
        assert engine.store.get("c1").user_message_count == 0


class TestSubjectRetention:
    """Tests for keeping the subject across related questions."""

    def test_subject_indicators_keep_subject(self, engine):
        """A study question without a subject keeps the current one."""
        result = send(engine, "c1", "I am studying Optometry", "What is the grading system?")
        context = engine.store.get("c1")
        assert result.is_follow_up is False
        assert context.current_subject == "Optometry"
        assert context.current_topic == "grading"
        assert context.follow_up_count == 1
        assert context.context_confidence == pytest.approx(0.7)
        assert context.state.current == ContextState.TOPIC_FOCUSED

    def test_arabic_conversation_keeps_subject(self, engine):
        """Arabic follow-up about grading keeps Optometry."""
        result = send(engine, "c1", "أدرس تخصص البصريات", "ما هو نظام العلامات؟")
        context = engine.store.get("c1")
        assert context.language == "ar"
        assert result.is_follow_up is True
        assert context.current_subject == "Optometry"
        assert context.current_topic == "grading"
        assert context.state.current == ContextState.FOLLOW_UP

    def test_payment_follow_up(self, engine):
        """'What about the payment schedule?' stays on Optometry fees."""
        result = send(engine, "c1", "What are the fees for Optometry?", "What about the payment schedule?")
        context = engine.store.get("c1")
        assert result.is_follow_up is True
        assert context.current_subject == "Optometry"
        assert context.current_topic == "fees"
        assert context.follow_up_count == 1

    def test_discount_follow_up(self, engine):
        """A short discount question keeps Engineering."""
        result = send(engine, "c1", "How much does Engineering cost?", "Is there a discount?")
        assert result.is_follow_up is True
        assert engine.store.get("c1").current_subject == "Engineering"

    def test_possessive_keeps_subject_and_topic(self, engine):
        """'its requirements' does not reclassify subject or topic."""
        result = send(engine, "c1", "What are the fees for Optometry?", "What are its requirements?")
        context = engine.store.get("c1")
        assert result.possessive_reference is True
        assert context.current_subject == "Optometry"
        assert context.current_topic == "fees"
        assert context.follow_up_count == 1

    def test_weak_different_subject_does_not_displace(self, store):
        """Below the high threshold a different subject only counts as a follow-up."""
        engine = ContextEngine(store=store, settings=EngineSettings(subject_confidence_high=0.9))
        send(engine, "c1", "I am studying Optometry", "What about Engineering?")
        context = engine.store.get("c1")
        assert context.current_subject == "Optometry"
        assert context.follow_up_count == 1


class TestSubjectChanges:
    """Tests for subject switches and clearing."""

    def test_switch_carries_attributes(self, engine):
        """Switching subject records the attributes under discussion."""
        result = send(
            engine, "c1",
            "How much are Computer Science credit hour fees?",
            "What about Engineering?"
        )
        context = engine.store.get("c1")
        transition = context.topic_transitions[-1]

        assert result.is_follow_up is True
        assert context.current_subject == "Engineering"
        assert context.current_topic == "fees"
        assert transition.kind == TransitionKind.SUBJECT
        assert transition.from_value == "Computer Science"
        assert transition.to_value == "Engineering"
        assert transition.carried_attributes == ["fees", "courses"]
        assert engine.get_context_snapshot("c1").carried_attributes == ["fees", "courses"]
        assert context.follow_up_count == 0

    def test_switch_after_possessive_carries_latest_attribute(self, engine):
        """Attributes named in a possessive turn are the ones carried to the next subject."""
        send(
            engine, "c1",
            "How much are Optometry fees?",
            "What are its requirements?",
            "What about Engineering?"
        )
        context = engine.store.get("c1")
        transition = context.topic_transitions[-1]

        assert context.current_subject == "Engineering"
        assert transition.kind == TransitionKind.SUBJECT
        assert transition.carried_attributes == ["requirements"]

    def test_possessive_updates_attributes_only(self, engine):
        """A possessive turn refreshes attributes but keeps subject and topic."""
        send(engine, "c1", "What are the fees for Optometry?", "What are its requirements?")
        context = engine.store.get("c1")
        assert context.last_discussed_attributes == ["requirements"]
        assert context.current_subject == "Optometry"
        assert context.current_topic == "fees"

    def test_unrelated_message_clears_subject(self, engine):
        """A non-follow-up without study vocabulary clears the subject."""
        send(engine, "c1", "Tell me about Law", "Where can I park my car near the main gate?")
        context = engine.store.get("c1")
        assert context.current_subject is None
        assert context.topic_transitions[-1].to_value is None
        assert context.state.current == ContextState.INITIAL


class TestContinuations:
    """Tests for continuation phrases and enrichment."""

    def test_continuation_confidence(self, engine):
        """A continuation after the first turn is a confident follow-up."""
        result = send(engine, "c1", "Tell me about Law fees", "okay")
        assert result.is_follow_up is True
        assert result.confidence >= 0.95
        assert engine.store.get("c1").current_subject == "Law"

    def test_enriched_possessive_query(self, engine):
        """The possessive query is rewritten against the subject."""
        engine.on_user_message("c1", "I am studying Optometry")
        assert engine.get_enriched_query("c1", "What are its requirements?") == (
            "What is the requirements for Optometry? "
            "Please provide specific information about Optometry's requirements."
        )

    def test_continuation_anchored_on_response_topic(self, engine):
        """Assistant headings anchor the next continuation."""
        engine.on_user_message("c1", "Tell me about Law")
        topics = engine.on_assistant_message("c1", "## Tuition Fees\n500 JD per semester.")
        assert topics == ["Tuition Fees"]
        assert "Tuition Fees" in engine.get_enriched_query("c1", "tell me more")

    def test_empty_assistant_message_keeps_topics(self, engine):
        """Responses without topics leave the previous ones in place."""
        engine.on_assistant_message("c1", "## Scholarships")
        assert engine.on_assistant_message("c1", "") == []
        assert engine.store.get("c1").last_response_topics == ["Scholarships"]


class TestLanguageAndMemory:
    """Tests for language stickiness and bounded memory."""

    def test_language_sticks_without_letters(self, engine):
        """Digit-only messages do not switch the conversation language."""
        send(engine, "c1", "كم رسوم الهندسة؟", "123")
        assert engine.store.get("c1").language == "ar"

    def test_short_reply_keeps_arabic(self, engine):
        """A bare "ok" in an Arabic conversation does not switch to English."""
        send(engine, "c1", "أدرس تخصص البصريات", "ok")
        assert engine.store.get("c1").language == "ar"

    def test_longer_english_message_switches(self, engine):
        """A full English sentence still switches the conversation language."""
        send(engine, "c1", "أدرس تخصص البصريات", "What are the fees?")
        assert engine.store.get("c1").language == "en"

    def test_short_first_message_sets_language(self, engine):
        """The first message sets the language whatever its length."""
        engine.on_user_message("c1", "طب")
        assert engine.store.get("c1").language == "ar"

    def test_numbers_merge_across_turns(self, engine):
        """Numbers from different turns accumulate per key."""
        send(engine, "c1", "Engineering costs 1,500 NIS", "and it takes 5 years?")
        assert engine.store.get("c1").last_numbers == {"fee": 1500.0, "duration": 5.0}

    def test_entities_are_bounded(self, store):
        """Only the most recent entities are kept."""
        engine = ContextEngine(store=store, settings=EngineSettings(max_entities=3))
        engine.on_user_message("c1", 'Compare "Alpha", "Beta", "Gamma" and "Delta"')
        assert len(engine.store.get("c1").last_entities) == 3

    def test_active_topics_bounded_and_recent_first(self, store):
        """The active topic list is recency ordered and capped."""
        engine = ContextEngine(store=store, settings=EngineSettings(max_active_topics=2))
        send(
            engine, "c1",
            "What are the fees for Law?",
            "How do I apply to Law?",
            "What is the grading system for Law?"
        )
        names = [t.name for t in engine.store.get("c1").active_topics]
        assert names == ["grading", "admission"]


class TestStateMachine:
    """Tests for state transitions."""

    def test_only_changes_are_recorded(self, engine):
        """Repeating the same state does not add transitions."""
        send(
            engine, "c1",
            "What are the fees for Optometry?",
            "What are the admission requirements for Optometry students?",
            "What are the grading rules for Optometry students?"
        )
        transitions = engine.store.get("c1").state.transitions
        assert [t.to_state for t in transitions] == [
            ContextState.SUBJECT_SELECTED, ContextState.TOPIC_FOCUSED,
        ]
        assert transitions[0].from_state == ContextState.INITIAL

    def test_clarification_state(self, engine):
        """Clarification requests enter the clarification state."""
        send(engine, "c1", "I am studying Optometry", "What do you mean?")
        context = engine.store.get("c1")
        assert context.state.current == ContextState.CLARIFICATION
        assert context.current_subject == "Optometry"


class TestFailureAndExpiry:
    """Tests for failure isolation and TTL."""

    def test_failure_keeps_previous_context(self, store):
        """A failing collaborator leaves the context untouched."""
        extractor = Mock()
        extractor.extract.side_effect = RuntimeError("boom")
        engine = ContextEngine(store=store, extractor=extractor)

        result = engine.on_user_message("c1", "I am studying Optometry")
        context = engine.store.get("c1")
        assert result == FollowUpResult()
        assert context.user_message_count == 0
        assert context.current_subject is None

    def test_expired_context_starts_over(self, engine, clock):
        """After the inactivity timeout the conversation starts fresh."""
        engine.on_user_message("c1", "I am studying Optometry")
        clock.advance(minutes=31)
        result = engine.on_user_message("c1", "okay")
        assert result.is_follow_up is False
        assert engine.store.get("c1").current_subject is None


class TestSerialization:
    """Tests for serialize/hydrate and reset."""

    def test_round_trip(self, engine):
        """A serialized context hydrates back to the same snapshot."""
        send(engine, "c1", "How much are Computer Science credit hour fees?", "What about Engineering?")
        data = engine.serialize_context("c1")
        before = engine.get_context_snapshot("c1")

        assert engine.reset_context("c1") is True
        engine.hydrate_context("c1", data)

        assert engine.get_context_snapshot("c1") == before
        restored = engine.store.get("c1")
        assert restored.topic_transitions[-1].carried_attributes == ["fees", "courses"]
        assert restored.state.current == ContextState.FOLLOW_UP

    def test_hydrate_rejects_non_object(self, engine):
        """Non-object snapshots are rejected."""
        with pytest.raises(ContextHydrationException):
            engine.hydrate_context("c1", ["not", "a", "dict"])

    def test_hydrate_rejects_bad_state(self, engine):
        """Unknown state names are rejected."""
        with pytest.raises(ContextHydrationException) as exc_info:
            engine.hydrate_context("c1", {"state": {"current": "bogus"}})
        assert exc_info.value.status_code == 422

    @pytest.mark.parametrize("data", [
        {"state": None},
        {"state": {"transitions": "not-a-list"}},
        {"topic_transitions": [["a", "b"]]},
        {"active_topics": [None]},
        {"last_numbers": "fee"},
        {"last_entities": {"a": 1}},
    ])
    def test_hydrate_rejects_malformed_nested_fields(self, engine, data):
        """Wrongly typed nested fields raise the hydration error, not a crash."""
        with pytest.raises(ContextHydrationException):
            engine.hydrate_context("c1", data)
        assert "c1" not in engine.store

    def test_hydrate_naive_timestamps(self, engine):
        """Naive timestamps are read as UTC so expiry still works."""
        context = engine.hydrate_context("c1", {"created_at": "2024-09-01T09:00:00"})
        assert context.created_at.tzinfo is not None

    def test_reset_unknown(self, engine):
        """Resetting an unknown conversation reports False."""
        assert engine.reset_context("missing") is False

    def test_debug_context(self, engine):
        """The debug view exposes state and counters."""
        engine.on_user_message("c1", "I am studying Optometry")
        debug = engine.get_debug_context("c1")
        assert debug["state"] == "subject_selected"
        assert debug["subject"] == "Optometry"
        assert debug["user_message_count"] == 1
        assert debug["live_contexts"] == 1
