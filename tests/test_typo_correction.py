"""
Unit tests for typo correction and the debounced corrector.
"""
import json
import pytest
import sys
import os
from unittest.mock import Mock, patch

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.services.typo_correction import (
    CorrectionSuggestion, DebouncedCorrector, TypoCorrectionService, is_significant_correction,
)


def set_completion(client, payload):
    """Make the mocked client return the given JSON payload."""
    response = Mock()
    response.choices = [Mock(message=Mock(content=json.dumps(payload)))]
    client.chat.completions.create.return_value = response


class FakeTimer:
    """threading.Timer stand-in fired manually."""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.started = False
        self.cancelled = False
        self.daemon = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function(*self.args)


class TestSignificance:
    """Tests for is_significant_correction."""

    def test_identical(self):
        """Identical text is not a correction."""
        assert not is_significant_correction("fees", "fees")

    def test_capitalization_only(self):
        """Case-only changes are ignored."""
        assert not is_significant_correction("what are the fees", "What are the fees")

    def test_common_words_only(self):
        """Edits among common short words are ignored."""
        assert not is_significant_correction("the a", "the an")

    def test_tiny_edit_in_long_text(self):
        """Edits under 10% of the characters are ignored."""
        original = "I would like to know about the computer science program feez"
        assert not is_significant_correction(original, original[:-1] + "s")

    def test_real_typo(self):
        """A misspelled word in a short question is significant."""
        assert is_significant_correction("What are the tution fees?", "What are the tuition fees?")


class TestTypoCorrectionService:
    """Tests for TypoCorrectionService.correct."""

    @pytest.fixture
    def service(self, mock_openai_client):
        return TypoCorrectionService()

    def test_requires_api_key(self):
        """A missing API key is a configuration error."""
        with patch.dict(os.environ, {'OPENAI_API_KEY': ''}):
            with pytest.raises(ValueError):
                TypoCorrectionService()

    def test_no_typos(self, service):
        """hasTypos=false yields no suggestion."""
        assert service.correct("What are the fees?") is None

    def test_short_text_skips_api(self, service, mock_openai_client):
        """Very short inputs are not sent."""
        assert service.correct("hi") is None
        mock_openai_client.chat.completions.create.assert_not_called()

    def test_full_correction(self, service, mock_openai_client):
        """A full corrected sentence becomes a suggestion."""
        set_completion(mock_openai_client, {
            "hasTypos": True,
            "corrected": "What are the tuition fees?",
            "confidence": 0.9,
            "originalWord": "tution",
            "correctedWord": "tuition",
            "numberOfCorrections": 1,
        })
        suggestion = service.correct("What are the tution fees?")
        assert isinstance(suggestion, CorrectionSuggestion)
        assert suggestion.corrected == "What are the tuition fees?"
        assert suggestion.original_word == "tution"
        assert suggestion.corrected_word == "tuition"
        assert suggestion.multiple_corrections is False

    def test_word_only_response_is_rebuilt(self, service, mock_openai_client):
        """A response carrying only the word is applied to the sentence."""
        set_completion(mock_openai_client, {
            "hasTypos": True,
            "corrected": "tuition",
            "originalWord": "tution",
            "correctedWord": "tuition",
        })
        suggestion = service.correct("What are the tution fees?")
        assert suggestion.corrected == "What are the tuition fees?"

    def test_capitalization_suggestion_filtered(self, service, mock_openai_client):
        """Case-only suggestions from the model are dropped."""
        set_completion(mock_openai_client, {"hasTypos": True, "corrected": "What Are The Fees"})
        assert service.correct("what are the fees") is None

    def test_api_error_returns_none(self, service, mock_openai_client):
        """API failures are swallowed."""
        mock_openai_client.chat.completions.create.side_effect = Exception("API Error")
        assert service.correct("What are the tution fees?") is None

    def test_arabic_request(self, service, mock_openai_client):
        """Arabic requests use Arabic guidance and a larger token budget."""
        service.correct("ما هي الرسوم الدراسيه", language="ar")
        kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["max_completion_tokens"] == 150
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "Arabic" in kwargs["messages"][0]["content"]


class TestDebouncedCorrector:
    """Tests for DebouncedCorrector."""

    @pytest.fixture
    def timers(self):
        created = []

        def factory(*args, **kwargs):
            timer = FakeTimer(*args, **kwargs)
            created.append(timer)
            return timer
        factory.created = created
        return factory

    @pytest.fixture
    def service(self):
        service = Mock()
        service.correct.return_value = None
        return service

    def test_new_input_cancels_pending(self, service, timers):
        """Submitting again cancels the previous timer."""
        corrector = DebouncedCorrector(service, delay_seconds=0.3, timer_factory=timers)
        callback = Mock()

        corrector.submit("teh", "en", callback)
        corrector.submit("teh fees", "en", callback)

        first, second = timers.created
        assert first.cancelled
        assert second.started
        assert second.interval == 0.3

        second.fire()
        service.correct.assert_called_once_with("teh fees", "en")
        callback.assert_called_once_with(None)

    def test_superseded_timer_does_nothing(self, service, timers):
        """A timer that fires after being superseded is ignored."""
        corrector = DebouncedCorrector(service, timer_factory=timers)
        callback = Mock()

        corrector.submit("teh", "en", callback)
        corrector.submit("teh fees", "en", callback)
        timers.created[0].fire()

        service.correct.assert_not_called()
        callback.assert_not_called()

    def test_cancel(self, service, timers):
        """cancel() drops the pending request."""
        corrector = DebouncedCorrector(service, timer_factory=timers)
        callback = Mock()

        corrector.submit("teh", "en", callback)
        assert corrector.pending
        corrector.cancel()
        assert not corrector.pending

        timers.created[0].fire()
        callback.assert_not_called()
