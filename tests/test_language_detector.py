"""
Unit tests for script-based language detection.
"""
import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.services.language_detector import detect_language, detect_with_certainty


class TestDetectLanguage:
    """Tests for detect_language."""

    def test_english_text(self):
        """Latin-only text is English."""
        assert detect_language("What are the fees for Optometry?") == "en"

    def test_arabic_text(self):
        """Arabic-only text is Arabic."""
        assert detect_language("ما هي رسوم تخصص البصريات؟") == "ar"

    def test_empty_defaults_to_english(self):
        """Empty or whitespace text defaults to English."""
        assert detect_language("") == "en"
        assert detect_language("   ") == "en"

    def test_digits_only_defaults_to_english(self):
        """Text without letters defaults to English."""
        assert detect_language("1500 ?!") == "en"

    def test_mixed_text_arabic_majority(self):
        """Arabic wins when it exceeds half the Latin count."""
        assert detect_language("كم رسوم IT") == "ar"

    def test_ratio_is_configurable(self):
        """A higher ratio makes Arabic harder to win."""
        text = "ابحث about"
        assert detect_language(text, ratio=0.5) == "ar"
        assert detect_language(text, ratio=2.0) == "en"


class TestDetectWithCertainty:
    """Tests for certainty reporting."""

    def test_pure_script_is_certain(self):
        """Single-script text has certainty 1.0."""
        assert detect_with_certainty("hello").certainty == 1.0
        assert detect_with_certainty("مرحبا").certainty == 1.0

    def test_no_letters_has_zero_certainty(self):
        """Certainty is zero when there are no letters."""
        result = detect_with_certainty("123")
        assert result.certainty == 0.0
        assert result.language == "en"

    def test_counts_are_reported(self):
        """Character counts are exposed on the result."""
        result = detect_with_certainty("ab جد")
        assert result.arabic_chars == 2
        assert result.latin_chars == 2
        assert result.certainty == pytest.approx(0.0)
