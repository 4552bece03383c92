"""
Unit tests for Pydantic schemas.
"""
import pytest
from pydantic import ValidationError
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.schemas.common import ApiResponse, ErrorResponse, HealthResponse
from app.schemas.context import (
    MAX_MESSAGE_LENGTH, MessageRequest, MessageResponse, TypoCorrectionRequest,
)


class TestMessageRequest:
    """Tests for MessageRequest."""

    def test_valid(self):
        """Plain text is accepted unchanged."""
        assert MessageRequest(text=" What are the fees? ").text == " What are the fees? "

    def test_arabic(self):
        """Arabic text is accepted."""
        assert MessageRequest(text="ما هي الرسوم؟").text == "ما هي الرسوم؟"

    def test_empty_rejected(self):
        """Empty text fails validation."""
        with pytest.raises(ValidationError):
            MessageRequest(text="")

    def test_blank_rejected(self):
        """Whitespace-only text fails validation."""
        with pytest.raises(ValidationError):
            MessageRequest(text="   ")

    def test_too_long_rejected(self):
        """Overlong messages fail validation."""
        with pytest.raises(ValidationError):
            MessageRequest(text="a" * (MAX_MESSAGE_LENGTH + 1))


class TestTypoCorrectionRequest:
    """Tests for TypoCorrectionRequest."""

    def test_default_language(self):
        """Language defaults to English."""
        assert TypoCorrectionRequest(text="teh fees").language == "en"

    def test_unknown_language(self):
        """Only en and ar are allowed."""
        with pytest.raises(ValidationError):
            TypoCorrectionRequest(text="teh fees", language="de")


class TestResponses:
    """Tests for response envelopes."""

    def test_message_response(self):
        """Nested payloads are validated."""
        response = MessageResponse(data={
            "enriched_query": "q",
            "follow_up": {"is_follow_up": True, "confidence": 0.96},
            "context": {"subject": "Law", "confidence": 0.5},
        })
        assert response.success is True
        assert response.data.follow_up.confidence == 0.96
        assert response.data.context.carried_attributes == []

    def test_confidence_bounds(self):
        """Confidence outside [0, 1] is rejected."""
        with pytest.raises(ValidationError):
            MessageResponse(data={
                "enriched_query": "q",
                "follow_up": {"confidence": 1.5},
                "context": {},
            })

    def test_api_response_defaults(self):
        """The generic envelope defaults to success."""
        response = ApiResponse()
        assert response.success is True
        assert response.data == {}

    def test_health_response(self):
        """Health responses require all fields."""
        with pytest.raises(ValidationError):
            HealthResponse(success=True)

    def test_error_response(self):
        """Error responses carry a structured error."""
        response = ErrorResponse(error={
            "id": "abc", "code": "E2002", "message": "bad", "timestamp": "2024-09-01T00:00:00+00:00"
        })
        assert response.success is False
        assert response.error.code == "E2002"
