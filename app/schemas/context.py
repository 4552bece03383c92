"""
Conversation context schemas.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator


# Constants for validation
MAX_MESSAGE_LENGTH = 5000
MAX_ASSISTANT_MESSAGE_LENGTH = 50000


class MessageRequest(BaseModel):
    """A user message."""
    text: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)

    @field_validator('text')
    @classmethod
    def not_blank(cls, v: str) -> str:
        """Reject whitespace-only messages."""
        if not v.strip():
            raise ValueError("text must not be blank")
        return v


class AssistantMessageRequest(BaseModel):
    """An assistant response, possibly long markdown."""
    text: str = Field(..., min_length=1, max_length=MAX_ASSISTANT_MESSAGE_LENGTH)


class TypoCorrectionRequest(BaseModel):
    """Draft text to check for typos."""
    text: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    language: str = Field("en", pattern=r"^(en|ar)$")


class FollowUp(BaseModel):
    """Follow-up classification of a message."""
    is_follow_up: bool = False
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    score: float = 0.0
    pure_continuation: bool = False
    possessive_reference: bool = False
    maintain_subject: bool = False
    referenced_attribute: Optional[str] = None
    signals: List[str] = Field(default_factory=list)


class ContextSnapshot(BaseModel):
    """Context metadata sent with the outbound query."""
    subject: Optional[str] = None
    topic: Optional[str] = None
    is_follow_up: bool = False
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    language: str = "en"
    last_numbers: Dict[str, float] = Field(default_factory=dict)
    last_entities: List[str] = Field(default_factory=list)
    carried_attributes: List[str] = Field(default_factory=list)


class MessageResult(BaseModel):
    """Result of processing a user message."""
    enriched_query: str
    follow_up: FollowUp
    context: ContextSnapshot


class MessageResponse(BaseModel):
    """Envelope for a processed user message."""
    success: bool = True
    data: MessageResult
    message: str = "OK"


class SnapshotResponse(BaseModel):
    """Envelope for a context snapshot."""
    success: bool = True
    data: ContextSnapshot
    message: str = "OK"


class EnrichResponse(BaseModel):
    """Envelope for an enriched query."""
    success: bool = True
    data: Dict[str, str]
    message: str = "OK"


class ResponseTopicsResponse(BaseModel):
    """Envelope for the topics recorded from an assistant message."""
    success: bool = True
    data: Dict[str, List[str]]
    message: str = "OK"


class TypoCorrectionResponse(BaseModel):
    """Envelope for a typo suggestion; data.suggestion is null when none."""
    success: bool = True
    data: Dict[str, Optional[Dict[str, Any]]]
    message: str = "OK"
