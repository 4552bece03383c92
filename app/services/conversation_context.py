"""
Conversation Context Model.

Per-conversation state tracked across turns: language, subject, topic,
follow-up bookkeeping, remembered entities/numbers, and the state machine.
Serialization flattens maps and sets into lists (of pairs) so snapshots can be
stored as JSON by any persistence layer.
"""
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
from dataclasses import dataclass, field
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Optional[str]) -> datetime:
    if not value:
        return utcnow()
    parsed = datetime.fromisoformat(value)
    # Naive timestamps are taken as UTC so TTL arithmetic never mixes kinds
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_dict(value: Any, name: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be an object")
    return value


def _as_list(value: Any, name: str) -> List[Any]:
    if not isinstance(value, list):
        raise ValueError(f"{name} must be a list")
    return value


class ContextState(str, Enum):
    """States of the per-conversation state machine."""
    INITIAL = "initial"
    SUBJECT_SELECTED = "subject_selected"
    TOPIC_FOCUSED = "topic_focused"
    FOLLOW_UP = "follow_up"
    CLARIFICATION = "clarification"


class TransitionKind(str, Enum):
    """What changed in a topic transition record."""
    SUBJECT = "subject"
    TOPIC = "topic"


@dataclass
class StateTransition:
    """One actual change of state."""
    from_state: ContextState
    to_state: ContextState
    timestamp: datetime
    trigger: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_state.value,
            "to": self.to_state.value,
            "timestamp": self.timestamp.isoformat(),
            "trigger": self.trigger,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StateTransition':
        return cls(
            from_state=ContextState(data["from"]),
            to_state=ContextState(data["to"]),
            timestamp=_parse_datetime(data.get("timestamp")),
            trigger=data.get("trigger", ""),
        )


@dataclass
class ConversationState:
    """Current state plus its transition history."""
    current: ContextState = ContextState.INITIAL
    transitions: List[StateTransition] = field(default_factory=list)

    def transition_to(self, target: ContextState, trigger: str, timestamp: datetime) -> bool:
        """Move to target; only real changes are recorded."""
        if target == self.current:
            return False
        self.transitions.append(StateTransition(self.current, target, timestamp, trigger))
        self.current = target
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current.value,
            "transitions": [t.to_dict() for t in self.transitions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConversationState':
        return cls(
            current=ContextState(data.get("current", ContextState.INITIAL.value)),
            transitions=[
                StateTransition.from_dict(_as_dict(t, "state transition"))
                for t in _as_list(data.get("transitions", []), "state.transitions")
            ],
        )


@dataclass
class ActiveTopic:
    """Entry of the recency-ranked working set of topics."""
    name: str
    last_discussed_at: datetime
    attributes: List[str] = field(default_factory=list)
    related_queries: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "last_discussed_at": self.last_discussed_at.isoformat(),
            "attributes": list(self.attributes),
            "related_queries": list(self.related_queries),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ActiveTopic':
        return cls(
            name=data["name"],
            last_discussed_at=_parse_datetime(data.get("last_discussed_at")),
            attributes=list(_as_list(data.get("attributes", []), "attributes")),
            related_queries=list(_as_list(data.get("related_queries", []), "related_queries")),
        )


@dataclass
class TopicTransition:
    """Append-only record of a subject or topic change."""
    from_value: Optional[str]
    to_value: Optional[str]
    timestamp: datetime
    carried_attributes: List[str] = field(default_factory=list)
    kind: TransitionKind = TransitionKind.TOPIC

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_value,
            "to": self.to_value,
            "timestamp": self.timestamp.isoformat(),
            "carried_attributes": list(self.carried_attributes),
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TopicTransition':
        return cls(
            from_value=data.get("from"),
            to_value=data.get("to"),
            timestamp=_parse_datetime(data.get("timestamp")),
            carried_attributes=list(_as_list(data.get("carried_attributes", []), "carried_attributes")),
            kind=TransitionKind(data.get("kind", TransitionKind.TOPIC.value)),
        )


@dataclass
class ConversationContext:
    """Full cross-turn context for one conversation."""
    conversation_id: str
    language: str = "en"
    current_subject: Optional[str] = None
    current_topic: Optional[str] = None
    follow_up_count: int = 0
    user_message_count: int = 0
    context_confidence: float = 0.0
    last_numbers: Dict[str, float] = field(default_factory=dict)
    # Ordered oldest-first; bounded by the engine
    last_entities: List[str] = field(default_factory=list)
    last_discussed_attributes: List[str] = field(default_factory=list)
    # Ordered most-recent-first; bounded by the engine
    active_topics: List[ActiveTopic] = field(default_factory=list)
    topic_transitions: List[TopicTransition] = field(default_factory=list)
    state: ConversationState = field(default_factory=ConversationState)
    last_response_topics: List[str] = field(default_factory=list)
    last_is_follow_up: bool = False
    last_follow_up_confidence: float = 0.0
    last_user_message: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    last_interaction_at: datetime = field(default_factory=utcnow)

    def touch(self, now: Optional[datetime] = None) -> None:
        self.last_interaction_at = now or utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary (maps flattened to pairs)."""
        return {
            "conversation_id": self.conversation_id,
            "language": self.language,
            "current_subject": self.current_subject,
            "current_topic": self.current_topic,
            "follow_up_count": self.follow_up_count,
            "user_message_count": self.user_message_count,
            "context_confidence": self.context_confidence,
            "last_numbers": [[key, value] for key, value in self.last_numbers.items()],
            "last_entities": list(self.last_entities),
            "last_discussed_attributes": list(self.last_discussed_attributes),
            "active_topics": [t.to_dict() for t in self.active_topics],
            "topic_transitions": [t.to_dict() for t in self.topic_transitions],
            "state": self.state.to_dict(),
            "last_response_topics": list(self.last_response_topics),
            "last_is_follow_up": self.last_is_follow_up,
            "last_follow_up_confidence": self.last_follow_up_confidence,
            "last_user_message": self.last_user_message,
            "created_at": self.created_at.isoformat(),
            "last_interaction_at": self.last_interaction_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConversationContext':
        """Rebuild a context from to_dict() output."""
        return cls(
            conversation_id=data["conversation_id"],
            language=data.get("language", "en"),
            current_subject=data.get("current_subject"),
            current_topic=data.get("current_topic"),
            follow_up_count=int(data.get("follow_up_count", 0)),
            user_message_count=int(data.get("user_message_count", 0)),
            context_confidence=float(data.get("context_confidence", 0.0)),
            last_numbers={
                key: float(value)
                for key, value in (
                    _as_list(pair, "last_numbers entry")
                    for pair in _as_list(data.get("last_numbers", []), "last_numbers")
                )
            },
            last_entities=list(_as_list(data.get("last_entities", []), "last_entities")),
            last_discussed_attributes=list(
                _as_list(data.get("last_discussed_attributes", []), "last_discussed_attributes")
            ),
            active_topics=[
                ActiveTopic.from_dict(_as_dict(t, "active topic"))
                for t in _as_list(data.get("active_topics", []), "active_topics")
            ],
            topic_transitions=[
                TopicTransition.from_dict(_as_dict(t, "topic transition"))
                for t in _as_list(data.get("topic_transitions", []), "topic_transitions")
            ],
            state=ConversationState.from_dict(_as_dict(data.get("state", {}), "state")),
            last_response_topics=list(_as_list(data.get("last_response_topics", []), "last_response_topics")),
            last_is_follow_up=bool(data.get("last_is_follow_up", False)),
            last_follow_up_confidence=float(data.get("last_follow_up_confidence", 0.0)),
            last_user_message=data.get("last_user_message"),
            created_at=_parse_datetime(data.get("created_at")),
            last_interaction_at=_parse_datetime(data.get("last_interaction_at")),
        )
