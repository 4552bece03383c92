"""
Engine configuration.

All tunables of the context engine are read from the environment with
string defaults, so a deployment can recalibrate thresholds without a
code change. The subject thresholds and follow-up weights are empirically
tuned values carried over from production transcripts.
"""
import os
from dataclasses import dataclass


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


def _env_int(name: str, default: str) -> int:
    return int(os.getenv(name, default))


@dataclass
class EngineSettings:
    """Tunable limits and thresholds for the context engine."""
    session_timeout_minutes: int = 30
    max_contexts: int = 50
    max_active_topics: int = 10
    max_entities: int = 20
    max_related_queries: int = 5

    # Language detection
    arabic_ratio: float = 0.5
    language_switch_certainty: float = 0.3
    language_switch_min_letters: int = 5

    # Subject policy
    subject_confidence_floor: float = 0.4
    subject_confidence_high: float = 0.6

    # Follow-up scoring
    follow_up_threshold: float = 2.0
    follow_up_max_score: float = 5.0
    continuation_min_confidence: float = 0.95

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from environment variables."""
        return cls(
            session_timeout_minutes=_env_int("CONTEXT_SESSION_TIMEOUT_MINUTES", "30"),
            max_contexts=_env_int("CONTEXT_MAX_CONTEXTS", "50"),
            max_active_topics=_env_int("CONTEXT_MAX_ACTIVE_TOPICS", "10"),
            max_entities=_env_int("CONTEXT_MAX_ENTITIES", "20"),
            max_related_queries=_env_int("CONTEXT_MAX_RELATED_QUERIES", "5"),
            arabic_ratio=_env_float("LANGUAGE_ARABIC_RATIO", "0.5"),
            language_switch_certainty=_env_float("LANGUAGE_SWITCH_CERTAINTY", "0.3"),
            language_switch_min_letters=_env_int("LANGUAGE_SWITCH_MIN_LETTERS", "5"),
            subject_confidence_floor=_env_float("SUBJECT_CONFIDENCE_FLOOR", "0.4"),
            subject_confidence_high=_env_float("SUBJECT_CONFIDENCE_HIGH", "0.6"),
            follow_up_threshold=_env_float("FOLLOW_UP_THRESHOLD", "2.0"),
            follow_up_max_score=_env_float("FOLLOW_UP_MAX_SCORE", "5.0"),
            continuation_min_confidence=_env_float("CONTINUATION_MIN_CONFIDENCE", "0.95"),
        )
