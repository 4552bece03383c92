"""
Conversation Context Store.

Owns one ConversationContext per conversation id. Contexts are created lazily,
refreshed on every access, and evicted either after a period of inactivity
(TTL) or when the number of live contexts exceeds capacity (LRU).

Eviction runs opportunistically on each access rather than on a background
timer. A context is touched by re-assigning it, so the id being requested is
never the one evicted for capacity.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from cachetools import TTLCache

from app.services.conversation_context import ConversationContext, utcnow

logger = logging.getLogger(__name__)


class ContextCache(TTLCache):
    """TTLCache that logs capacity evictions."""

    def popitem(self):
        conversation_id, context = super().popitem()
        logger.debug(f"Context for conversation {conversation_id} evicted (capacity {self.maxsize})")
        return conversation_id, context


class ContextStore:
    """
    In-memory, capacity-bounded store of conversation contexts.

    Args:
        session_timeout_minutes: Inactivity period after which a context expires
        max_contexts: Maximum number of live contexts
        clock: Returns the current time (injectable for tests)
    """

    def __init__(
        self,
        session_timeout_minutes: int = 30,
        max_contexts: int = 50,
        clock: Optional[Callable[[], datetime]] = None
    ):
        if max_contexts < 1:
            raise ValueError("max_contexts must be at least 1")
        self.session_timeout_minutes = session_timeout_minutes
        self.max_contexts = max_contexts
        self.clock = clock or utcnow
        self._contexts: ContextCache = ContextCache(
            maxsize=max_contexts,
            ttl=session_timeout_minutes * 60,
            timer=self._timestamp
        )

    def _timestamp(self) -> float:
        return self.clock().timestamp()

    def get_or_create(self, conversation_id: str) -> ConversationContext:
        """
        Return the live context for an id, creating a fresh one if absent or expired.

        Args:
            conversation_id: Opaque conversation key

        Returns:
            The touched ConversationContext
        """
        now = self.clock()
        self._sweep_expired()

        context = self._contexts.get(conversation_id)
        if context is None:
            context = ConversationContext(
                conversation_id=conversation_id,
                created_at=now,
                last_interaction_at=now
            )
            logger.debug(f"Created context for conversation {conversation_id}")
        else:
            context.touch(now)

        self._contexts[conversation_id] = context
        return context

    def get(self, conversation_id: str) -> Optional[ConversationContext]:
        """Return a live context without creating it or refreshing its expiry."""
        self._sweep_expired()
        return self._contexts.get(conversation_id)

    def put(self, conversation_id: str, context: ConversationContext) -> ConversationContext:
        """Store (or replace) the context for an id and mark it most recently used."""
        self._sweep_expired()
        context.touch(self.clock())
        self._contexts[conversation_id] = context
        return context

    def evict(self, conversation_id: str) -> bool:
        """Remove a context; returns False when it was not present."""
        removed = self._contexts.pop(conversation_id, None)
        if removed is not None:
            logger.info(f"Evicted context for conversation {conversation_id}")
        return removed is not None

    def conversation_ids(self) -> List[str]:
        """Live ids, least recently touched first."""
        return list(self._contexts)

    def __len__(self) -> int:
        self._sweep_expired()
        return len(self._contexts)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._contexts

    def _sweep_expired(self) -> None:
        for conversation_id, _ in self._contexts.expire():
            logger.debug(f"Context for conversation {conversation_id} expired")
