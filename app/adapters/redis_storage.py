"""
Context persistence adapters.

The engine keeps live contexts in memory; these adapters store serialized
snapshots so a conversation can be restored after a restart. Persistence is
best effort: failures are logged and never break a turn.
"""
import json
import logging
from typing import Any, Dict, Optional

import redis

logger = logging.getLogger(__name__)


class RedisContextStorage:
    """
    Redis-backed snapshot storage.

    Args:
        redis_url: Connection URL (rediss:// supported)
        ttl_seconds: Expiry applied on every save
        key_prefix: Namespace for conversation keys
        client: Pre-built client (skips connecting; used in tests)
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        ttl_seconds: int = 1800,
        key_prefix: str = "context:conversation",
        client: Optional[Any] = None
    ):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

        if client is not None:
            self.redis = client
            self.enabled = True
            return

        try:
            # Support rediss:// URLs (Upstash, etc.)
            redis_kwargs = {}
            if redis_url.startswith("rediss://"):
                redis_kwargs["ssl_cert_reqs"] = "CERT_NONE"
            self.redis = redis.from_url(redis_url, **redis_kwargs)
            self.redis.ping()
            self.enabled = True
            logger.info("Redis connected for context persistence")
        except Exception as e:
            logger.warning(f"Redis not available, context persistence disabled: {e}")
            self.redis = None
            self.enabled = False

    def _key(self, conversation_id: str) -> str:
        return f"{self.key_prefix}:{conversation_id}"

    def save(self, conversation_id: str, data: Dict[str, Any]) -> bool:
        """Persist a snapshot; returns False when it could not be written."""
        if not self.enabled:
            return False
        try:
            payload = json.dumps(data, ensure_ascii=False)
            self.redis.setex(self._key(conversation_id), self.ttl_seconds, payload)
            return True
        except Exception as e:
            logger.error(f"Failed to save context {conversation_id} to Redis: {e}")
            return False

    def load(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        """Load a snapshot, or None when absent or unreadable."""
        if not self.enabled:
            return None
        try:
            data = self.redis.get(self._key(conversation_id))
            if data:
                return json.loads(data)
        except Exception as e:
            logger.error(f"Failed to load context {conversation_id} from Redis: {e}")
        return None

    def delete(self, conversation_id: str) -> bool:
        if not self.enabled:
            return False
        try:
            return bool(self.redis.delete(self._key(conversation_id)))
        except Exception as e:
            logger.error(f"Failed to delete context {conversation_id} from Redis: {e}")
            return False


class InMemoryContextStorage:
    """Dict-backed storage with the same interface, for tests and local runs."""

    enabled = True

    def __init__(self):
        self._data: Dict[str, str] = {}

    def save(self, conversation_id: str, data: Dict[str, Any]) -> bool:
        # Stored as JSON so round trips behave like Redis
        self._data[conversation_id] = json.dumps(data, ensure_ascii=False)
        return True

    def load(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        data = self._data.get(conversation_id)
        return json.loads(data) if data else None

    def delete(self, conversation_id: str) -> bool:
        return self._data.pop(conversation_id, None) is not None
