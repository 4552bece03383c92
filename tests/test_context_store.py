"""
Unit tests for the in-memory context store (TTL and LRU eviction).
"""
import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.services.context_store import ContextStore
from app.services.conversation_context import ConversationContext


class TestContextStoreLifecycle:
    """Tests for creation and lookup."""

    def test_get_or_create_creates_lazily(self, store):
        """A fresh context is created on first access."""
        context = store.get_or_create("conv-1")
        assert context.conversation_id == "conv-1"
        assert context.user_message_count == 0
        assert "conv-1" in store
        assert len(store) == 1

    def test_get_or_create_returns_same_context(self, store):
        """Repeated access returns the same live object."""
        assert store.get_or_create("conv-1") is store.get_or_create("conv-1")

    def test_get_does_not_create(self, store):
        """get() returns None for unknown ids."""
        assert store.get("missing") is None
        assert len(store) == 0

    def test_put_replaces(self, store):
        """put() replaces the stored context."""
        store.get_or_create("conv-1")
        replacement = ConversationContext(conversation_id="conv-1", current_subject="Law")
        store.put("conv-1", replacement)
        assert store.get("conv-1").current_subject == "Law"

    def test_evict(self, store):
        """evict() removes a context and reports whether it existed."""
        store.get_or_create("conv-1")
        assert store.evict("conv-1") is True
        assert store.evict("conv-1") is False

    def test_invalid_capacity(self):
        """Capacity must be positive."""
        with pytest.raises(ValueError):
            ContextStore(max_contexts=0)


class TestContextStoreExpiry:
    """Tests for inactivity expiry."""

    def test_context_expires_after_timeout(self, store, clock):
        """Contexts idle longer than the timeout are replaced with fresh ones."""
        context = store.get_or_create("conv-1")
        context.current_subject = "Optometry"

        clock.advance(minutes=31)
        fresh = store.get_or_create("conv-1")
        assert fresh is not context
        assert fresh.current_subject is None

    def test_access_refreshes_expiry(self, store, clock):
        """Each access pushes the expiry forward."""
        context = store.get_or_create("conv-1")
        clock.advance(minutes=20)
        store.get_or_create("conv-1")
        clock.advance(minutes=20)
        assert store.get_or_create("conv-1") is context

    def test_expired_contexts_swept_on_any_access(self, store, clock):
        """Accessing one id sweeps other expired ids."""
        store.get_or_create("old")
        clock.advance(minutes=45)
        store.get_or_create("new")
        assert "old" not in store
        assert store.conversation_ids() == ["new"]

    def test_get_does_not_refresh_expiry(self, store, clock):
        """Reading a context does not keep it alive."""
        store.get_or_create("conv-1")
        clock.advance(minutes=20)
        assert store.get("conv-1") is not None
        clock.advance(minutes=11)
        assert store.get("conv-1") is None


class TestContextStoreCapacity:
    """Tests for LRU capacity eviction."""

    def test_capacity_evicts_least_recently_used(self, store):
        """With 55 ids and capacity 50 the five oldest are evicted."""
        for i in range(55):
            store.get_or_create(f"conv-{i}")
        assert len(store) == 50
        for i in range(5):
            assert f"conv-{i}" not in store
        assert "conv-54" in store

    def test_recent_access_protects_from_eviction(self, clock):
        """Touching an old id moves it to the most recent position."""
        store = ContextStore(max_contexts=2, clock=clock)
        store.get_or_create("a")
        store.get_or_create("b")
        store.get_or_create("a")
        store.get_or_create("c")
        assert store.conversation_ids() == ["a", "c"]

    def test_requested_context_never_evicted(self, clock):
        """The context being created survives a capacity of one."""
        store = ContextStore(max_contexts=1, clock=clock)
        store.get_or_create("a")
        context = store.get_or_create("b")
        assert store.get("b") is context
        assert "a" not in store
