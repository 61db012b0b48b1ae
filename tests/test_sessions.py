# =============================================================================
# Unit Tests — Session Store
# =============================================================================
#
# Uses a MagicMock vector store factory and a fake clock, so eviction can be
# tested without ChromaDB or real time passing.
# =============================================================================

import asyncio
from unittest.mock import MagicMock

from rfi_assistant.services.requirements import RequirementEntry, RequirementsList
from rfi_assistant.services.sessions import SessionStore


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _store(ttl: int = 100, max_sessions: int = 10) -> tuple[SessionStore, _Clock, MagicMock]:
    clock = _Clock()
    factory = MagicMock(side_effect=lambda sid: MagicMock(name=f"index-{sid}"))
    store = SessionStore(
        ttl_seconds=ttl,
        max_sessions=max_sessions,
        vector_store_factory=factory,
        clock=clock,
    )
    return store, clock, factory


class TestSessionStore:
    def test_get_or_create_reuses_session(self):
        store, _, factory = _store()
        first = store.get_or_create("a")
        assert store.get_or_create("a") is first
        assert factory.call_count == 1
        assert not first.has_document

    def test_sessions_are_isolated(self):
        store, _, _ = _store()
        a = store.get_or_create("a")
        b = store.get_or_create("b")
        a.requirements = RequirementsList([RequirementEntry("Only A", "x")])
        assert "Only A" not in b.requirements
        assert a.vector_store is not b.vector_store

    def test_idle_sessions_expire(self):
        store, clock, _ = _store(ttl=100)
        old = store.get_or_create("old")
        clock.now = 101
        store.get_or_create("new")
        assert "old" not in store
        old.vector_store.clear.assert_called_once()

    def test_recent_use_keeps_session_alive(self):
        store, clock, _ = _store(ttl=100)
        store.get_or_create("a")
        clock.now = 90
        store.get("a")
        clock.now = 150
        assert store.evict_expired() == 0
        assert "a" in store

    def test_locked_session_not_expired(self):
        store, clock, _ = _store(ttl=10)
        session = store.get_or_create("busy")

        async def _hold_lock():
            async with session.lock:
                clock.now = 100
                return store.evict_expired()

        assert asyncio.run(_hold_lock()) == 0
        assert "busy" in store

    def test_lru_eviction_when_full(self):
        store, _, _ = _store(max_sessions=2)
        store.get_or_create("a")
        store.get_or_create("b")
        store.get_or_create("a")  # a is now most recent
        store.get_or_create("c")
        assert "b" not in store
        assert "a" in store and "c" in store
        assert len(store) == 2

    def test_lru_eviction_skips_busy_session(self):
        store, _, _ = _store(max_sessions=1)
        a = store.get_or_create("a")
        a.requirements = RequirementsList([RequirementEntry("Deadline", "May 1")])

        async def _create_during_edit():
            async with a.lock:
                store.get_or_create("b")
                return "a" in store

        assert asyncio.run(_create_during_edit()) is True
        assert store.get_or_create("a") is a
        assert a.requirements.get("Deadline") == "May 1"
        a.vector_store.clear.assert_not_called()

    def test_overflow_evicted_once_lock_released(self):
        store, _, _ = _store(max_sessions=1)
        a = store.get_or_create("a")

        async def _create_during_edit():
            async with a.lock:
                store.get_or_create("b")

        asyncio.run(_create_during_edit())
        assert len(store) == 2

        store.get_or_create("c")
        assert "c" in store
        assert len(store) == 1

    def test_drop_clears_index(self):
        store, _, _ = _store()
        session = store.get_or_create("a")
        store.drop("a")
        assert "a" not in store
        session.vector_store.clear.assert_called_once()
        store.drop("missing")
