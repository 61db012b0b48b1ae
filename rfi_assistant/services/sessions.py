# =============================================================================
# Session Store — Per-Session Document Context
# =============================================================================
#
# Each client session (X-Session-ID header, "default" when absent) owns:
#   - the uploaded document's text and page count
#   - its requirements list
#   - its own vector index (one Chroma collection)
#   - an asyncio.Lock that serialises uploads and edits on that session
#
# Sessions live in process memory. Idle sessions are evicted after
# session_ttl_seconds; when more than max_sessions exist, the least
# recently used one is dropped. Evicting a session drops its collection.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field

from rfi_assistant.config import settings
from rfi_assistant.services.requirements import RequirementsList
from rfi_assistant.services.vectorstore import ChromaVectorStore, VectorStore

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Everything the chat endpoints know about one session's document."""

    session_id: str
    vector_store: VectorStore
    filename: str | None = None
    text: str = ""
    page_count: int = 0
    chunk_count: int = 0
    requirements: RequirementsList = field(default_factory=RequirementsList)
    created_at: float = field(default_factory=time.monotonic)
    last_used_at: float = field(default_factory=time.monotonic)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def has_document(self) -> bool:
        return self.filename is not None


class SessionStore:
    """In-memory session registry with TTL and LRU eviction."""

    def __init__(
        self,
        ttl_seconds: int = 3600,
        max_sessions: int = 100,
        vector_store_factory: Callable[[str], VectorStore] = ChromaVectorStore,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max = max_sessions
        self._factory = vector_store_factory
        self._clock = clock
        self._sessions: OrderedDict[str, SessionContext] = OrderedDict()

    def get_or_create(self, session_id: str) -> SessionContext:
        """Return the live session, creating it (and its index) if needed."""
        self.evict_expired()

        session = self._sessions.get(session_id)
        if session is None:
            now = self._clock()
            session = SessionContext(
                session_id=session_id,
                vector_store=self._factory(session_id),
                created_at=now,
                last_used_at=now,
            )
            self._sessions[session_id] = session
            logger.info("Created session %s", session_id)
            self._evict_overflow(keep=session_id)
        else:
            self._sessions.move_to_end(session_id)

        session.last_used_at = self._clock()
        return session

    def get(self, session_id: str) -> SessionContext | None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.last_used_at = self._clock()
            self._sessions.move_to_end(session_id)
        return session

    def drop(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.vector_store.clear()
            logger.info("Dropped session %s", session_id)

    def evict_expired(self) -> int:
        now = self._clock()
        expired = [
            sid
            for sid, s in self._sessions.items()
            if now - s.last_used_at > self._ttl and not s.lock.locked()
        ]
        for sid in expired:
            self.drop(sid)
        return len(expired)

    def _evict_overflow(self, keep: str) -> None:
        # Sessions with an upload or edit in flight are never evicted; the
        # store may sit above max_sessions until their locks are released.
        while len(self._sessions) > self._max:
            victim = next(
                (
                    sid
                    for sid, s in self._sessions.items()
                    if sid != keep and not s.lock.locked()
                ),
                None,
            )
            if victim is None:
                logger.warning(
                    "Session limit %d exceeded but every other session is busy",
                    self._max,
                )
                return
            logger.info("Session limit %d reached, evicting %s", self._max, victim)
            self.drop(victim)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions


_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Process-wide store, built from settings on first use."""
    global _store
    if _store is None:
        _store = SessionStore(
            ttl_seconds=settings.session_ttl_seconds,
            max_sessions=settings.max_sessions,
        )
    return _store
