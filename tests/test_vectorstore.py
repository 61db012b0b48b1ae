# =============================================================================
# Unit Tests — Vector Store (ChromaDB backend)
# =============================================================================
#
# Tests the per-session ChromaDB index: replace, search, count, clear.
# Uses ChromaDB's in-process mode (no external services needed).
# =============================================================================

import asyncio
import itertools
from unittest.mock import MagicMock, patch

import pytest

from rfi_assistant.services.chunker import DocumentChunk
from rfi_assistant.services.vectorstore import (
    ChromaVectorStore,
    VectorSearchResult,
    collection_name_for,
)

_ids = itertools.count()


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _chunks(texts: list[str], pages: list[list[int]] | None = None) -> list[DocumentChunk]:
    pages = pages or [[1]] * len(texts)
    return [
        DocumentChunk(text=t, index=i, total_chunks=len(texts), page_numbers=p)
        for i, (t, p) in enumerate(zip(texts, pages, strict=True))
    ]


class TestChromaVectorStore:
    """Tests for ChromaVectorStore (in-process mode)."""

    def _make_store(self) -> ChromaVectorStore:
        """Fresh store with a unique session id per test."""
        return ChromaVectorStore(f"test-session-{next(_ids)}")

    def test_new_store_is_empty(self):
        store = self._make_store()
        assert store.count() == 0
        assert _run(store.search([1.0, 0.0, 0.0], top_k=5)) == []

    def test_replace_chunks_returns_count(self):
        store = self._make_store()
        added = store.replace_chunks(
            _chunks(["Hello", "Goodbye"]),
            [[0.1, 0.2, 0.3], [0.3, 0.2, 0.1]],
        )
        assert added == 2
        assert store.count() == 2

    def test_search_ranks_by_similarity(self):
        store = self._make_store()
        store.replace_chunks(
            _chunks(["Deadline is May 1", "Submit via email"], pages=[[2], [3, 4]]),
            [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]],
        )
        results = _run(store.search([1.0, 0.1, 0.0], top_k=2))
        assert len(results) == 2
        assert isinstance(results[0], VectorSearchResult)
        assert results[0].content == "Deadline is May 1"
        assert results[0].page_numbers == [2]
        assert results[1].page_numbers == [3, 4]
        assert results[0].similarity_score > results[1].similarity_score

    def test_top_k_larger_than_index(self):
        store = self._make_store()
        store.replace_chunks(_chunks(["Only chunk"]), [[1.0, 0.0, 0.0]])
        results = _run(store.search([1.0, 0.0, 0.0], top_k=5))
        assert len(results) == 1
        assert results[0].total_chunks == 1

    def test_replace_drops_previous_chunks(self):
        store = self._make_store()
        store.replace_chunks(_chunks(["a", "b", "c"]), [[1.0, 0.0]] * 3)
        store.replace_chunks(_chunks(["new"]), [[0.0, 1.0]])
        assert store.count() == 1
        results = _run(store.search([0.0, 1.0], top_k=5))
        assert [r.content for r in results] == ["new"]

    def test_failed_write_keeps_previous_index(self):
        store = self._make_store()
        store.replace_chunks(_chunks(["Deadline is May 1", "Submit via email"]), [[1.0, 0.0]] * 2)
        real_create = store._create

        def _failing_create(name):
            collection = MagicMock(wraps=real_create(name))
            collection.add.side_effect = RuntimeError("disk full")
            return collection

        with patch.object(store, "_create", side_effect=_failing_create):
            with pytest.raises(RuntimeError):
                store.replace_chunks(_chunks(["new document"]), [[0.0, 1.0]])

        assert store.count() == 2
        results = _run(store.search([1.0, 0.0], top_k=5))
        assert "Deadline is May 1" in [r.content for r in results]

        # The next upload still succeeds
        store.replace_chunks(_chunks(["new document"]), [[0.0, 1.0]])
        assert [r.content for r in _run(store.search([0.0, 1.0], top_k=5))] == ["new document"]

    def test_search_during_replace_sees_a_complete_index(self):
        store = self._make_store()
        store.replace_chunks(_chunks(["old"]), [[1.0, 0.0]])
        real_create = store._create
        seen: list[int] = []

        def _checking_create(name):
            # Runs before the new chunks are written
            seen.append(store.count())
            return real_create(name)

        with patch.object(store, "_create", side_effect=_checking_create):
            store.replace_chunks(_chunks(["a", "b"]), [[0.0, 1.0]] * 2)

        assert seen == [1]
        assert store.count() == 2

    def test_mismatched_embeddings_rejected(self):
        store = self._make_store()
        with pytest.raises(ValueError):
            store.replace_chunks(_chunks(["a", "b"]), [[1.0, 0.0]])

    def test_clear_is_idempotent(self):
        store = self._make_store()
        store.replace_chunks(_chunks(["a"]), [[1.0, 0.0]])
        store.clear()
        store.clear()

    def test_sessions_are_isolated(self):
        first = self._make_store()
        second = self._make_store()
        first.replace_chunks(_chunks(["first doc"]), [[1.0, 0.0]])
        assert second.count() == 0


class TestCollectionName:
    def test_valid_chroma_name(self):
        name = collection_name_for("some session / with spaces")
        assert name.startswith("rfi-")
        assert 3 <= len(name) <= 63
        assert all(c.isalnum() or c in "-._" for c in name)

    def test_deterministic_and_distinct(self):
        assert collection_name_for("a") == collection_name_for("a")
        assert collection_name_for("a") != collection_name_for("b")
