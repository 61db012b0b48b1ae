# =============================================================================
# Vector Store — In-Process ChromaDB Similarity Index
# =============================================================================
#
# Holds the embedded chunks of each session's document and answers top-k
# similarity queries for the RAG answerer.
#
# DESIGN DECISION: One Chroma collection per session.
# Collections are named from a hash of the session id, so concurrent users
# never see each other's chunks. A re-upload builds a fresh generation of
# the collection ("rfi-<hash>-g<n>") and swaps it in once fully written.
#
# DESIGN DECISION: In-process ephemeral client.
# The index lives exactly as long as the process (like the session store).
#
# DESIGN DECISION: Mixed sync/async interface.
# - replace_chunks() is sync → called through asyncio.to_thread on upload
# - search() is async → wraps the sync Chroma query in asyncio.to_thread
#
# ARCHITECTURE:
#   VectorStore (Protocol)
#   └── ChromaVectorStore
#       ├── replace_chunks() — build a new collection, then swap it in
#       ├── search()         — cosine top-k
#       └── clear()          — drop the collection (session eviction)
# =============================================================================

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Protocol

import chromadb
from chromadb.errors import NotFoundError

from rfi_assistant.services.chunker import DocumentChunk

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class VectorSearchResult:
    """
    A single result from vector similarity search.

    Carries the chunk text plus its provenance so answers can cite pages.
    """

    content: str
    chunk_index: int
    total_chunks: int
    page_numbers: list[int] = field(default_factory=list)
    similarity_score: float = 0.0  # 1 - cosine distance, higher = more relevant


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class VectorStore(Protocol):
    """Interface the answerer and upload pipeline depend on."""

    def replace_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Replace all indexed chunks; returns the number stored."""
        ...

    async def search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
    ) -> list[VectorSearchResult]:
        """Most similar chunks first."""
        ...

    def count(self) -> int:
        ...

    def clear(self) -> None:
        ...


# ---------------------------------------------------------------------------
# Chroma Client — Lazy Singleton
# ---------------------------------------------------------------------------

_client = None


def _get_client():
    """One in-memory Chroma client shared by every session's collection."""
    global _client
    if _client is None:
        _client = chromadb.EphemeralClient()
        logger.info("Initialized in-process ChromaDB client")
    return _client


def collection_name_for(session_id: str) -> str:
    """
    Chroma collection names must be 3-63 chars of [a-zA-Z0-9._-]; session
    ids are arbitrary header values, so they are hashed.
    """
    digest = hashlib.sha256(session_id.encode("utf-8")).hexdigest()[:32]
    return f"rfi-{digest}"


# ---------------------------------------------------------------------------
# Implementation: ChromaDB
# ---------------------------------------------------------------------------


class ChromaVectorStore:
    """ChromaDB-backed similarity index for a single session."""

    def __init__(self, session_id: str, client=None) -> None:
        self._client = client or _get_client()
        self._base_name = collection_name_for(session_id)
        self._generation = 0
        self._name = self._base_name
        self._collection = self._create(self._name)

    def _create(self, name: str):
        # Cosine distance: similarity = 1 - distance
        return self._client.get_or_create_collection(
            name=name,
            metadata={"hnsw:space": "cosine"},
        )

    def replace_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """
        Swap in a new index holding exactly `chunks`.

        The new chunks are written to a staging collection first. Only once
        that succeeds does the store switch to it and drop the old one, so a
        failed write leaves the previous document searchable.
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Got {len(chunks)} chunks but {len(embeddings)} embeddings"
            )

        generation = self._generation + 1
        staging_name = f"{self._base_name}-g{generation}"
        self._drop(staging_name)
        staging = self._create(staging_name)
        try:
            if chunks:
                staging.add(
                    ids=[f"chunk-{chunk.index}" for chunk in chunks],
                    documents=[chunk.text for chunk in chunks],
                    embeddings=embeddings,
                    # Chroma metadata values must be scalars, so page lists
                    # are stored as comma-separated strings
                    metadatas=[
                        {
                            "chunk_index": chunk.index,
                            "total_chunks": chunk.total_chunks,
                            "page_numbers": ",".join(str(p) for p in chunk.page_numbers),
                        }
                        for chunk in chunks
                    ],
                )
        except Exception:
            logger.warning("Indexing into %s failed, keeping %s", staging_name, self._name)
            self._drop(staging_name)
            raise

        old_name = self._name
        self._collection = staging
        self._name = staging_name
        self._generation = generation
        self._drop(old_name)
        logger.info("Indexed %d chunks in collection %s", len(chunks), self._name)
        return len(chunks)

    async def search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
    ) -> list[VectorSearchResult]:
        """
        Cosine top-k search.

        Chroma's Python client is synchronous, so the query runs in a
        worker thread to keep the event loop free.
        """

        collection = self._collection

        def _sync_search() -> list[VectorSearchResult]:
            available = collection.count()
            if available == 0:
                return []

            results = collection.query(
                query_embeddings=[query_embedding],
                n_results=min(top_k, available),
                include=["documents", "metadatas", "distances"],
            )

            search_results: list[VectorSearchResult] = []
            if not results or not results["ids"] or not results["ids"][0]:
                return search_results

            for i in range(len(results["ids"][0])):
                metadata = results["metadatas"][0][i] if results["metadatas"] else {}
                distance = results["distances"][0][i] if results["distances"] else 0.0
                search_results.append(VectorSearchResult(
                    content=results["documents"][0][i] if results["documents"] else "",
                    chunk_index=int(metadata.get("chunk_index", i)),
                    total_chunks=int(metadata.get("total_chunks", 0)),
                    page_numbers=_parse_pages(metadata.get("page_numbers", "")),
                    similarity_score=round(1.0 - distance, 4),
                ))
            return search_results

        return await asyncio.to_thread(_sync_search)

    def count(self) -> int:
        return self._collection.count()

    def clear(self) -> None:
        """Drop the session's collection; missing collections are ignored."""
        self._drop(self._name)

    def _drop(self, name: str) -> None:
        try:
            self._client.delete_collection(name)
        except (ValueError, NotFoundError):
            pass


def _parse_pages(raw: str) -> list[int]:
    return [int(p) for p in str(raw).split(",") if p.strip().isdigit()]
