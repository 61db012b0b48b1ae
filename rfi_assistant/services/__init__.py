# =============================================================================
# Services Package — Business Logic
# =============================================================================
# Core logic, separated from the API handlers:
#   - parser.py: PDF parsing with Docling (per-page text)
#   - chunker.py: token-window chunking with page tracking
#   - embedder.py: embeddings via the OpenAI SDK (Mistral endpoint)
#   - vectorstore.py: per-session ChromaDB similarity index
#   - llm.py: LLM provider protocol (Mistral/OpenAI-compatible, Anthropic)
#   - retry.py: bounded retry policy for upstream calls
#   - requirements.py: requirements list, reply parsing and diffing
#   - sessions.py: in-memory session store with TTL/LRU eviction
#   - rate_limiter.py: Redis fixed-window limiter for /api/chat
#   - baseline.py: baseline questions JSON store
# =============================================================================
