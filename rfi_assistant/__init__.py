# =============================================================================
# RFI Assistant
# =============================================================================
# Upload a government Request for Information (RFI) as a PDF, get the list
# of requirements a good response must cover, then refine that list or ask
# questions about the document through a single chat endpoint.
#
# Package structure:
#   rfi_assistant/
#   ├── api/          → FastAPI routers (upload, chat, requirements, baseline)
#   │                    plus dependencies and error handlers
#   ├── agents/       → Router, extractor, editor, answerer and the LangGraph
#   │                    chat graph that ties them together
#   ├── models/       → Pydantic V2 request/response schemas
#   └── services/     → Parsing, chunking, embedding, vector index, LLM
#                        providers, sessions, rate limiting, baseline store
# =============================================================================
