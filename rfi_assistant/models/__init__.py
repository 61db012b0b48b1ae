# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Request/response schemas for the HTTP API. Internal service types
# (RequirementsList, DocumentChunk, ...) never cross the wire directly.
# =============================================================================
