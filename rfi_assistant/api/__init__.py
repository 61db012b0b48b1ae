# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for one feature:
#   - upload.py: PDF upload, indexing and requirements extraction
#   - chat.py: chat endpoint plus GET/PUT of the requirements list
#   - baseline.py: shared baseline questions
#   - deps.py: session, rate-limit and provider dependencies
#   - errors.py: domain exception → HTTP response mapping
# =============================================================================
