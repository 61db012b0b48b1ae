# =============================================================================
# Agents Package — LLM Steps and the Chat Graph
# =============================================================================
#   - router.py: classifies a chat message as EDIT or QUESTION
#   - extractor.py: derives the initial requirements list on upload
#   - editor.py: applies an edit instruction to the requirements list
#   - answerer.py: answers questions from retrieved document chunks
#   - orchestrator.py: LangGraph graph, classify → (edit | answer)
# =============================================================================
