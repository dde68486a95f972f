"""
Shared FastAPI dependencies.

The orchestrator is built once at application startup and stored on `app.state`; routers reach
it through `get_orchestrator` so tests can install one wired to fakes.
"""

from fastapi import HTTPException, Request

from proactive_chat.core.orchestrator import ConversationOrchestrator


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Conversation is not initialized yet")
    return orchestrator


def state_payload(orchestrator: ConversationOrchestrator) -> dict:
    """Serialize the current state the way the frontend reads it (camelCase JSON)."""
    return orchestrator.get_state().model_dump(mode="json", by_alias=True)
