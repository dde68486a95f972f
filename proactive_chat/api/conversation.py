"""
api/conversation.py (STATE, MESSAGES, PREFERENCES, ERROR and RESET endpoints)

Handles the endpoints that drive the conversation itself. They are kept in one file because
they all read or write the same conversation state.

Endpoints:
  - GET /state: Snapshot of messages, reminders, calendar events, status and preferences.
  - POST /messages: Adds a message and runs its full cycle (reply plus extractions) before
                    returning the new state. Generation failures show up in the state's `error`.
  - PATCH /preferences: Partial preferences update (merge, not replace).
  - POST /error: Sets or clears the conversation error shown by the frontend.
  - POST /reset: Archives the messages to disk and clears them.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from proactive_chat.core.orchestrator import ConversationOrchestrator
from proactive_chat.shared.models import CamelModel, Message, MessageMetadata, MessageType, Role, Sender, UserPreferences
from proactive_chat.shared.utils import truncate_message_for_logging
from .dependencies import get_orchestrator, state_payload

# Get a logger instance for this module
logger = logging.getLogger(__name__)

router = APIRouter()


class MessageIn(CamelModel):
    """Body of POST /messages. Id and timestamp are always assigned by the server."""
    content: str
    type: MessageType = MessageType.TEXT
    sender: Sender = Sender.USER
    role: Optional[Role] = None
    metadata: Optional[MessageMetadata] = None


class ErrorIn(CamelModel):
    error: Optional[str] = None


@router.get("/state")
async def get_state(orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    """Return the full conversation state."""
    return JSONResponse(state_payload(orchestrator))


@router.post("/messages")
async def add_message(body: MessageIn, orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    """
    Add a message and wait for the cycle it triggers.

    Args:
        body (MessageIn): Message content and type; sender defaults to 'user'.

    Returns:
        JSONResponse: The conversation state after the cycle. HTTP 200 even when the reply could
            not be generated: the failure is reported in the state's 'error' field, as the
            frontend expects.
    """
    logger.info(f"[add_message] Received {body.type.value} message: '{truncate_message_for_logging(body.content, 80)}'")

    message = Message(
        content=body.content,
        type=body.type,
        sender=body.sender,
        role=body.role,
        metadata=body.metadata,
    )
    await orchestrator.add_message(message)
    return JSONResponse(state_payload(orchestrator))


@router.patch("/preferences")
async def update_preferences(
    preferences: UserPreferences,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """Merge the fields present in the body into the stored preferences."""
    merged = orchestrator.update_preferences(preferences)
    if merged is None:
        return JSONResponse({"response": "error", "message": orchestrator.status.error}, status_code=500)
    return JSONResponse(merged.model_dump(mode="json", by_alias=True, exclude_none=True))


@router.post("/error")
async def set_error(body: ErrorIn, orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    orchestrator.set_error(body.error)
    return JSONResponse(state_payload(orchestrator))


@router.post("/reset")
async def reset_conversation(orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    """
    Archive and clear the conversation's messages.

    Returns:
        JSONResponse: {"response": "ok"} on success, HTTP 500 with the error message when the
            archive could not be written (messages are then left in place).
    """
    logger.info(f"[reset_conversation] Received request to reset conversation {orchestrator.conversation_id}")

    if orchestrator.reset_conversation():
        return JSONResponse({"response": "ok", "message": "Conversation archived and cleared."})
    logger.error(f"[reset_conversation] Failed to reset conversation: {orchestrator.status.error}")
    return JSONResponse({"response": "error", "message": orchestrator.status.error}, status_code=500)
