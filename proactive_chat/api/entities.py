"""
api/entities.py (REMINDER and CALENDAR EVENT endpoints)

Direct management of the side entities the assistant extracts from the conversation. Every
endpoint is a pass-through to the orchestrator; deleting an unknown id succeeds with
"deleted": false so repeated deletes are harmless.

Endpoints:
  - POST /reminders, PATCH /reminders/{reminder_id}, DELETE /reminders/{reminder_id}
  - GET /reminders/upcoming: Active reminders due from now on
  - POST /events, PATCH /events/{event_id}, DELETE /events/{event_id}
  - GET /events?date=YYYY-MM-DD: All events, or those spanning the given day
"""

import datetime as dt
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from proactive_chat.core.orchestrator import ConversationOrchestrator
from proactive_chat.shared.models import CalendarEvent, Reminder
from .dependencies import get_orchestrator

# Get a logger instance for this module
logger = logging.getLogger(__name__)

router = APIRouter()


def _entity_response(entity, orchestrator: ConversationOrchestrator, kind: str, entity_id: str = "") -> JSONResponse:
    """
    Build the response for a create/update call.

    None with an error set means the store failed (HTTP 500); None without an error means the
    id was unknown (HTTP 404).
    """
    if entity is not None:
        return JSONResponse(entity.model_dump(mode="json", by_alias=True))
    if orchestrator.status.error:
        return JSONResponse({"response": "error", "message": orchestrator.status.error}, status_code=500)
    return JSONResponse({"response": "error", "message": f"{kind} not found: {entity_id}"}, status_code=404)


def _delete_response(deleted: bool, orchestrator: ConversationOrchestrator) -> JSONResponse:
    if not deleted and orchestrator.status.error:
        return JSONResponse({"response": "error", "message": orchestrator.status.error}, status_code=500)
    return JSONResponse({"response": "ok", "deleted": deleted})


# --- reminders ---

@router.post("/reminders")
async def add_reminder(reminder: Reminder, orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    logger.info(f"[add_reminder] Adding reminder '{reminder.title}' for {reminder.date.isoformat()}")
    return _entity_response(orchestrator.add_reminder(reminder), orchestrator, "Reminder")


@router.get("/reminders/upcoming")
async def upcoming_reminders(orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    reminders = orchestrator.upcoming_reminders()
    return JSONResponse([r.model_dump(mode="json", by_alias=True) for r in reminders])


@router.patch("/reminders/{reminder_id}")
async def update_reminder(
    reminder_id: str,
    updates: Dict[str, Any] = Body(...),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """
    Apply a partial update. Keys may be camelCase or snake_case; id and timestamps are ignored.

    Returns:
        JSONResponse: The updated reminder; 404 for an unknown id; 500 if the update would
            leave the reminder invalid or the store is unavailable.
    """
    updated = orchestrator.update_reminder(reminder_id, updates)
    return _entity_response(updated, orchestrator, "Reminder", reminder_id)


@router.delete("/reminders/{reminder_id}")
async def delete_reminder(reminder_id: str, orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    return _delete_response(orchestrator.delete_reminder(reminder_id), orchestrator)


# --- calendar events ---

@router.post("/events")
async def add_calendar_event(event: CalendarEvent, orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    logger.info(f"[add_calendar_event] Adding event '{event.title}' starting {event.start.isoformat()}")
    return _entity_response(orchestrator.add_calendar_event(event), orchestrator, "Calendar event")


@router.get("/events")
async def list_calendar_events(
    date: Optional[dt.date] = None,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """List all events, or only those whose start..end span covers `date`."""
    if date is not None:
        events = orchestrator.events_for_date(date)
    else:
        events = orchestrator.get_state().calendar_events
    return JSONResponse([e.model_dump(mode="json", by_alias=True) for e in events])


@router.patch("/events/{event_id}")
async def update_calendar_event(
    event_id: str,
    updates: Dict[str, Any] = Body(...),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    updated = orchestrator.update_calendar_event(event_id, updates)
    return _entity_response(updated, orchestrator, "Calendar event", event_id)


@router.delete("/events/{event_id}")
async def delete_calendar_event(event_id: str, orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    return _delete_response(orchestrator.delete_calendar_event(event_id), orchestrator)
