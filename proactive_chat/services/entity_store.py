"""
Entity store: the single owner of messages, reminders, calendar events and user preferences.

All collections live in process memory. Every mutation runs under one lock, so concurrent
completions (a reply landing while a reminder extraction finishes) can never lose each other's
writes, and every read returns a snapshot that later writes do not alter.

Semantics shared by reminders and calendar events:
- creation stamps both createdAt and updatedAt, updates stamp updatedAt only
- deleting or updating an unknown id is a no-op, not an error
- an update that would produce an invalid entity raises StorageFailure and changes nothing

A closed store models an unavailable backing cache: every operation raises StorageFailure until
it is reopened.
"""

import datetime as dt
import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from proactive_chat.monitoring.metrics import MESSAGES_APPENDED
from proactive_chat.shared.errors import StorageFailure
from proactive_chat.shared.models import CalendarEvent, Message, Reminder, UserPreferences, utc_now
from proactive_chat.shared.utils import normalize_field_names

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", Reminder, CalendarEvent)

# Fields callers may not change through a partial update
PROTECTED_FIELDS = ("id", "created_at", "updated_at")


class EntityStore:
    """In-memory, lock-guarded store for one conversation's entities."""

    def __init__(self):
        self._lock = threading.RLock()
        self._messages: List[Message] = []
        self._message_ids = set()
        # dicts keep insertion order, which is the display order for reminders and events
        self._reminders: Dict[str, Reminder] = {}
        self._events: Dict[str, CalendarEvent] = {}
        self._preferences = UserPreferences()
        self._available = True

    # --- availability ---

    @property
    def is_available(self) -> bool:
        return self._available

    def close(self) -> None:
        """Mark the store unavailable; subsequent operations raise StorageFailure."""
        with self._lock:
            self._available = False
        logger.warning("[EntityStore] Store closed; operations will fail until reopened")

    def reopen(self) -> None:
        with self._lock:
            self._available = True

    def _ensure_available(self) -> None:
        if not self._available:
            raise StorageFailure("Entity store is unavailable")

    # --- messages ---

    def append_message(self, message: Message) -> Message:
        """
        Append a message to the end of the conversation.

        Args:
            message (Message): The message to append. Its id must be new to this conversation.

        Returns:
            Message: The stored message.

        Raises:
            StorageFailure: If the store is unavailable or the id is already used.
        """
        with self._lock:
            self._ensure_available()
            if message.id in self._message_ids:
                raise StorageFailure(f"Message id already exists: {message.id}")
            self._messages.append(message)
            self._message_ids.add(message.id)
        MESSAGES_APPENDED.labels(sender=message.sender.value, type=message.type.value).inc()
        return message

    def list_messages(self) -> List[Message]:
        """Return the messages in insertion (chronological) order."""
        with self._lock:
            self._ensure_available()
            return list(self._messages)

    def clear_messages(self) -> List[Message]:
        """Remove every message and return what was removed."""
        with self._lock:
            self._ensure_available()
            removed = self._messages
            self._messages = []
            self._message_ids = set()
            return removed

    # --- reminders ---

    def upsert_reminder(self, reminder: Reminder) -> Reminder:
        return self._upsert(self._reminders, reminder)

    def update_reminder(self, reminder_id: str, updates: Mapping[str, Any]) -> Optional[Reminder]:
        return self._update(self._reminders, Reminder, reminder_id, updates)

    def delete_reminder(self, reminder_id: str) -> bool:
        return self._delete(self._reminders, reminder_id)

    def get_reminder(self, reminder_id: str) -> Optional[Reminder]:
        with self._lock:
            self._ensure_available()
            reminder = self._reminders.get(reminder_id)
            return reminder.model_copy(deep=True) if reminder else None

    def list_reminders(self) -> List[Reminder]:
        return self._list(self._reminders)

    def upcoming_reminders(self, now: Optional[dt.datetime] = None) -> List[Reminder]:
        """
        Active reminders due strictly after `now`.

        Reminder dates and times are wall-clock values in the user's local time, so `now` is a
        naive local datetime (defaults to datetime.now()).
        """
        now = now or dt.datetime.now()
        return [r for r in self.list_reminders() if r.is_active and r.due_at() > now]

    # --- calendar events ---

    def upsert_calendar_event(self, event: CalendarEvent) -> CalendarEvent:
        return self._upsert(self._events, event)

    def update_calendar_event(self, event_id: str, updates: Mapping[str, Any]) -> Optional[CalendarEvent]:
        return self._update(self._events, CalendarEvent, event_id, updates)

    def delete_calendar_event(self, event_id: str) -> bool:
        return self._delete(self._events, event_id)

    def get_calendar_event(self, event_id: str) -> Optional[CalendarEvent]:
        with self._lock:
            self._ensure_available()
            event = self._events.get(event_id)
            return event.model_copy(deep=True) if event else None

    def list_calendar_events(self) -> List[CalendarEvent]:
        return self._list(self._events)

    def events_for_date(self, day: dt.date) -> List[CalendarEvent]:
        """Events whose span (by calendar date) covers `day`."""
        return [e for e in self.list_calendar_events() if e.start.date() <= day <= e.end.date()]

    # --- preferences ---

    def merge_preferences(self, partial: Union[UserPreferences, Mapping[str, Any]]) -> UserPreferences:
        """
        Merge the explicitly set fields of `partial` into the stored preferences.

        Fields the caller did not set are left untouched, so two successive partial updates
        accumulate instead of replacing each other.

        Raises:
            StorageFailure: If the store is unavailable or the payload is not valid preferences.
        """
        if not isinstance(partial, UserPreferences):
            try:
                partial = UserPreferences.model_validate(partial)
            except ValidationError as e:
                raise StorageFailure(f"Invalid preferences update: {e.error_count()} error(s)") from e

        updates = {name: getattr(partial, name) for name in partial.model_fields_set}
        with self._lock:
            self._ensure_available()
            self._preferences = self._preferences.model_copy(update=updates, deep=True)
            return self._preferences.model_copy(deep=True)

    def get_preferences(self) -> UserPreferences:
        with self._lock:
            self._ensure_available()
            return self._preferences.model_copy(deep=True)

    # --- shared helpers ---

    def _upsert(self, collection: Dict[str, EntityT], entity: EntityT) -> EntityT:
        now = utc_now()
        with self._lock:
            self._ensure_available()
            existing = collection.get(entity.id)
            created_at = existing.created_at if existing else now
            stored = entity.model_copy(update={"created_at": created_at, "updated_at": now}, deep=True)
            collection[stored.id] = stored
            return stored.model_copy(deep=True)

    def _update(
        self,
        collection: Dict[str, EntityT],
        model_cls: Type[EntityT],
        entity_id: str,
        updates: Mapping[str, Any],
    ) -> Optional[EntityT]:
        changes = normalize_field_names(model_cls, updates)
        for field in PROTECTED_FIELDS:
            changes.pop(field, None)

        with self._lock:
            self._ensure_available()
            existing = collection.get(entity_id)
            if existing is None:
                logger.debug(f"[EntityStore] Ignoring update for unknown {model_cls.__name__} id {entity_id}")
                return None
            data = {**existing.model_dump(), **changes, "updated_at": utc_now()}
            try:
                updated = model_cls.model_validate(data)
            except ValidationError as e:
                raise StorageFailure(
                    f"Update would make {model_cls.__name__} {entity_id} invalid: {e.error_count()} error(s)"
                ) from e
            collection[entity_id] = updated
            return updated.model_copy(deep=True)

    def _delete(self, collection: Dict[str, BaseModel], entity_id: str) -> bool:
        with self._lock:
            self._ensure_available()
            removed = collection.pop(entity_id, None)
        if removed is None:
            logger.debug(f"[EntityStore] Delete of unknown id {entity_id} ignored")
            return False
        return True

    def _list(self, collection: Dict[str, EntityT]) -> List[EntityT]:
        with self._lock:
            self._ensure_available()
            return [entity.model_copy(deep=True) for entity in collection.values()]
