"""
shared/models.py

Common data models and type definitions used across the conversation engine.

Entities (messages, reminders, calendar events, preferences) are Pydantic models so the same
class validates LLM-produced JSON, user-supplied API payloads and the snapshots returned to the
UI. JSON uses camelCase keys (createdAt, isActive, calendarEvents) to match what the chat
frontend already consumes; Python code uses the snake_case attribute names.
"""

import datetime as dt
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def utc_now() -> dt.datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return dt.datetime.now(dt.timezone.utc)


def new_entity_id() -> str:
    """Generate a random UUID4 identifier for messages, reminders and events."""
    return str(uuid.uuid4())


class Sender(str, Enum):
    USER = "user"
    BOT = "bot"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class MessageType(str, Enum):
    TEXT = "text"
    NOTIFICATION = "notification"
    REMINDER = "reminder"
    CALENDAR = "calendar"


class Recurrence(str, Enum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Trigger(Enum):
    """
    Side effects a single message can trigger.

    - RESPOND: generate the assistant reply (critical path, failures are user visible)
    - NOTIFY: turn a notification message into a friendly bot notification
    - EXTRACT_REMINDER: derive a Reminder from the message text
    - EXTRACT_EVENT: derive a CalendarEvent from the message text
    """
    RESPOND = "respond"
    NOTIFY = "notify"
    EXTRACT_REMINDER = "extract_reminder"
    EXTRACT_EVENT = "extract_event"


class CamelModel(BaseModel):
    """Base model serializing to camelCase while accepting snake_case names too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CalendarEventSummary(CamelModel):
    title: str
    start: str
    end: str
    description: Optional[str] = None
    location: Optional[str] = None


class MessageMetadata(CamelModel):
    reminder_date: Optional[str] = None
    reminder_type: Optional[Recurrence] = None
    calendar_event: Optional[CalendarEventSummary] = None


class Message(CamelModel):
    """
    A single chat message. Messages are immutable once created and only ever appended.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=new_entity_id)
    content: str
    sender: Sender = Sender.USER
    timestamp: dt.datetime = Field(default_factory=utc_now)
    type: MessageType = MessageType.TEXT
    role: Optional[Role] = None
    metadata: Optional[MessageMetadata] = None

    def chat_role(self) -> str:
        """Map the message onto the neutral {user, assistant} role set used by the LLM API."""
        if self.role is not None:
            return self.role.value
        return Role.USER.value if self.sender == Sender.USER else Role.ASSISTANT.value


class Reminder(CamelModel):
    id: str = Field(default_factory=new_entity_id)
    title: str
    description: Optional[str] = None
    date: dt.date
    time: Optional[dt.time] = None
    # Older payloads call this field "type"
    recurrence: Recurrence = Field(
        default=Recurrence.ONCE,
        validation_alias=AliasChoices("recurrence", "type"),
    )
    is_active: bool = True
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)

    @field_validator("recurrence", mode="before")
    @classmethod
    def _normalize_recurrence(cls, value: Any) -> Any:
        if value is None:
            return Recurrence.ONCE
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def _localize_time(self) -> "Reminder":
        """Convert an offset-bearing time ("10:00+02:00", "14:00Z") to naive local wall-clock time."""
        if self.time is not None and self.time.tzinfo is not None:
            local = dt.datetime.combine(self.date, self.time).astimezone().replace(tzinfo=None)
            self.date = local.date()
            self.time = local.time()
        return self

    def due_at(self) -> dt.datetime:
        """Naive local datetime at which the reminder fires (midnight when no time is set)."""
        return dt.datetime.combine(self.date, self.time or dt.time.min)


class CalendarEvent(CamelModel):
    """
    A calendar entry. start <= end is expected from producers but is not enforced here:
    events are stored exactly as given.
    """
    id: str = Field(default_factory=new_entity_id)
    title: str
    description: Optional[str] = None
    start: dt.datetime
    end: dt.datetime
    location: Optional[str] = None
    reminders: List[Reminder] = Field(default_factory=list)
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)


class NotificationPreferences(CamelModel):
    reminders: bool = True
    updates: bool = True
    calendar: bool = True
    email: Optional[bool] = None
    sms: Optional[bool] = None
    push: Optional[bool] = None


class ReminderPreferences(CamelModel):
    default_type: Optional[Recurrence] = None
    default_time: Optional[str] = None


class CalendarReminderOffset(CamelModel):
    before: int
    unit: Literal["minutes", "hours", "days"]


class CalendarPreferences(CamelModel):
    default_duration: int
    default_location: str
    default_reminders: List[CalendarReminderOffset] = Field(default_factory=list)


class UserPreferences(CamelModel):
    """User preferences. Updates are partial: only the fields a caller sets are merged."""
    name: Optional[str] = None
    interests: Optional[List[str]] = None
    timezone: Optional[str] = None
    language: Optional[str] = None
    notification_preferences: Optional[NotificationPreferences] = None
    reminder_preferences: Optional[ReminderPreferences] = None
    calendar_preferences: Optional[CalendarPreferences] = None


@dataclass
class ConversationStatus:
    """
    Transient status of the conversation. Never persisted.

    Exactly one error is held at a time; a new successful operation clears it.
    """
    is_typing: bool = False
    is_loading: bool = False
    error: Optional[str] = None


class ChatState(CamelModel):
    """Snapshot of everything the UI reads: collections plus the transient status."""
    messages: List[Message]
    reminders: List[Reminder]
    calendar_events: List[CalendarEvent]
    is_typing: bool
    is_loading: bool
    error: Optional[str] = None
    preferences: UserPreferences
