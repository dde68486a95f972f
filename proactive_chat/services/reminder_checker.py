"""
Periodic check for reminders that are coming up.

The interval job registered at startup calls `check_and_notify` every
`reminders.check_interval_seconds`. It only reads the store and logs what is due within the
look-ahead window; it never mutates reminders.
"""

import datetime as dt
import logging
from typing import List, Optional

from proactive_chat.services.entity_store import EntityStore
from proactive_chat.shared.errors import StorageFailure
from proactive_chat.shared.models import Reminder

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD = dt.timedelta(hours=1)
REMINDER_CHECK_TRIGGER = "reminder_check"


def due_within(reminders: List[Reminder], now: dt.datetime, window: dt.timedelta) -> List[Reminder]:
    """Reminders due after `now` and no later than `now + window`, soonest first."""
    horizon = now + window
    due = [r for r in reminders if now < r.due_at() <= horizon]
    return sorted(due, key=lambda r: r.due_at())


def check_and_notify(
    store: EntityStore,
    now: Optional[dt.datetime] = None,
    window: dt.timedelta = DEFAULT_LOOKAHEAD,
    conversation_id: str = "no_id",
) -> List[Reminder]:
    """
    Log the active reminders that fall due within the look-ahead window.

    Args:
        store (EntityStore): Store holding the reminders.
        now (Optional[dt.datetime]): Naive local time to check from; defaults to datetime.now().
        window (dt.timedelta): How far ahead to look.
        conversation_id (str): Conversation the reminders belong to, for the log context.

    Returns:
        List[Reminder]: The reminders that were reported. An unavailable store yields [].
    """
    now = now or dt.datetime.now()
    try:
        upcoming = store.upcoming_reminders(now)
    except StorageFailure as e:
        logger.warning(f"[check_and_notify] Skipping reminder check: {e}")
        return []

    due = due_within(upcoming, now, window)
    for reminder in due:
        logger.info(
            f"[check_and_notify] Reminder '{reminder.title}' due at {reminder.due_at().isoformat()}",
            extra={
                "conversation_id": conversation_id,
                "trigger": REMINDER_CHECK_TRIGGER,
                "extra_fields": {'reminder_id': reminder.id, 'recurrence': reminder.recurrence.value},
            },
        )
    return due
