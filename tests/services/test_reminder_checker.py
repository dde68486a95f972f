"""
Tests for `services/reminder_checker.py`: which reminders the periodic check reports.
"""

import datetime as dt
import logging

from proactive_chat.services.entity_store import EntityStore
from proactive_chat.services.reminder_checker import check_and_notify, due_within
from proactive_chat.shared.models import Reminder

NOW = dt.datetime(2025, 1, 2, 12, 0)


def _reminder(title, hour, minute=0, **overrides):
    return Reminder(title=title, date=dt.date(2025, 1, 2), time=dt.time(hour, minute), **overrides)


def test_due_within_window_sorted_by_time():
    reminders = [_reminder("later", 12, 50), _reminder("soon", 12, 10), _reminder("far", 15)]
    due = due_within(reminders, NOW, dt.timedelta(hours=1))
    assert [r.title for r in due] == ["soon", "later"]


def test_check_and_notify_logs_due_reminders(caplog):
    store = EntityStore()
    store.upsert_reminder(_reminder("Call mom", 12, 30))
    store.upsert_reminder(_reminder("Past", 11))
    store.upsert_reminder(_reminder("Inactive", 12, 15, is_active=False))

    with caplog.at_level(logging.INFO, logger="proactive_chat.services.reminder_checker"):
        due = check_and_notify(store, now=NOW)

    assert [r.title for r in due] == ["Call mom"]
    assert "Call mom" in caplog.text


def test_check_and_notify_with_unavailable_store():
    store = EntityStore()
    store.close()
    assert check_and_notify(store, now=NOW) == []


def test_check_and_notify_handles_offset_times():
    store = EntityStore()
    due_utc = dt.datetime(2025, 1, 2, 12, 30, tzinfo=dt.timezone.utc)
    store.upsert_reminder(Reminder.model_validate({"title": "Standup", "date": "2025-01-02", "time": "12:30Z"}))
    now = due_utc.astimezone().replace(tzinfo=None) - dt.timedelta(minutes=30)

    due = check_and_notify(store, now=now)

    assert [r.title for r in due] == ["Standup"]


def test_check_and_notify_logs_with_trigger_context(caplog):
    store = EntityStore()
    store.upsert_reminder(_reminder("Call mom", 12, 30))

    with caplog.at_level(logging.INFO, logger="proactive_chat.services.reminder_checker"):
        check_and_notify(store, now=NOW, conversation_id="conv-1")

    record = next(r for r in caplog.records if "Call mom" in r.getMessage())
    assert record.trigger == "reminder_check"
    assert record.conversation_id == "conv-1"
    assert record.extra_fields["recurrence"] == "once"
