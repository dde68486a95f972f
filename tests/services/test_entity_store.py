"""
Tests for `services/entity_store.py` using pytest.

Focus:
- Append-only, ordered messages with unique ids
- Upsert / partial update / idempotent delete for reminders and calendar events
- createdAt / updatedAt stamping
- Preference merging
- Snapshot isolation and behavior of a closed (unavailable) store
- Atomicity of concurrent writes from several threads
"""

import datetime as dt
import threading

import pytest

from proactive_chat.services.entity_store import EntityStore
from proactive_chat.shared.errors import StorageFailure
from proactive_chat.shared.models import CalendarEvent, Message, Reminder, Recurrence, UserPreferences


@pytest.fixture
def store():
    return EntityStore()


def _reminder(title="Call mom", **overrides):
    return Reminder(title=title, date=overrides.pop("date", dt.date(2025, 1, 2)), **overrides)


def _event(title="Standup", **overrides):
    start = overrides.pop("start", dt.datetime(2025, 1, 2, 9, 0))
    end = overrides.pop("end", dt.datetime(2025, 1, 2, 9, 30))
    return CalendarEvent(title=title, start=start, end=end, **overrides)


# --- messages ---

def test_messages_keep_insertion_order(store):
    for text in ["one", "two", "three"]:
        store.append_message(Message(content=text))
    assert [m.content for m in store.list_messages()] == ["one", "two", "three"]


def test_duplicate_message_id_is_rejected(store):
    store.append_message(Message(id="m-1", content="first"))
    with pytest.raises(StorageFailure):
        store.append_message(Message(id="m-1", content="second"))
    assert len(store.list_messages()) == 1


def test_list_messages_is_a_snapshot(store):
    snapshot = store.list_messages()
    store.append_message(Message(content="later"))
    assert snapshot == []


def test_clear_messages_returns_removed(store):
    store.append_message(Message(id="m-1", content="hi"))
    removed = store.clear_messages()
    assert [m.id for m in removed] == ["m-1"]
    assert store.list_messages() == []
    # ids become usable again after a clear
    store.append_message(Message(id="m-1", content="hi again"))


# --- reminders ---

def test_upsert_stamps_created_and_updated(store):
    stored = store.upsert_reminder(_reminder())
    assert stored.created_at == stored.updated_at
    assert stored.created_at.tzinfo is not None


def test_upsert_existing_keeps_created_at(store):
    first = store.upsert_reminder(_reminder())
    again = store.upsert_reminder(first.model_copy(update={"title": "Call dad"}))
    assert again.created_at == first.created_at
    assert again.updated_at >= first.updated_at
    assert [r.title for r in store.list_reminders()] == ["Call dad"]


def test_update_reminder_accepts_camel_and_legacy_keys(store):
    stored = store.upsert_reminder(_reminder())
    updated = store.update_reminder(stored.id, {"isActive": False, "type": "WEEKLY"})
    assert updated.is_active is False
    assert updated.recurrence == Recurrence.WEEKLY
    assert updated.updated_at >= stored.updated_at
    assert updated.created_at == stored.created_at


def test_update_ignores_protected_fields(store):
    stored = store.upsert_reminder(_reminder())
    updated = store.update_reminder(stored.id, {"id": "hijack", "createdAt": "2000-01-01T00:00:00Z"})
    assert updated.id == stored.id
    assert updated.created_at == stored.created_at


def test_update_unknown_reminder_is_noop(store):
    assert store.update_reminder("missing", {"title": "x"}) is None
    assert store.list_reminders() == []


def test_invalid_update_raises_and_changes_nothing(store):
    stored = store.upsert_reminder(_reminder())
    with pytest.raises(StorageFailure):
        store.update_reminder(stored.id, {"recurrence": "yearly"})
    assert store.get_reminder(stored.id).recurrence == Recurrence.ONCE


def test_delete_is_idempotent(store):
    stored = store.upsert_reminder(_reminder())
    assert store.delete_reminder(stored.id) is True
    assert store.delete_reminder(stored.id) is False
    assert store.list_reminders() == []


def test_reads_do_not_expose_stored_objects(store):
    stored = store.upsert_reminder(_reminder())
    copy = store.get_reminder(stored.id)
    copy.title = "changed outside"
    assert store.get_reminder(stored.id).title == "Call mom"


def test_upcoming_reminders_filters_inactive_and_past(store):
    now = dt.datetime(2025, 1, 2, 12, 0)
    store.upsert_reminder(_reminder("morning", time=dt.time(8, 0)))
    store.upsert_reminder(_reminder("evening", time=dt.time(18, 0)))
    store.upsert_reminder(_reminder("inactive", time=dt.time(19, 0), is_active=False))
    store.upsert_reminder(_reminder("tomorrow", date=dt.date(2025, 1, 3)))

    assert [r.title for r in store.upcoming_reminders(now)] == ["evening", "tomorrow"]


def _as_local(value):
    return value.astimezone().replace(tzinfo=None)


@pytest.mark.parametrize("raw_time, offset", [("10:00+02:00", dt.timedelta(hours=2)), ("14:00Z", dt.timedelta(0))])
def test_offset_times_are_stored_as_local_wall_clock(store, raw_time, offset):
    reminder = Reminder.model_validate({"title": "Standup", "date": "2099-01-01", "time": raw_time})
    stored = store.upsert_reminder(reminder)

    hour = int(raw_time[:2])
    expected = _as_local(dt.datetime(2099, 1, 1, hour, 0, tzinfo=dt.timezone(offset)))
    assert stored.time.tzinfo is None
    assert stored.due_at() == expected
    assert [r.title for r in store.upcoming_reminders()] == ["Standup"]


def test_update_with_offset_time_keeps_reminders_comparable(store):
    stored = store.upsert_reminder(_reminder("naive", date=dt.date(2099, 1, 1), time=dt.time(9, 0)))
    store.upsert_reminder(_reminder("other", date=dt.date(2099, 1, 2)))
    store.update_reminder(stored.id, {"time": "10:00+02:00"})

    titles = {r.title for r in store.upcoming_reminders(dt.datetime(2025, 1, 1))}
    assert titles == {"naive", "other"}
    assert store.get_reminder(stored.id).time.tzinfo is None


# --- calendar events ---

def test_calendar_event_lifecycle(store):
    stored = store.upsert_calendar_event(_event())
    updated = store.update_calendar_event(stored.id, {"location": "Room 4"})
    assert updated.location == "Room 4"
    assert store.delete_calendar_event(stored.id) is True
    assert store.delete_calendar_event(stored.id) is False
    assert store.list_calendar_events() == []


def test_event_with_start_after_end_is_stored(store):
    stored = store.upsert_calendar_event(
        _event(start=dt.datetime(2025, 1, 2, 10, 0), end=dt.datetime(2025, 1, 2, 9, 0))
    )
    assert store.get_calendar_event(stored.id).start > store.get_calendar_event(stored.id).end


def test_events_for_date_covers_multi_day_span(store):
    store.upsert_calendar_event(_event("Conference", start=dt.datetime(2025, 1, 2, 9), end=dt.datetime(2025, 1, 4, 17)))
    store.upsert_calendar_event(_event("Lunch", start=dt.datetime(2025, 1, 5, 12), end=dt.datetime(2025, 1, 5, 13)))

    assert [e.title for e in store.events_for_date(dt.date(2025, 1, 3))] == ["Conference"]
    assert [e.title for e in store.events_for_date(dt.date(2025, 1, 5))] == ["Lunch"]
    assert store.events_for_date(dt.date(2025, 1, 6)) == []


# --- preferences ---

def test_preferences_merge(store):
    store.merge_preferences({"name": "X"})
    merged = store.merge_preferences(UserPreferences(timezone="Y"))
    assert merged.name == "X"
    assert merged.timezone == "Y"


def test_preferences_accept_camel_case(store):
    merged = store.merge_preferences({"notificationPreferences": {"reminders": False, "updates": True, "calendar": True}})
    assert merged.notification_preferences.reminders is False
    assert store.get_preferences().name is None


def test_invalid_preferences_raise(store):
    with pytest.raises(StorageFailure):
        store.merge_preferences({"interests": "not a list"})


# --- availability and concurrency ---

def test_closed_store_fails_every_operation(store):
    store.close()
    assert store.is_available is False
    with pytest.raises(StorageFailure):
        store.append_message(Message(content="hi"))
    with pytest.raises(StorageFailure):
        store.list_reminders()
    with pytest.raises(StorageFailure):
        store.delete_calendar_event("x")
    with pytest.raises(StorageFailure):
        store.get_preferences()

    store.reopen()
    assert store.list_messages() == []


def test_concurrent_writes_are_not_lost(store):
    def writer(prefix):
        for i in range(50):
            store.append_message(Message(content=f"{prefix}-{i}"))
            store.upsert_reminder(_reminder(f"{prefix}-{i}"))

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store.list_messages()) == 200
    assert len(store.list_reminders()) == 200
