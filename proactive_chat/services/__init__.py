"""
services package: state and scheduling around a conversation.

- entity_store: in-memory owner of messages, reminders, calendar events and preferences
- proactive_scheduler: APScheduler wrapper for proactive follow-ups and interval jobs
- reminder_checker: periodic log of upcoming reminders
- history_manager: JSON archives written when a conversation is reset
"""
