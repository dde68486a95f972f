"""
shared/__init__.py

Shared utilities and models used across multiple modules.

This package contains common functionality that is used by multiple
components of the assistant:
- models: Entities (messages, reminders, calendar events, preferences) and status types
- errors: Exceptions surfaced by the gateway and the entity store
- utils: JSON cleanup and logging helpers
"""
