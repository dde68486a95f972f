"""
proactive_chat: conversation orchestration engine for a proactive AI chat assistant.

The engine keeps the message history, asks an OpenAI-compatible chat-completion endpoint for
replies, extracts reminders and calendar events from what the user writes, and follows up with
proactive messages after a quiet period.
"""

from .version import __version__

__all__ = ["__version__"]
