"""
core/policy.py

Extraction policy: decides which generations a new message triggers.

The decision is a pure function of the message. Keyword matching is a case-insensitive substring
test on the content, so "Reminders" and "EVENTS" match too.
"""

from typing import FrozenSet

from proactive_chat.shared.models import Message, MessageType, Trigger

REMINDER_KEYWORD = "reminder"
EVENT_KEYWORD = "event"

# Auxiliary triggers in the order their work is started
AUXILIARY_TRIGGERS = (Trigger.NOTIFY, Trigger.EXTRACT_REMINDER, Trigger.EXTRACT_EVENT)


def decide(message: Message) -> FrozenSet[Trigger]:
    """
    Return the set of triggers a message fires.

    Rules:
    - text messages always get a RESPOND
    - notification messages get a NOTIFY
    - text containing "reminder" also gets EXTRACT_REMINDER
    - text containing "event" also gets EXTRACT_EVENT

    Args:
        message (Message): The message that was just added to the conversation.

    Returns:
        FrozenSet[Trigger]: Possibly empty; reminder/calendar typed messages trigger nothing.
    """
    triggers = set()
    content = message.content.lower()

    if message.type == MessageType.TEXT:
        triggers.add(Trigger.RESPOND)
        if REMINDER_KEYWORD in content:
            triggers.add(Trigger.EXTRACT_REMINDER)
        if EVENT_KEYWORD in content:
            triggers.add(Trigger.EXTRACT_EVENT)
    elif message.type == MessageType.NOTIFICATION:
        triggers.add(Trigger.NOTIFY)

    return frozenset(triggers)


def auxiliary(triggers: FrozenSet[Trigger]) -> list:
    """The best-effort triggers of a decision, in start order."""
    return [trigger for trigger in AUXILIARY_TRIGGERS if trigger in triggers]
