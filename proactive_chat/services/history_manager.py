"""
Archives conversation history to disk when a conversation is reset.

The live conversation is held in memory by the entity store; nothing here is needed to run a
conversation. Archiving gives a reset a paper trail: the messages that were on screen are written
to a timestamped JSON file before the store is cleared, and archived files can be read back for
inspection.
"""
import json
import uuid
import os
import datetime
from typing import List, Tuple

from pydantic import ValidationError

from proactive_chat.config import CONFIG
from proactive_chat.shared.models import Message

CONVERSATIONS_DIR = CONFIG['paths']['conversations_full_path']
ARCHIVE_PREFIX = 'conversation_'

def generate_conversation_id() -> str:
    """
    Generates a unique conversation ID using UUID4.

    Returns:
        str: A UUID4 string (e.g., "a1b2c3d4-e5f6-7890-abcd-ef1234567890")
    """
    return str(uuid.uuid4())

def get_archive_path(conversation_id: str, timestamp: str) -> str:
    """
    Returns the full path of the archive file for a conversation reset.

    Args:
        conversation_id (str): Conversation the archive belongs to.
        timestamp (str): Reset time formatted as YYYYMMDD_HHMMSS_ffffff.

    Returns:
        str: e.g. "user_data/conversations/conversation_<id>_20250101_120000_000000.json"
    """
    filename = f"{ARCHIVE_PREFIX}{conversation_id}_{timestamp}.json"
    return os.path.join(CONVERSATIONS_DIR, filename)

def archive_conversation(conversation_id: str, messages: List[Message]) -> Tuple[bool, str]:
    """
    Writes the given messages to a new timestamped archive file.

    An empty conversation is not archived; the call still succeeds so a reset of a fresh
    conversation is a no-op for the user.

    Args:
        conversation_id (str): Identifier used in the archive filename.
        messages (List[Message]): Messages to archive, in chronological order.

    Returns:
        Tuple[bool, str]: (True, archive path or explanation) on success,
                          (False, error description) when the file could not be written.
    """
    if not messages:
        return True, "No messages to archive."

    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    archive_path = get_archive_path(conversation_id, timestamp)
    payload = [message.model_dump(mode='json', by_alias=True) for message in messages]

    try:
        os.makedirs(CONVERSATIONS_DIR, exist_ok=True)
        with open(archive_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=4, ensure_ascii=False)
    except OSError as e:
        return False, f"Error archiving conversation: {e}"

    return True, archive_path

def load_archived_conversation(archive_path: str) -> List[Message]:
    """
    Reads an archive file back into messages.

    Args:
        archive_path (str): Path returned by archive_conversation().

    Returns:
        List[Message]: The archived messages. Returns an empty list if the file is missing,
                       is not valid JSON, or does not hold a list of messages.
    """
    if not os.path.exists(archive_path):
        return []
    try:
        with open(archive_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, list):
            return []
        return [Message.model_validate(item) for item in data]
    except (json.JSONDecodeError, ValidationError):
        return []

def list_archives(conversation_id: str) -> List[str]:
    """Returns the archive paths of a conversation, oldest first."""
    if not os.path.isdir(CONVERSATIONS_DIR):
        return []
    prefix = f"{ARCHIVE_PREFIX}{conversation_id}_"
    names = sorted(name for name in os.listdir(CONVERSATIONS_DIR) if name.startswith(prefix))
    return [os.path.join(CONVERSATIONS_DIR, name) for name in names]
