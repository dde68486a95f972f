"""
llm_cloud package: everything that talks to the external chat-completion service.

- provider: builds the OpenAI-compatible async client (OpenRouter by default)
- gateway: the generation operations used by the orchestrator (reply, proactive follow-up,
  notification, reminder and calendar-event extraction)
"""

from .gateway import AIGateway
from .provider import get_client

__all__ = [
    "AIGateway",
    "get_client",
]
