"""
gateway.py – AI gateway: the generation operations the conversation engine needs.
---------------------------------------------------------------------------------
Every call is independent: the gateway keeps no conversation state and never touches the entity
store. It only turns messages (or raw text) into chat-completion requests and parses the answers.

Failure policy:
- generate_response is on the critical path. Any transport, timeout or payload problem raises
  GenerationError so the orchestrator can surface it.
- generate_proactive_message and generate_notification are enrichments. Failures are logged and
  an empty string is returned.
- generate_reminder and generate_calendar_event ask the model for a JSON object. Anything that
  does not parse into a valid entity yields None, never a partially filled entity.
"""

import asyncio
import datetime as dt
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from proactive_chat.config import CONFIG
from proactive_chat.monitoring.metrics import LLM_REQUEST_TIME, track_errors, track_latency
from proactive_chat.shared.errors import GenerationError
from proactive_chat.shared.models import CalendarEvent, Message, Reminder
from proactive_chat.shared.utils import safe_json_loads, truncate_message_for_logging
from .provider import get_client

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=BaseModel)

# Fields the gateway stamps itself; values proposed by the model are discarded
STAMPED_FIELDS = ("id", "createdAt", "created_at", "updatedAt", "updated_at")


def to_chat_messages(history: Sequence[Message]) -> List[Dict[str, str]]:
    """
    Map conversation messages onto the {role, content} pairs expected by chat-completion APIs.

    Args:
        history (Sequence[Message]): Messages in chronological order.

    Returns:
        List[Dict[str, str]]: One entry per message with role 'user' or 'assistant'.
    """
    return [{"role": message.chat_role(), "content": message.content} for message in history]


class AIGateway:
    """
    Stateless-per-call access to the chat-completion service.

    The client is built lazily on first use through `client_factory`, so a missing API key
    only shows up as a failed generation rather than an import or startup error. Tests pass
    a factory returning a fake client.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        client_factory: Callable[[], AsyncOpenAI] = get_client,
        today: Callable[[], dt.date] = dt.date.today,
    ):
        self.config = config or CONFIG
        self.client_factory = client_factory
        self.today = today
        self._client: Optional[AsyncOpenAI] = None

        llm_config = self.config.get("llm", {})
        self.model = llm_config.get("model")
        self.timeout = float(llm_config.get("timeout", 30))

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = self.client_factory()
        return self._client

    def _system_prompt(self, key: str, **kwargs: Any) -> List[Dict[str, str]]:
        prompt = self.config.get(key, "")
        if not prompt:
            return []
        return [{"role": "system", "content": prompt.format(**kwargs) if kwargs else prompt}]

    @track_latency(LLM_REQUEST_TIME, lambda self, operation, *_: {"operation": operation})
    async def _complete(self, operation: str, messages: List[Dict[str, str]]) -> str:
        """
        Run one chat completion and return the stripped text of the first choice.

        Args:
            operation (str): Key under CONFIG['llm']['models'] holding max_tokens/temperature.
            messages (List[Dict[str, str]]): Chat messages including any system prompt.

        Returns:
            str: The model's text content.

        Raises:
            GenerationError: On missing credentials, transport errors, timeouts, or when the
                payload has no `choices[0].message.content`.
        """
        settings = self.config["llm"]["models"][operation]["settings"]
        try:
            client = self._get_client()
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=settings["max_tokens"],
                    temperature=settings["temperature"],
                    stream=False,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise GenerationError(f"{operation} request timed out after {self.timeout:.0f}s") from e
        except (OpenAIError, RuntimeError, ValueError) as e:
            raise GenerationError(f"{operation} request failed: {e}") from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise GenerationError(f"{operation} returned a malformed completion payload") from e
        if not isinstance(content, str):
            raise GenerationError(f"{operation} returned no text content")
        return content.strip()

    @track_errors("generation", "generate_response")
    async def generate_response(self, history: Sequence[Message]) -> str:
        """
        Produce the assistant's reply to the conversation so far.

        Args:
            history (Sequence[Message]): Full message history, newest last.

        Returns:
            str: Reply text.

        Raises:
            GenerationError: If the reply could not be generated.
        """
        messages = self._system_prompt("response_message") + to_chat_messages(history)
        return await self._complete("response", messages)

    async def generate_proactive_message(self, history: Sequence[Message]) -> str:
        """Suggest a proactive follow-up; an empty string means there is nothing to add."""
        messages = self._system_prompt("proactive_message") + to_chat_messages(history)
        try:
            return await self._complete("proactive", messages)
        except GenerationError as e:
            logger.warning(f"[generate_proactive_message] Proactive generation skipped: {e}")
            return ""

    async def generate_notification(self, text: str) -> str:
        """Rewrite text as a short notification; failures return an empty string."""
        messages = self._system_prompt("notification_message") + [{"role": "user", "content": text}]
        try:
            return await self._complete("notification", messages)
        except GenerationError as e:
            logger.warning(f"[generate_notification] Notification generation skipped: {e}")
            return ""

    async def generate_reminder(self, text: str) -> Optional[Reminder]:
        """Extract a Reminder from free text, or None when nothing usable comes back."""
        return await self._extract("reminder", "reminder_extraction_message", Reminder, text)

    async def generate_calendar_event(self, text: str) -> Optional[CalendarEvent]:
        """Extract a CalendarEvent from free text, or None when nothing usable comes back."""
        return await self._extract("calendar_event", "calendar_extraction_message", CalendarEvent, text)

    async def _extract(
        self,
        operation: str,
        prompt_key: str,
        model_cls: Type[EntityT],
        text: str,
    ) -> Optional[EntityT]:
        messages = self._system_prompt(prompt_key, today=self.today().isoformat()) + [
            {"role": "user", "content": text}
        ]
        try:
            content = await self._complete(operation, messages)
        except GenerationError as e:
            logger.warning(f"[_extract] {operation} extraction failed: {e}")
            return None

        data = safe_json_loads(content)
        if not isinstance(data, dict):
            logger.info(
                f"[_extract] {operation} extraction returned no object for "
                f"'{truncate_message_for_logging(text, 50)}'"
            )
            return None

        for field in STAMPED_FIELDS:
            data.pop(field, None)

        try:
            entity = model_cls.model_validate(data)
        except ValidationError as e:
            logger.warning(f"[_extract] {operation} payload failed validation: {e.error_count()} error(s)")
            return None

        logger.info(f"[_extract] Extracted {operation} '{getattr(entity, 'title', '')}' ({entity.id})")
        return entity
