"""
core/orchestrator.py

Per-conversation controller for the proactive chat assistant.

This module contains the coordination logic that:
1. Appends incoming messages to the entity store
2. Asks the extraction policy which generations the message triggers
3. Awaits the assistant reply, then fans out the best-effort extractions concurrently
4. Schedules (and supersedes) the proactive follow-up after each successful reply
5. Owns the transient conversation status (typing, loading, error)

Nothing raises past this class: generation and storage failures end up in `status.error`, missed
extractions and unknown ids are silent no-ops. Callers observe state through `get_state()`.
"""

import asyncio
import datetime as dt
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar, Union

from apscheduler.job import Job

from proactive_chat.config import CONFIG
from proactive_chat.config.logging_config import get_logger
from proactive_chat.llm_cloud.gateway import AIGateway
from proactive_chat.monitoring.metrics import ERROR_COUNT, EXTRACTION_RESULTS, PROACTIVE_JOBS
from proactive_chat.services.entity_store import EntityStore
from proactive_chat.services.history_manager import archive_conversation, generate_conversation_id
from proactive_chat.services.proactive_scheduler import ProactiveScheduler
from proactive_chat.shared.errors import GenerationError, StorageFailure
from proactive_chat.shared.models import (
    CalendarEvent,
    ChatState,
    ConversationStatus,
    Message,
    MessageType,
    Reminder,
    Role,
    Sender,
    Trigger,
    UserPreferences,
    new_entity_id,
    utc_now,
)
from proactive_chat.shared.utils import truncate_message_for_logging
from .policy import auxiliary, decide

ResultT = TypeVar("ResultT")

UNEXPECTED_ERROR_MESSAGE = "An error occurred"


class ConversationOrchestrator:
    """
    Stateful controller for one conversation.

    Collaborators are injected so tests can pass fakes:
    - gateway: AIGateway (or anything with the same coroutine methods)
    - store: EntityStore, the only place conversation data lives
    - scheduler: ProactiveScheduler; None disables proactive follow-ups

    Status bookkeeping:
    - is_typing stays True while any add_message cycle is in flight
    - is_loading is True while auxiliary extractions are running
    - a user message bumps the activity epoch; proactive work started under an older epoch is
      discarded instead of appended
    """

    def __init__(
        self,
        gateway: AIGateway,
        store: EntityStore,
        scheduler: Optional[ProactiveScheduler] = None,
        config: Optional[Dict[str, Any]] = None,
        conversation_id: Optional[str] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            gateway (AIGateway): Generation operations.
            store (EntityStore): Store owning messages, reminders, events and preferences.
            scheduler (Optional[ProactiveScheduler]): Runs deferred proactive follow-ups.
            config (Optional[Dict[str, Any]]): Configuration; defaults to the global CONFIG.
            conversation_id (Optional[str]): Identifier used in logs and archive names.
        """
        self.config = config or CONFIG
        self.gateway = gateway
        self.store = store
        self.scheduler = scheduler
        self.conversation_id = conversation_id or generate_conversation_id()
        self.proactive_enabled = bool(self.config.get("proactive", {}).get("enabled", True))

        self.status = ConversationStatus()
        self._cycles_in_flight = 0
        self._extractions_in_flight = 0
        self._epoch = 0
        self._proactive_job: Optional[Job] = None
        self._proactive_seq = 0

        self.logger = get_logger(__name__, self.conversation_id)
        self.logger.info("Orchestrator ready (proactive %s)", "on" if self._proactive_active() else "off")

    # --- state ---

    def get_state(self) -> ChatState:
        """
        Snapshot of everything the UI reads.

        Returns:
            ChatState: Collections plus status. If the store is unavailable the collections are
            empty and `error` describes the failure.
        """
        try:
            messages = self.store.list_messages()
            reminders = self.store.list_reminders()
            events = self.store.list_calendar_events()
            preferences = self.store.get_preferences()
        except StorageFailure as e:
            self._record_failure("get_state", e)
            messages, reminders, events, preferences = [], [], [], UserPreferences()

        return ChatState(
            messages=messages,
            reminders=reminders,
            calendar_events=events,
            is_typing=self.status.is_typing,
            is_loading=self.status.is_loading,
            error=self.status.error,
            preferences=preferences,
        )

    def set_error(self, error: Optional[str]) -> None:
        """Replace the current error; None clears it."""
        self.status.error = error

    def set_is_typing(self, is_typing: bool) -> None:
        self.status.is_typing = is_typing

    # --- message cycle ---

    async def add_message(self, message: Message) -> Optional[Message]:
        """
        Run one submission cycle for a new message.

        The message gets a fresh id and timestamp and is appended before any generation starts.
        RESPOND is awaited first; if it fails the cycle stops there. Otherwise the auxiliary
        triggers run concurrently and each one's failure is isolated from the others.

        Args:
            message (Message): The incoming message (normally from the user).

        Returns:
            Optional[Message]: The stored message, or None if it could not be stored.
        """
        incoming = message.model_copy(update={"id": new_entity_id(), "timestamp": utc_now()})

        if incoming.sender == Sender.USER:
            self._epoch += 1
            self._cancel_proactive()

        try:
            self.store.append_message(incoming)
        except StorageFailure as e:
            self._record_failure("add_message", e)
            return None

        epoch = self._epoch
        self._cycles_in_flight += 1
        self.status.is_typing = True
        self.status.error = None

        try:
            triggers = decide(incoming)
            self.logger.info(
                "Message %s added, triggers=%s (%s)",
                incoming.id,
                sorted(trigger.value for trigger in triggers),
                truncate_message_for_logging(incoming.content, 50),
            )

            if Trigger.RESPOND in triggers and not await self._respond(epoch):
                return incoming

            pending = auxiliary(triggers)
            if pending:
                await self._run_auxiliary(incoming, pending)
        finally:
            self._cycles_in_flight -= 1
            self.status.is_typing = self._cycles_in_flight > 0

        return incoming

    async def _respond(self, epoch: int) -> bool:
        """
        Generate and append the assistant reply.

        Returns:
            bool: False if the cycle must stop (the error has been recorded), True otherwise.
            An empty reply is a benign no-result: nothing is appended and nothing is scheduled.
        """
        log = self._trigger_logger(Trigger.RESPOND)
        try:
            history = self.store.list_messages()
            reply = await self.gateway.generate_response(history)
        except (GenerationError, StorageFailure) as e:
            self._record_failure("respond", e)
            return False
        except Exception as e:
            log.error("Unexpected error generating response", exc_info=True)
            ERROR_COUNT.labels(type="unexpected", location="respond").inc()
            self.status.error = str(e) or UNEXPECTED_ERROR_MESSAGE
            return False

        if not reply:
            log.info("Gateway returned an empty reply; nothing appended")
            return True

        try:
            self.store.append_message(self._bot_message(reply, MessageType.TEXT))
        except StorageFailure as e:
            self._record_failure("respond", e)
            return False

        log.info("Reply appended (%d chars)", len(reply))
        self._schedule_proactive(epoch)
        return True

    async def _run_auxiliary(self, message: Message, triggers: List[Trigger]) -> None:
        handlers: Dict[Trigger, Callable[[Message], Awaitable[bool]]] = {
            Trigger.NOTIFY: self._notify,
            Trigger.EXTRACT_REMINDER: self._extract_reminder,
            Trigger.EXTRACT_EVENT: self._extract_event,
        }

        self._extractions_in_flight += 1
        self.status.is_loading = True
        try:
            results = await asyncio.gather(
                *(handlers[trigger](message) for trigger in triggers),
                return_exceptions=True,
            )
        finally:
            self._extractions_in_flight -= 1
            self.status.is_loading = self._extractions_in_flight > 0

        for trigger, result in zip(triggers, results):
            if isinstance(result, BaseException):
                outcome = "failed"
                self._trigger_logger(trigger).warning(f"Auxiliary generation failed: {result!r}")
            else:
                outcome = "applied" if result else "empty"
            EXTRACTION_RESULTS.labels(trigger=trigger.value, outcome=outcome).inc()

    async def _notify(self, message: Message) -> bool:
        text = await self.gateway.generate_notification(message.content)
        if not text:
            return False
        self.store.append_message(self._bot_message(text, MessageType.NOTIFICATION))
        return True

    async def _extract_reminder(self, message: Message) -> bool:
        reminder = await self.gateway.generate_reminder(message.content)
        if reminder is None:
            return False
        stored = self.store.upsert_reminder(reminder)
        self._trigger_logger(Trigger.EXTRACT_REMINDER).info(f"Reminder '{stored.title}' stored ({stored.id})")
        return True

    async def _extract_event(self, message: Message) -> bool:
        event = await self.gateway.generate_calendar_event(message.content)
        if event is None:
            return False
        stored = self.store.upsert_calendar_event(event)
        self._trigger_logger(Trigger.EXTRACT_EVENT).info(f"Calendar event '{stored.title}' stored ({stored.id})")
        return True

    # --- proactive follow-up ---

    def _proactive_active(self) -> bool:
        return self.proactive_enabled and self.scheduler is not None

    def _schedule_proactive(self, epoch: int) -> None:
        """Replace any pending follow-up with a new one, unless newer user activity exists."""
        if not self._proactive_active() or epoch != self._epoch:
            return
        self._cancel_proactive()
        self._proactive_seq += 1
        job_id = f"proactive-{self.conversation_id}-{self._proactive_seq}"
        self._proactive_job = self.scheduler.schedule_once(job_id, self._run_proactive, epoch)
        PROACTIVE_JOBS.labels(outcome="scheduled").inc()

    def _cancel_proactive(self) -> None:
        job, self._proactive_job = self._proactive_job, None
        if job is not None and self.scheduler is not None and self.scheduler.cancel(job):
            PROACTIVE_JOBS.labels(outcome="cancelled").inc()

    async def _run_proactive(self, epoch: int) -> Optional[Message]:
        """
        Body of the deferred follow-up job.

        The result is dropped when a user message arrived after the job was scheduled, whether
        that happened before the job started or while the gateway call was in flight.
        """
        if epoch != self._epoch:
            PROACTIVE_JOBS.labels(outcome="stale").inc()
            return None

        try:
            history = self.store.list_messages()
            text = await self.gateway.generate_proactive_message(history)
        except Exception as e:
            self.logger.warning(f"[_run_proactive] Proactive follow-up failed: {e!r}")
            PROACTIVE_JOBS.labels(outcome="failed").inc()
            return None

        if epoch != self._epoch:
            self.logger.info("[_run_proactive] Discarding proactive message superseded by newer input")
            PROACTIVE_JOBS.labels(outcome="stale").inc()
            return None
        if not text:
            PROACTIVE_JOBS.labels(outcome="empty").inc()
            return None

        message = self._bot_message(text, MessageType.NOTIFICATION)
        try:
            self.store.append_message(message)
        except StorageFailure as e:
            self.logger.warning(f"[_run_proactive] Could not append proactive message: {e}")
            PROACTIVE_JOBS.labels(outcome="failed").inc()
            return None

        PROACTIVE_JOBS.labels(outcome="appended").inc()
        self.logger.info("[_run_proactive] Proactive message appended")
        return message

    # --- entity pass-throughs ---

    def add_reminder(self, reminder: Reminder) -> Optional[Reminder]:
        return self._apply("add_reminder", self.store.upsert_reminder, reminder)

    def update_reminder(self, reminder_id: str, updates: Mapping[str, Any]) -> Optional[Reminder]:
        """Apply a partial update; unknown ids return None without touching the error."""
        return self._apply("update_reminder", self.store.update_reminder, reminder_id, updates)

    def delete_reminder(self, reminder_id: str) -> bool:
        return bool(self._apply("delete_reminder", self.store.delete_reminder, reminder_id))

    def add_calendar_event(self, event: CalendarEvent) -> Optional[CalendarEvent]:
        return self._apply("add_calendar_event", self.store.upsert_calendar_event, event)

    def update_calendar_event(self, event_id: str, updates: Mapping[str, Any]) -> Optional[CalendarEvent]:
        return self._apply("update_calendar_event", self.store.update_calendar_event, event_id, updates)

    def delete_calendar_event(self, event_id: str) -> bool:
        return bool(self._apply("delete_calendar_event", self.store.delete_calendar_event, event_id))

    def update_preferences(
        self, partial: Union[UserPreferences, Mapping[str, Any]]
    ) -> Optional[UserPreferences]:
        """Merge a partial preferences update; fields not given keep their current values."""
        return self._apply("update_preferences", self.store.merge_preferences, partial)

    def upcoming_reminders(self, now: Optional[dt.datetime] = None) -> List[Reminder]:
        """Active reminders due after `now` (naive local time); [] if the store is unavailable."""
        return self._read("upcoming_reminders", self.store.upcoming_reminders, now) or []

    def events_for_date(self, day: dt.date) -> List[CalendarEvent]:
        return self._read("events_for_date", self.store.events_for_date, day) or []

    def reset_conversation(self) -> bool:
        """
        Archive the current messages to disk and clear them.

        Reminders, events and preferences are kept. Any pending proactive follow-up is cancelled
        and one already running will be discarded.

        Returns:
            bool: True if the conversation was archived (or was empty) and cleared.
        """
        self._epoch += 1
        self._cancel_proactive()

        try:
            messages = self.store.list_messages()
            success, detail = archive_conversation(self.conversation_id, messages)
            if not success:
                raise StorageFailure(detail)
            self.store.clear_messages()
        except StorageFailure as e:
            self._record_failure("reset_conversation", e)
            return False

        self.status.error = None
        self.logger.info(f"[reset_conversation] Conversation reset: {detail}")
        return True

    # --- helpers ---

    def _apply(self, action: str, operation: Callable[..., ResultT], *args: Any) -> Optional[ResultT]:
        try:
            result = operation(*args)
        except StorageFailure as e:
            self._record_failure(action, e)
            return None
        self.status.error = None
        return result

    def _read(self, action: str, operation: Callable[..., ResultT], *args: Any) -> Optional[ResultT]:
        try:
            return operation(*args)
        except StorageFailure as e:
            self._record_failure(action, e)
            return None

    def _record_failure(self, action: str, error: Exception) -> None:
        error_type = "generation" if isinstance(error, GenerationError) else "storage"
        ERROR_COUNT.labels(type=error_type, location=action).inc()
        self.status.error = str(error)
        self.logger.error(f"[{action}] {type(error).__name__}: {error}")

    def _trigger_logger(self, trigger: Trigger) -> logging.LoggerAdapter:
        return logging.LoggerAdapter(self.logger.logger, {**self.logger.extra, "trigger": trigger.value})

    @staticmethod
    def _bot_message(content: str, message_type: MessageType) -> Message:
        return Message(content=content, sender=Sender.BOT, type=message_type, role=Role.ASSISTANT)
