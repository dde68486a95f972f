"""
APScheduler-based scheduling for deferred conversation work.

This module wraps APScheduler's asyncio scheduler so jobs run as coroutines on the same event
loop as the orchestrator. Two kinds of jobs are scheduled through it:

- one-shot proactive follow-ups: fired once after a quiet period that follows a bot reply. The
  caller keeps the returned Job handle and cancels it when newer user activity supersedes it.
- interval jobs such as the upcoming-reminder check.

Cancellation is best-effort: a job that has already started keeps running; only pending jobs
are removed. Callers that must ignore a superseded result check for it themselves when the job
completes.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Optional

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import SchedulerNotRunningError
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from proactive_chat.config import CONFIG

logger = logging.getLogger(__name__)


class ProactiveScheduler:
    """
    Thin lifecycle wrapper around `AsyncIOScheduler`.

    The scheduler is started lazily on the first scheduled job because APScheduler binds to the
    running event loop when it starts.
    """

    def __init__(
        self,
        quiet_period_seconds: Optional[float] = None,
        misfire_grace_seconds: Optional[int] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        proactive_config = CONFIG.get("proactive", {})
        if quiet_period_seconds is None:
            quiet_period_seconds = proactive_config.get("quiet_period_seconds", 1.5)
        if misfire_grace_seconds is None:
            misfire_grace_seconds = proactive_config.get("misfire_grace_seconds", 30)

        self.quiet_period_seconds = float(quiet_period_seconds)
        self.misfire_grace_seconds = int(misfire_grace_seconds)
        self.scheduler = scheduler or AsyncIOScheduler(timezone=dt.timezone.utc)

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        """Start the underlying scheduler if it is not running yet. Must run inside the event loop."""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("[ProactiveScheduler] Scheduler started")

    def shutdown(self) -> None:
        """
        Stop the scheduler if it was started; pending jobs are dropped.

        Jobs already executing are not awaited. The asyncio scheduler performs the stop on its
        event loop, so `running` may still read True until the loop gets a turn.
        """
        if not self.scheduler.running:
            return
        try:
            self.scheduler.shutdown(wait=False)
            logger.info("[ProactiveScheduler] Scheduler stopped")
        except SchedulerNotRunningError:
            return

    def schedule_once(self, job_id: str, func: Callable[..., Any], *args: Any) -> Job:
        """
        Run `func(*args)` once after the quiet period.

        Args:
            job_id (str): Unique id for this job. Ids are not reused so a replacement never
                collides with a still-running predecessor.
            func (Callable): Coroutine function (or plain callable) to run.
            *args: Positional arguments passed to `func`.

        Returns:
            Job: Handle the caller keeps in order to cancel the job.
        """
        self.start()
        run_date = dt.datetime.now(dt.timezone.utc) + dt.timedelta(seconds=self.quiet_period_seconds)
        job = self.scheduler.add_job(
            func,
            trigger=DateTrigger(run_date=run_date),
            args=list(args),
            id=job_id,
            max_instances=1,
            misfire_grace_time=self.misfire_grace_seconds,
        )
        logger.debug(f"[ProactiveScheduler] Scheduled {job_id} for {run_date.isoformat()}")
        return job

    def schedule_interval(self, job_id: str, func: Callable[..., Any], seconds: float) -> Job:
        """Run `func` every `seconds`, replacing any job registered under the same id."""
        self.start()
        return self.scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )

    def cancel(self, job: Optional[Job]) -> bool:
        """
        Remove a pending job.

        Returns:
            bool: True if the job was still pending and has been removed; False if there was no
            job, or it already fired (including one that is still executing).
        """
        if job is None:
            return False
        try:
            job.remove()
        except JobLookupError:
            return False
        logger.debug(f"[ProactiveScheduler] Cancelled {job.id}")
        return True
