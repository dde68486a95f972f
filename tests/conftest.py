"""
conftest.py – central pytest configuration and test bootstrap ("config test").

Pytest imports this module before it collects any test files, which lets us prepare the environment
that `proactive_chat.config` reads at import time:
  1) Extend `sys.path` with the project root so `proactive_chat` imports resolve without an
     editable install.
  2) Disable file logging and move conversation archives into a temporary directory so a test run
     never writes into the source tree.
  3) Shorten the proactive quiet period so scheduler tests finish quickly.

Shared fakes live here too: a gateway built from AsyncMocks and a scheduler that records jobs
instead of running them, so orchestrator tests decide exactly when a proactive job fires.
"""

import os
import sys
import tempfile
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

# Ensure project root is on sys.path for direct imports like `proactive_chat.core`
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Provide safe environment defaults for tests
os.environ["LOG_FILE_PATH"] = ""
os.environ.setdefault("USER_DATA_DIR", tempfile.mkdtemp(prefix="proactive_chat_tests_"))
os.environ.setdefault("PROACTIVE_QUIET_PERIOD_SECONDS", "0.05")
os.environ.setdefault("REMINDER_CHECK_INTERVAL_SECONDS", "0")


class FakeScheduler:
    """Stands in for ProactiveScheduler: keeps jobs until a test fires or cancels them."""

    def __init__(self):
        self.jobs = {}
        self.cancelled = []

    def schedule_once(self, job_id, func, *args):
        job = SimpleNamespace(id=job_id, func=func, args=args)
        self.jobs[job_id] = job
        return job

    def cancel(self, job):
        if job is None or job.id not in self.jobs:
            return False
        del self.jobs[job.id]
        self.cancelled.append(job.id)
        return True

    def pending(self):
        return list(self.jobs.values())

    async def fire(self, job):
        """Run a job the way APScheduler would: it leaves the pending set, then executes."""
        self.jobs.pop(job.id, None)
        return await job.func(*job.args)


@pytest.fixture
def gateway():
    """Gateway double: replies "Hi there", every auxiliary generation finds nothing."""
    fake = MagicMock()
    fake.generate_response = AsyncMock(return_value="Hi there")
    fake.generate_proactive_message = AsyncMock(return_value="")
    fake.generate_notification = AsyncMock(return_value="")
    fake.generate_reminder = AsyncMock(return_value=None)
    fake.generate_calendar_event = AsyncMock(return_value=None)
    return fake


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def conversations_dir(tmp_path, monkeypatch):
    """Redirect conversation archives to a per-test directory."""
    import proactive_chat.services.history_manager as hm

    conv_dir = tmp_path / "conversations"
    monkeypatch.setattr(hm, "CONVERSATIONS_DIR", str(conv_dir), raising=True)
    return conv_dir
