""" main.py: FastAPI application entry point and runtime configuration.

This module builds the ASGI app, mounts the conversation and entity routers, configures CORS and exposes a
Prometheus metrics endpoint. The conversation engine itself (gateway, entity store, scheduler, orchestrator)
is assembled in the application lifespan and kept on `app.state`, so tests can hand `create_app` an
orchestrator wired to fakes. When executed directly, it starts a Uvicorn server using host/port values from
configuration.
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from proactive_chat.config import CONFIG
from proactive_chat.core.orchestrator import ConversationOrchestrator
from proactive_chat.llm_cloud.gateway import AIGateway
from proactive_chat.services.entity_store import EntityStore
from proactive_chat.services.proactive_scheduler import ProactiveScheduler
from proactive_chat.services.reminder_checker import check_and_notify
from proactive_chat.version import __version__

# --- Router Imports ---
from proactive_chat.api import conversation as conversation_router
from proactive_chat.api import entities as entities_router

# Get a logger instance for this module
logger = logging.getLogger(__name__)

REMINDER_CHECK_JOB_ID = "reminder-check"


def build_orchestrator(scheduler: Optional[ProactiveScheduler] = None) -> ConversationOrchestrator:
    """Assemble a conversation with the production gateway and a fresh in-memory store."""
    return ConversationOrchestrator(
        gateway=AIGateway(CONFIG),
        store=EntityStore(),
        scheduler=scheduler,
        config=CONFIG,
    )


def check_and_notify_job(orchestrator: ConversationOrchestrator) -> Callable[[], None]:
    """Bind the reminder check to a conversation's store for the interval job."""
    def _job() -> None:
        check_and_notify(orchestrator.store, conversation_id=orchestrator.conversation_id)
    return _job


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the conversation engine inside the running event loop and stop the scheduler on exit.

    APScheduler's asyncio scheduler binds to the loop it is started in, so it is created here
    rather than at import time. An orchestrator passed to `create_app` is used as-is.
    """
    if app.state.orchestrator is None:
        scheduler = ProactiveScheduler()
        orchestrator = build_orchestrator(scheduler)

        interval = CONFIG.get('reminders', {}).get('check_interval_seconds', 60)
        if interval and interval > 0:
            scheduler.schedule_interval(REMINDER_CHECK_JOB_ID, check_and_notify_job(orchestrator), interval)
        else:
            scheduler.start()

        app.state.scheduler = scheduler
        app.state.orchestrator = orchestrator
        logger.info(f"[lifespan] Conversation {orchestrator.conversation_id} ready")
    else:
        logger.info("[lifespan] Using injected orchestrator")

    yield

    if app.state.scheduler is not None:
        app.state.scheduler.shutdown()


def create_app(orchestrator: Optional[ConversationOrchestrator] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        orchestrator (Optional[ConversationOrchestrator]): Pre-built conversation. When None, one is
            built at startup together with the scheduler that runs proactive follow-ups and the
            periodic reminder check.

    Returns:
        FastAPI: Configured application with /api routes and /metrics.
    """
    app = FastAPI(title="Proactive Chat Assistant", version=__version__, lifespan=lifespan)
    app.state.orchestrator = orchestrator
    app.state.scheduler = None

    # Include routers
    app.include_router(conversation_router.router, prefix="/api", tags=["Conversation"])
    app.include_router(entities_router.router, prefix="/api", tags=["Entities"])

    # Add Prometheus metrics endpoint
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)

    # Configure CORS
    allow_origins = CONFIG.get('cors', {}).get('allow_origins', ["*"])
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


app = create_app()

# The uvicorn server is used to run the FastAPI application.
if __name__ == '__main__':
    import uvicorn
    logger.info("[__main__] Starting Uvicorn server for main.py\n")
    uvicorn.run(
        app,
        host=CONFIG.get('server', {}).get('host', '0.0.0.0'),
        port=CONFIG.get('server', {}).get('port', 8080)
    )
