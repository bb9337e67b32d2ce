"""Background task scheduler using APScheduler."""

import logging
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from keygate_api.config import Settings
from keygate_api.repositories.state_store import StateStore
from keygate_api.services.persistence_gateway import PersistenceGateway
from keygate_api.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


async def sweep_expired_sessions_job(store: StateStore, settings: Settings) -> None:
    """Background job removing sessions idle beyond the configured age."""
    try:
        registry = SessionRegistry(store, max_age=timedelta(hours=settings.session_max_age_hours))
        removed = registry.sweep_expired()
        logger.debug("Session sweep completed: %d removed", removed)
    except Exception as e:
        logger.error("Session sweep failed: %s", e)


async def flush_state_job(store: StateStore, persistence: PersistenceGateway) -> None:
    """Background job writing out state left dirty by earlier requests."""
    try:
        if await persistence.flush(store):
            logger.debug("Periodic state flush written")
    except Exception as e:
        logger.error("Periodic state flush failed: %s", e)


async def start_scheduler(
    store: StateStore,
    persistence: PersistenceGateway,
    settings: Settings,
) -> None:
    """Start the background task scheduler."""
    global _scheduler

    _scheduler = AsyncIOScheduler()

    _scheduler.add_job(
        sweep_expired_sessions_job,
        trigger=IntervalTrigger(minutes=settings.session_sweep_interval_minutes),
        args=[store, settings],
        id="sweep_expired_sessions",
        name="Sweep expired sessions",
        replace_existing=True,
    )

    _scheduler.add_job(
        flush_state_job,
        trigger=IntervalTrigger(minutes=settings.persist_interval_minutes),
        args=[store, persistence],
        id="flush_state",
        name="Flush state to disk",
        replace_existing=True,
    )

    _scheduler.start()
    logger.info("Background scheduler started")


async def stop_scheduler() -> None:
    """Stop the background task scheduler."""
    global _scheduler

    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Background scheduler stopped")
