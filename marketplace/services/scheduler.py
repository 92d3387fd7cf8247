"""
Scheduler setup for background tasks.

Uses APScheduler's asyncio scheduler so the cleanup job shares the
application's event loop and async engine.
- Session cleanup: bulk-deletes expired device sessions every
  SESSION_CLEANUP_INTERVAL_MINUTES (90 by default).
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from marketplace.core.config import settings
from marketplace.core.database import async_session_factory
from marketplace.services import session_service

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


async def cleanup_sessions_job() -> int:
    """Purge expired sessions in a transaction of its own."""
    async with async_session_factory() as session:
        try:
            removed = await session_service.purge_expired_sessions(session)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Session cleanup failed")
            raise
    logger.info("Session cleanup removed %d expired session(s)", removed)
    return removed


def start_scheduler() -> AsyncIOScheduler:
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler is already running")
        return scheduler

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        cleanup_sessions_job,
        trigger=IntervalTrigger(minutes=settings.SESSION_CLEANUP_INTERVAL_MINUTES),
        id="session_cleanup",
        name="Cleanup expired sessions",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Background scheduler started. Session cleanup every %d minutes.",
        settings.SESSION_CLEANUP_INTERVAL_MINUTES,
    )
    return scheduler


def shutdown_scheduler() -> None:
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Background scheduler stopped.")
