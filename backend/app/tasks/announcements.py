"""Scheduled announcement dispatch.

Runs every ``announcement_dispatcher_interval_seconds`` and sends scheduled
announcements whose ``scheduled_for`` has passed.
"""

import asyncio
import logging
from datetime import datetime, timezone

from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="app.tasks.announcements.dispatch_due_announcements_task",
    max_retries=3,
    default_retry_delay=30,
)
def dispatch_due_announcements_task(self):
    """Send due announcements.

    Returns:
        Summary dict with the number of delivered announcements
    """
    logger.debug(f"Announcement sweep (attempt {self.request.retries + 1})")
    try:
        result = asyncio.run(dispatch_due_announcements())
    except Exception as exc:
        logger.warning(f"Announcement sweep failed, retrying: {exc}")
        raise self.retry(exc=exc)
    if result["sent"]:
        logger.info(f"Announcement sweep complete: {result}")
    return result


async def dispatch_due_announcements(
    now: datetime | None = None,
    session_factory=None,
    notifier=None,
) -> dict:
    """Async implementation; collaborators default to the app's."""
    from app.config import get_settings
    from app.services.announcement import AnnouncementService
    from app.services.notifications import get_notifier
    from app.utils.db import build_engine, build_session_factory

    engine = None
    if session_factory is None:
        engine = build_engine(get_settings().database_url)
        session_factory = build_session_factory(engine)

    try:
        async with session_factory() as session:
            try:
                service = AnnouncementService(session, notifier or get_notifier())
                sent = await service.dispatch_due(now)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
    finally:
        if engine is not None:
            await engine.dispose()

    return {
        "status": "success",
        "sent": sent,
        "processed_at": datetime.now(timezone.utc).isoformat(),
    }
