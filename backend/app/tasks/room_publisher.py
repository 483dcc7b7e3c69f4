"""Room publication sweep.

Runs every ``room_publisher_interval_seconds`` and publishes auto-publish room
details whose gate (start time minus the publish lead) has opened. Player reads
apply the same gate lazily, so the sweep only makes publication deterministic.
"""

import asyncio
import logging
from datetime import datetime, timezone

from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="app.tasks.room_publisher.publish_due_rooms_task",
    max_retries=3,
    default_retry_delay=10,
)
def publish_due_rooms_task(self):
    """Publish due room details.

    Returns:
        Summary dict with the number of published room details
    """
    logger.debug(f"Room publish sweep (attempt {self.request.retries + 1})")
    try:
        result = asyncio.run(publish_due_rooms())
    except Exception as exc:
        logger.warning(f"Room publish sweep failed, retrying: {exc}")
        raise self.retry(exc=exc)
    if result["published"]:
        logger.info(f"Room publish sweep complete: {result}")
    return result


async def publish_due_rooms(now: datetime | None = None, session_factory=None) -> dict:
    """Async implementation; ``session_factory`` defaults to the app's."""
    from app.config import get_settings
    from app.services.room_details import RoomDetailsService
    from app.utils.db import build_engine, build_session_factory

    # Each task run has its own event loop, so it gets its own engine
    engine = None
    if session_factory is None:
        engine = build_engine(get_settings().database_url)
        session_factory = build_session_factory(engine)

    try:
        async with session_factory() as session:
            try:
                published = await RoomDetailsService(session).publish_due(now)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
    finally:
        if engine is not None:
            await engine.dispose()

    return {
        "status": "success",
        "published": published,
        "processed_at": datetime.now(timezone.utc).isoformat(),
    }
