"""Celery application configuration.

Features:
- Redis as broker and result backend
- Task routing by queue
- Periodic sweeps via Celery Beat (room publication, scheduled announcements)
"""

from celery import Celery

from app.config import get_settings
from app.tasks.schedules import CELERY_BEAT_SCHEDULE, CELERY_TASK_ROUTES

settings = get_settings()
REDIS_BASE = settings.redis_url.rsplit("/", 1)[0]

celery_app = Celery(
    "arena_tasks",
    broker=f"{REDIS_BASE}/1",  # DB 1 for broker
    backend=f"{REDIS_BASE}/2",  # DB 2 for results
    include=[
        "app.tasks.room_publisher",
        "app.tasks.announcements",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    timezone="Asia/Kolkata",
    enable_utc=True,

    task_routes=CELERY_TASK_ROUTES,

    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    result_expires=3600,

    beat_schedule=CELERY_BEAT_SCHEDULE,

    task_default_retry_delay=30,
    task_max_retries=3,
)

if settings.app_env == "development":
    celery_app.conf.update(
        task_always_eager=False,  # Set to True to run tasks synchronously
        task_eager_propagates=True,
    )
