"""Celery Beat schedule configuration.

Tasks:
- Every 30s: publish room details whose gate has opened
- Every 60s: send scheduled announcements that are due
"""

from app.config import get_settings

settings = get_settings()


CELERY_BEAT_SCHEDULE = {
    # Room credentials for matches starting within the publish lead time
    "publish-due-rooms": {
        "task": "app.tasks.room_publisher.publish_due_rooms_task",
        "schedule": float(settings.room_publisher_interval_seconds),
        "options": {"queue": "scheduler", "expires": settings.room_publisher_interval_seconds},
    },

    # Scheduled announcements whose send time has passed
    "dispatch-due-announcements": {
        "task": "app.tasks.announcements.dispatch_due_announcements_task",
        "schedule": float(settings.announcement_dispatcher_interval_seconds),
        "options": {
            "queue": "notification",
            "expires": settings.announcement_dispatcher_interval_seconds,
        },
    },
}


CELERY_TASK_ROUTES = {
    "app.tasks.room_publisher.*": {"queue": "scheduler"},
    "app.tasks.announcements.*": {"queue": "notification"},
}
