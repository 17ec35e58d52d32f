"""Celery tasks for LeagueSync.

The weekly sync itself runs inside the API process (WeeklySyncScheduler).
Celery handles admin-triggered standings work that should not block a
request.
"""

from celery import Celery

from leaguesync.config import get_settings

settings = get_settings()

# Create Celery application
celery_app = Celery(
    "leaguesync",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "leaguesync.tasks.standings",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Task behavior
    task_track_started=True,
    task_time_limit=600,  # 10 minute hard limit
    task_soft_time_limit=540,  # 9 minute soft limit
    # Result expiration
    result_expires=3600,  # 1 hour
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=2,
)
