"""
Celery application configuration for background dispatch rounds.
"""

from celery import Celery
from celery.schedules import crontab

from jobmatch.config import settings, configure_logging

# Ensure centralized logging is configured for CLI-launched workers
configure_logging(settings.LOG_LEVEL)

celery_app = Celery(
    "jobmatch",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND or settings.REDIS_URL,
    include=[
        "jobmatch.workers.tasks.notification_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    result_expires=3600,
    worker_prefetch_multiplier=4,
    worker_max_tasks_per_child=1000,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_routes={
        "jobmatch.workers.tasks.notification_tasks.*": {"queue": "notification_queue"},
    },
    task_default_rate_limit="100/m",
)

celery_app.conf.beat_schedule = {
    "daily-recommendation-digest": {
        "task": "jobmatch.workers.tasks.notification_tasks.dispatch_recommendations_to_all_users",
        "schedule": crontab(hour=3, minute=0),
    },
    "daily-nearby-recommendations": {
        "task": "jobmatch.workers.tasks.notification_tasks.dispatch_nearby_recommendations_to_all_users",
        "schedule": crontab(hour=3, minute=30),
    },
}
