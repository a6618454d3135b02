"""Celery application configuration"""

from celery import Celery
from app.config import settings

# Create Celery app
celery_app = Celery(
    "tablebook",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.jobs.tasks",
    ],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

# Beat schedule for periodic tasks; with the in-memory scheduler the API
# process runs the overdue sweep itself
if settings.scheduler_backend == "celery":
    celery_app.conf.beat_schedule = {
        "auto-cancel-overdue-bookings": {
            "task": "auto_cancel_overdue_bookings",
            "schedule": settings.auto_cancel_interval_seconds,
        },
    }
