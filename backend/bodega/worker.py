"""Bodega WMS - Celery worker configuration."""
from celery import Celery

from bodega.config import get_settings

settings = get_settings()

celery_app = Celery(
    "bodega",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_retry_delay=60,
    task_max_retries=3,
    task_routes={
        "bodega.tasks.*": {"queue": "default"},
    },
    include=[
        "bodega.tasks.notification_tasks",
    ],
)
