"""
Celery application: broker and result backend from settings.
The polling sweep over `processing` generation jobs runs on beat.
"""
from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "app",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.workers.tasks.sweep_processing",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=3600,
    result_expires=86400,
    beat_schedule={
        "sweep-processing-generations": {
            "task": "app.workers.tasks.sweep_processing.sweep_processing_jobs",
            "schedule": float(settings.sweep_interval_seconds),
        },
    },
)
