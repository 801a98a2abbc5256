from __future__ import annotations

from celery import Celery

from medrec_jobs.config import settings

celery_app = Celery(
    "medrec",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["medrec_jobs.tasks"],
)

celery_app.conf.timezone = settings.timezone
celery_app.conf.broker_connection_retry_on_startup = True
celery_app.conf.beat_schedule = {
    "sweep-orphaned-uploads": {
        "task": "jobs.sweep_orphaned_uploads",
        "schedule": float(settings.orphan_sweep_interval_seconds),
    },
}
