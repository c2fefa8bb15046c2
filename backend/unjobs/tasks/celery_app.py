"""Celery application configuration and beat schedule."""

from celery import Celery
from celery.schedules import crontab

from unjobs.config import get_settings

settings = get_settings()

celery_app = Celery(
    "unjobs",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "unjobs.tasks.ingest_tasks",
        "unjobs.tasks.maintenance_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    task_track_started=True,
    task_time_limit=600,
    task_soft_time_limit=540,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

celery_app.conf.beat_schedule = {
    "run-ingestion-cycle": {
        "task": "unjobs.tasks.ingest_tasks.run_ingestion_cycle",
        "schedule": crontab(minute=0, hour=",".join(str(h) for h in settings.ingest_hours)),
    },
    "expire-stuck-runs": {
        "task": "unjobs.tasks.maintenance_tasks.expire_stuck_runs",
        "schedule": crontab(minute=15),
    },
    "prune-run-history": {
        "task": "unjobs.tasks.maintenance_tasks.prune_run_history",
        "schedule": crontab(minute=30, hour=3),
    },
}
