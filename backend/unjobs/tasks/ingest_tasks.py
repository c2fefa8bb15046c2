"""Ingestion and cleanup tasks."""

import logging

from unjobs.tasks.celery_app import celery_app
from unjobs.services.cache import RedisInvalidator
from unjobs.services.cleanup import CleanupEngine
from unjobs.services.orchestrator import Orchestrator
from unjobs.services.run_tracker import RunStatusTracker

logger = logging.getLogger(__name__)


@celery_app.task(
    name="unjobs.tasks.ingest_tasks.run_ingestion_cycle",
    time_limit=4 * 3600,
    soft_time_limit=4 * 3600 - 300,
)
def run_ingestion_cycle(sources: list[str] | None = None):
    """Run one ingestion cycle over all (or the named) sources, then clean up."""
    summary = Orchestrator.from_settings(sources).run()
    logger.info(
        f"Cycle done: succeeded={summary.succeeded} "
        f"failed={[f.name for f in summary.failed]}"
    )
    return summary.model_dump(mode="json")


@celery_app.task(name="unjobs.tasks.ingest_tasks.run_cleanup")
def run_cleanup(dry_run: bool = False):
    """Remove expired and duplicate job records on demand."""
    engine = CleanupEngine(invalidator=RedisInvalidator(), tracker=RunStatusTracker())
    stats = engine.run(dry_run=dry_run)
    return stats.model_dump(mode="json")
