"""Maintenance tasks for the run status log."""

import logging

from unjobs.tasks.celery_app import celery_app
from unjobs.services.run_tracker import RunStatusTracker

logger = logging.getLogger(__name__)


@celery_app.task(name="unjobs.tasks.maintenance_tasks.expire_stuck_runs")
def expire_stuck_runs():
    """Fail runs abandoned in the running state (worker killed mid-cycle)."""
    expired = RunStatusTracker().expire_stuck_runs()
    if expired:
        logger.warning(f"Expired {expired} stuck runs")
    return {"expired": expired}


@celery_app.task(name="unjobs.tasks.maintenance_tasks.prune_run_history")
def prune_run_history(retention_days: int | None = None):
    """Delete run status rows older than the retention window (90 days by default)."""
    deleted = RunStatusTracker().prune(retention_days)
    return {"deleted": deleted}
