"""Ingestion status and administration endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

import unjobs.connectors  # noqa: F401
from unjobs.config import get_settings
from unjobs.connectors.registry import list_sources
from unjobs.models.base import get_session_factory
from unjobs.schemas.cleanup import CleanupStats
from unjobs.schemas.run_status import HealthSnapshot, RunHistoryPage, RunStatistics, RunStatusRead
from unjobs.services.cache import Invalidator, RedisInvalidator
from unjobs.services.cleanup import CleanupEngine
from unjobs.services.run_tracker import RunStatusTracker
from unjobs.tasks.ingest_tasks import run_ingestion_cycle

router = APIRouter(prefix="/etl", tags=["etl"])


class TriggerRequest(BaseModel):
    sources: list[str] | None = None


def get_tracker(session_factory=Depends(get_session_factory)) -> RunStatusTracker:
    return RunStatusTracker(session_factory)


def get_invalidator() -> Invalidator:
    return RedisInvalidator()


@router.get("/status", response_model=list[RunStatusRead])
def latest_status(tracker: RunStatusTracker = Depends(get_tracker)):
    """Most recent run for every source."""
    return tracker.latest()


@router.get("/history/{source_name}", response_model=RunHistoryPage)
def source_history(
    source_name: str,
    page: int = Query(1, ge=1, le=1000),
    size: int = Query(20, ge=1, le=100),
    tracker: RunStatusTracker = Depends(get_tracker),
):
    """Run history for one source, newest first."""
    return tracker.history(source_name, page=page, size=size)


@router.get("/statistics", response_model=RunStatistics)
def run_statistics(
    days: int = Query(7, ge=1, le=365),
    tracker: RunStatusTracker = Depends(get_tracker),
):
    return tracker.statistics(days)


@router.get("/health", response_model=HealthSnapshot)
def ingestion_health(tracker: RunStatusTracker = Depends(get_tracker)):
    return tracker.health()


@router.post("/cleanup", response_model=CleanupStats)
def cleanup(
    dry_run: bool = Query(False, description="Report what would be removed without deleting"),
    session_factory=Depends(get_session_factory),
    invalidator: Invalidator = Depends(get_invalidator),
):
    """Remove expired and duplicate job records."""
    engine = CleanupEngine(
        session_factory,
        invalidator=invalidator,
        tracker=RunStatusTracker(session_factory),
    )
    return engine.run(dry_run=dry_run)


@router.post("/cache/clear")
def clear_cache(invalidator: Invalidator = Depends(get_invalidator)):
    prefix = get_settings().cache_prefix
    try:
        removed = invalidator.invalidate(prefix)
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Cache unavailable: {e}")
    return {"prefix": prefix, "removed": removed}


@router.post("/trigger", status_code=202)
def trigger_ingestion(body: TriggerRequest | None = None):
    """Queue an ingestion cycle on the Celery worker."""
    sources = body.sources if body else None
    if sources:
        unknown = [s for s in sources if s not in list_sources()]
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown sources: {', '.join(unknown)}")

    task = run_ingestion_cycle.delay(sources)
    return {"task_id": task.id, "sources": sources or list_sources()}
