"""FastAPI application: ingestion status and administration API."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import redis
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from starlette.middleware.gzip import GZipMiddleware

from unjobs.config import get_settings
from unjobs.models.base import Base, engine, get_session_factory, session_scope
from unjobs.models import job_record, organization, run_status  # noqa: F401
from unjobs.api.v1 import router as api_v1_router
from unjobs.api.v1.etl import get_tracker
from unjobs.services.run_tracker import RunStatusTracker

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s...", settings.app_name)
    Base.metadata.create_all(engine)
    logger.info("Database tables verified")
    yield
    logger.info("Shutting down...")
    engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Ingestion pipeline for United Nations system job vacancies",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)


@app.get("/health")
def health_check():
    return {"status": "healthy", "app": settings.app_name}


@app.get("/health/detailed")
def detailed_health_check(
    session_factory=Depends(get_session_factory),
    tracker: RunStatusTracker = Depends(get_tracker),
):
    """Liveness of the store, the broker and the workers, plus ingestion freshness."""
    checks = {}

    try:
        with session_scope(session_factory) as db:
            db.execute(text("SELECT 1")).scalar()
        checks["database"] = {"ok": True}
    except Exception as e:
        checks["database"] = {"ok": False, "message": str(e)}

    try:
        redis.from_url(settings.redis_url, socket_timeout=5).ping()
        checks["redis"] = {"ok": True}
    except Exception as e:
        checks["redis"] = {"ok": False, "message": str(e)}

    try:
        from unjobs.tasks.celery_app import celery_app
        workers = celery_app.control.inspect(timeout=5).active() or {}
        checks["celery_workers"] = {"ok": bool(workers), "workers": list(workers)}
    except Exception as e:
        checks["celery_workers"] = {"ok": False, "message": str(e)}

    if checks["database"]["ok"]:
        snapshot = tracker.health()
        checks["ingestion"] = {
            "ok": snapshot.status == "healthy",
            "recent_sources": snapshot.recent_sources,
            "stuck_sources": snapshot.stuck_sources,
            "last_activity": snapshot.last_activity.isoformat() if snapshot.last_activity else None,
        }

    all_ok = all(check.get("ok", False) for check in checks.values())
    return {
        "status": "healthy" if all_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
