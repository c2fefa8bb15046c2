"""Run status tracker: append-only lifecycle log of per-source ingestion runs.

A run is created in the running state and finalized exactly once, as success
or failed. Finalization is a conditional UPDATE guarded on state='running',
so a second finish (or a finish racing expire_stuck_runs) is rejected by the
database rather than silently overwriting a terminal row.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.orm import Session, aliased

from unjobs.config import get_settings
from unjobs.errors import RunStateError
from unjobs.models.base import SyncSessionLocal, as_utc, session_scope, utcnow
from unjobs.models.job_record import JobRecord
from unjobs.models.run_status import RunStatus
from unjobs.schemas.run_status import (
    DailyRunStats,
    HealthSnapshot,
    RunHistoryPage,
    RunStatistics,
    RunStatusRead,
    SourcePerformance,
)

logger = logging.getLogger(__name__)

TERMINAL_STATES = ("success", "failed")
RECENT_WINDOW = timedelta(hours=24)
MAX_HISTORY_PAGE = 1000
MAX_HISTORY_SIZE = 100
MAX_STATISTICS_DAYS = 365


@dataclass
class RunCounts:
    processed: int = 0
    succeeded: int = 0
    errors: int = 0
    error_message: str | None = None

    def clamped(self) -> "RunCounts":
        """Counts that satisfy success + error <= processed, all non-negative."""
        processed = max(0, self.processed)
        succeeded = min(max(0, self.succeeded), processed)
        errors = min(max(0, self.errors), processed - succeeded)
        return RunCounts(processed, succeeded, errors, self.error_message)


def _duration(start: datetime, end: datetime) -> int:
    return max(0, int((as_utc(end) - as_utc(start)).total_seconds()))


def _avg(value) -> float:
    return round(float(value), 2) if value is not None else 0.0


class RunStatusTracker:
    def __init__(
        self,
        session_factory=SyncSessionLocal,
        clock: Callable[[], datetime] = utcnow,
        stale_minutes: int | None = None,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.stale_minutes = stale_minutes if stale_minutes is not None else get_settings().stale_run_minutes

    # --- lifecycle ---

    def begin(self, source_name: str) -> int:
        now = self.clock()
        with session_scope(self.session_factory) as db:
            run = RunStatus(
                source_name=source_name,
                state="running",
                start_time=now,
                created_at=now,
            )
            db.add(run)
            db.flush()
            run_id = run.id

        logger.info(f"Run {run_id} started for {source_name}")
        return run_id

    def finish(self, run_id: int, outcome: str, counts: RunCounts | None = None) -> RunStatusRead:
        """Finalize a running row as success or failed.

        Raises RunStateError if the run does not exist or is already terminal.
        """
        if outcome not in TERMINAL_STATES:
            raise ValueError(f"Invalid run outcome: {outcome}")
        counts = (counts or RunCounts()).clamped()

        with session_scope(self.session_factory) as db:
            run = db.get(RunStatus, run_id)
            if run is None:
                raise RunStateError(f"Run {run_id} not found")

            now = self.clock()
            end_time = max(as_utc(now), as_utc(run.start_time))
            live_count = self._live_count(db, run.source_name)

            result = db.execute(
                update(RunStatus)
                .where(RunStatus.id == run_id, RunStatus.state == "running")
                .values(
                    state=outcome,
                    processed_count=counts.processed,
                    success_count=counts.succeeded,
                    error_count=counts.errors,
                    error_message=counts.error_message[:2000] if counts.error_message else None,
                    end_time=end_time,
                    duration_seconds=_duration(run.start_time, end_time),
                    live_count=live_count,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise RunStateError(f"Run {run_id} is already {run.state}")

            db.expire(run)
            finished = RunStatusRead.model_validate(db.get(RunStatus, run_id))

        logger.info(
            f"Run {run_id} for {finished.source_name} finished {outcome}: "
            f"processed={counts.processed} success={counts.succeeded} errors={counts.errors} "
            f"live={finished.live_count} duration={finished.duration_seconds}s"
        )
        return finished

    @staticmethod
    def _live_count(db: Session, source_name: str) -> int:
        return db.execute(
            select(func.count(JobRecord.id)).where(JobRecord.source_name == source_name)
        ).scalar_one()

    # --- queries ---

    @staticmethod
    def _latest_query(since: datetime | None = None):
        ranked_query = select(
            RunStatus,
            func.row_number().over(
                partition_by=RunStatus.source_name,
                order_by=(RunStatus.created_at.desc(), RunStatus.id.desc()),
            ).label("rn"),
        )
        if since is not None:
            ranked_query = ranked_query.where(RunStatus.created_at >= since)
        ranked = ranked_query.subquery()
        latest_run = aliased(RunStatus, ranked)
        return select(latest_run).where(ranked.c.rn == 1).order_by(latest_run.source_name)

    def latest(self) -> list[RunStatusRead]:
        """Most recent run per source."""
        with session_scope(self.session_factory) as db:
            runs = db.execute(self._latest_query()).scalars().all()
            return [RunStatusRead.model_validate(r) for r in runs]

    def history(self, source_name: str, page: int = 1, size: int = 20) -> RunHistoryPage:
        if not 1 <= page <= MAX_HISTORY_PAGE:
            raise ValueError(f"page must be between 1 and {MAX_HISTORY_PAGE}")
        if not 1 <= size <= MAX_HISTORY_SIZE:
            raise ValueError(f"size must be between 1 and {MAX_HISTORY_SIZE}")

        with session_scope(self.session_factory) as db:
            total = db.execute(
                select(func.count(RunStatus.id)).where(RunStatus.source_name == source_name)
            ).scalar_one()
            runs = db.execute(
                select(RunStatus)
                .where(RunStatus.source_name == source_name)
                .order_by(RunStatus.created_at.desc(), RunStatus.id.desc())
                .offset((page - 1) * size)
                .limit(size)
            ).scalars().all()
            items = [RunStatusRead.model_validate(r) for r in runs]

        total_pages = math.ceil(total / size)
        return RunHistoryPage(
            source_name=source_name,
            items=items,
            page=page,
            size=size,
            total_records=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )

    def statistics(self, days: int = 7) -> RunStatistics:
        if not 1 <= days <= MAX_STATISTICS_DAYS:
            raise ValueError(f"days must be between 1 and {MAX_STATISTICS_DAYS}")
        since = self.clock() - timedelta(days=days)
        is_success = case((RunStatus.state == "success", 1), else_=0)

        with session_scope(self.session_factory) as db:
            latest = db.execute(self._latest_query(since)).scalars().all()

            per_source = db.execute(
                select(
                    RunStatus.source_name,
                    func.count(RunStatus.id).label("total_runs"),
                    func.sum(is_success).label("successful_runs"),
                    func.avg(RunStatus.live_count).label("avg_live_count"),
                    func.avg(RunStatus.duration_seconds).label("avg_duration"),
                    func.max(RunStatus.created_at).label("last_run"),
                )
                .where(RunStatus.created_at >= since)
                .group_by(RunStatus.source_name)
                .order_by(RunStatus.source_name)
            ).all()

            run_date = func.date(RunStatus.created_at)
            daily = db.execute(
                select(
                    run_date.label("run_date"),
                    func.count(func.distinct(RunStatus.source_name)).label("sources_run"),
                    func.count(RunStatus.id).label("total_runs"),
                    func.sum(is_success).label("successful_runs"),
                    func.avg(RunStatus.live_count).label("avg_live_count"),
                    func.avg(RunStatus.duration_seconds).label("avg_duration"),
                )
                .where(RunStatus.created_at >= since)
                .group_by(run_date)
                .order_by(run_date.desc())
            ).all()

            durations = [r.duration_seconds for r in latest if r.duration_seconds is not None]
            return RunStatistics(
                days=days,
                total_sources=len(latest),
                successful_sources=sum(1 for r in latest if r.state == "success"),
                failed_sources=sum(1 for r in latest if r.state == "failed"),
                total_live_records=sum(r.live_count or 0 for r in latest),
                avg_duration=_avg(sum(durations) / len(durations)) if durations else 0.0,
                last_run_time=max((as_utc(r.created_at) for r in latest), default=None),
                sources=[
                    SourcePerformance(
                        source_name=row.source_name,
                        total_runs=row.total_runs,
                        successful_runs=row.successful_runs or 0,
                        success_rate=round((row.successful_runs or 0) * 100.0 / row.total_runs, 2),
                        avg_live_count=_avg(row.avg_live_count),
                        avg_duration=_avg(row.avg_duration),
                        last_run=as_utc(row.last_run),
                    )
                    for row in per_source
                ],
                daily=[
                    DailyRunStats(
                        run_date=row.run_date,
                        sources_run=row.sources_run,
                        total_runs=row.total_runs,
                        successful_runs=row.successful_runs or 0,
                        avg_live_count=_avg(row.avg_live_count),
                        avg_duration=_avg(row.avg_duration),
                    )
                    for row in daily
                ],
            )

    def health(self) -> HealthSnapshot:
        now = self.clock()
        stale_cutoff = now - timedelta(minutes=self.stale_minutes)

        with session_scope(self.session_factory) as db:
            latest = db.execute(self._latest_query()).scalars().all()

        recent = [r for r in latest if as_utc(r.created_at) >= now - RECENT_WINDOW]
        running = [r for r in latest if r.state == "running"]
        stuck = [r.source_name for r in running if as_utc(r.start_time) < stale_cutoff]
        durations = [r.duration_seconds for r in latest if r.duration_seconds is not None]

        healthy = bool(latest) and bool(recent) and not stuck
        if not healthy:
            logger.warning(
                f"Ingestion degraded: sources={len(latest)} recent={len(recent)} stuck={stuck}"
            )

        return HealthSnapshot(
            status="healthy" if healthy else "degraded",
            total_sources=len(latest),
            recent_sources=len(recent),
            currently_running=len(running),
            stuck_sources=stuck,
            successful_sources=sum(1 for r in latest if r.state == "success"),
            failed_sources=sum(1 for r in latest if r.state == "failed"),
            total_live_records=sum(r.live_count or 0 for r in latest),
            avg_duration=_avg(sum(durations) / len(durations)) if durations else 0.0,
            last_activity=max((as_utc(r.created_at) for r in latest), default=None),
            checked_at=now,
        )

    # --- maintenance ---

    def expire_stuck_runs(self) -> int:
        """Fail runs left in running longer than the staleness threshold."""
        now = self.clock()
        cutoff = now - timedelta(minutes=self.stale_minutes)

        with session_scope(self.session_factory) as db:
            stuck = db.execute(
                select(RunStatus).where(RunStatus.state == "running", RunStatus.start_time < cutoff)
            ).scalars().all()
            for run in stuck:
                counts = RunCounts(run.processed_count, run.success_count, run.error_count).clamped()
                run.state = "failed"
                run.end_time = now
                run.duration_seconds = _duration(run.start_time, now)
                run.processed_count = counts.processed
                run.success_count = counts.succeeded
                run.error_count = counts.errors
                run.error_message = f"Abandoned in running state for more than {self.stale_minutes} minutes"
                run.live_count = self._live_count(db, run.source_name)
                logger.warning(f"Expired stuck run {run.id} for {run.source_name}")

        return len(stuck)

    def prune(self, retention_days: int | None = None) -> int:
        """Delete terminal history rows older than the retention window."""
        days = retention_days if retention_days is not None else get_settings().run_history_retention_days
        cutoff = self.clock() - timedelta(days=days)

        with session_scope(self.session_factory) as db:
            result = db.execute(
                delete(RunStatus)
                .where(RunStatus.created_at < cutoff, RunStatus.state != "running")
                .execution_options(synchronize_session=False)
            )
            deleted = result.rowcount

        logger.info(f"Pruned {deleted} run status rows older than {days} days")
        return deleted
