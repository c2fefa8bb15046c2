"""Cleanup engine: removes expired job records and same-source duplicates.

Two passes over the same snapshot of the table:

1. Expired: records whose application deadline (end_date) is in the past.
   Records without a deadline or with a future one are never touched.
2. Duplicates: groups sharing (title, duty_station, source_name,
   organization_id), whatever their deadlines. The most recently ingested
   record of each group survives (ties broken by higher id).

Both passes identify before either deletes, so a dry run reports exactly
what a live run would delete and deletes nothing. In live mode duplicates
are deleted first; an expired record that was also a stale copy is counted
in both totals but deleted once.

Usage:
    from unjobs.services.cleanup import CleanupEngine

    stats = CleanupEngine().run(dry_run=True)
"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import case, delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from unjobs.config import get_settings
from unjobs.errors import CleanupError, RunStateError
from unjobs.models.base import SyncSessionLocal, as_utc, session_scope, utcnow
from unjobs.models.job_record import JobRecord
from unjobs.schemas.cleanup import (
    CleanupStats,
    DuplicateBreakdown,
    ExpiredBreakdown,
    ExpiringSoonReport,
)
from unjobs.services.cache import Invalidator, NullInvalidator, invalidate_quietly
from unjobs.services.run_tracker import RunCounts, RunStatusTracker

logger = logging.getLogger(__name__)

CLEANUP_SOURCE_NAME = "database_cleanup"

DUPLICATE_GROUP = (
    JobRecord.title,
    JobRecord.duty_station,
    JobRecord.source_name,
    JobRecord.organization_id,
)


def _ranked_rows():
    """Every row, ranked newest-first within its duplicate group."""
    return (
        select(
            JobRecord.id,
            JobRecord.source_name,
            func.row_number().over(
                partition_by=DUPLICATE_GROUP,
                order_by=(JobRecord.ingested_at.desc(), JobRecord.id.desc()),
            ).label("rn"),
        )
        .subquery()
    )


class CleanupEngine:
    def __init__(
        self,
        session_factory=SyncSessionLocal,
        invalidator: Invalidator | None = None,
        clock: Callable[[], datetime] = utcnow,
        tracker: RunStatusTracker | None = None,
        cache_prefix: str | None = None,
    ):
        self.session_factory = session_factory
        self.invalidator = invalidator or NullInvalidator()
        self.clock = clock
        self.tracker = tracker
        self.cache_prefix = cache_prefix or get_settings().cache_prefix

    def run(self, dry_run: bool = False) -> CleanupStats:
        started = self.clock()
        stats = CleanupStats(dry_run=dry_run, started_at=started)
        mode = "DRY RUN" if dry_run else "LIVE"
        logger.info(f"Starting database cleanup ({mode})")

        run_id = None
        if not dry_run and self.tracker is not None:
            run_id = self._begin_run()

        steps = [self._find_expired, self._find_duplicates]
        if not dry_run:
            steps += [self._delete_duplicates, self._delete_expired]
        for step in steps:
            try:
                step(stats, started)
            except CleanupError as e:
                logger.error(str(e))
                stats.errors.append(str(e))
                stats.error_count += 1

        if stats.total_deleted > 0:
            cleared = invalidate_quietly(self.invalidator, self.cache_prefix)
            logger.info(f"Cleared {cleared or 0} cache keys after cleanup")

        stats.finished_at = self.clock()
        stats.duration_seconds = max(0, int((stats.finished_at - started).total_seconds()))

        if run_id is not None:
            self._finish_run(run_id, stats)

        logger.info(
            f"Cleanup finished ({mode}): expired {stats.total_expired} found / "
            f"{stats.deleted_expired} deleted, duplicates {stats.total_duplicates} found / "
            f"{stats.deleted_duplicates} deleted, errors {stats.error_count}, "
            f"{stats.duration_seconds}s"
        )
        return stats

    def _find_expired(self, stats: CleanupStats, now: datetime) -> None:
        try:
            with session_scope(self.session_factory) as db:
                rows = db.execute(
                    select(
                        JobRecord.source_name,
                        func.count(JobRecord.id).label("expired_count"),
                        func.min(JobRecord.end_date).label("oldest_expired"),
                        func.max(JobRecord.end_date).label("newest_expired"),
                    )
                    .where(JobRecord.end_date < now)
                    .group_by(JobRecord.source_name)
                    .order_by(func.count(JobRecord.id).desc())
                ).all()
        except SQLAlchemyError as e:
            raise CleanupError("expired", str(e)) from e

        stats.expired_by_source = {
            row.source_name: ExpiredBreakdown(
                expired_count=row.expired_count,
                oldest_expired=as_utc(row.oldest_expired),
                newest_expired=as_utc(row.newest_expired),
            )
            for row in rows
        }
        stats.total_expired = sum(row.expired_count for row in rows)

        for source, breakdown in stats.expired_by_source.items():
            logger.info(
                f"  {source}: {breakdown.expired_count} expired "
                f"(oldest {breakdown.oldest_expired}, newest {breakdown.newest_expired})"
            )

    def _find_duplicates(self, stats: CleanupStats, now: datetime) -> None:
        try:
            with session_scope(self.session_factory) as db:
                ranked = _ranked_rows()
                rows = db.execute(
                    select(
                        ranked.c.source_name,
                        func.sum(case((ranked.c.rn == 2, 1), else_=0)).label("duplicate_groups"),
                        func.count().label("duplicate_count"),
                    )
                    .where(ranked.c.rn > 1)
                    .group_by(ranked.c.source_name)
                    .order_by(func.count().desc())
                ).all()
        except SQLAlchemyError as e:
            raise CleanupError("duplicates", str(e)) from e

        stats.duplicates_by_source = {
            row.source_name: DuplicateBreakdown(
                duplicate_groups=row.duplicate_groups or 0,
                duplicate_count=row.duplicate_count,
            )
            for row in rows
        }
        stats.total_duplicates = sum(row.duplicate_count for row in rows)

        for source, breakdown in stats.duplicates_by_source.items():
            logger.info(
                f"  {source}: {breakdown.duplicate_count} duplicates "
                f"in {breakdown.duplicate_groups} groups"
            )

    def _delete_duplicates(self, stats: CleanupStats, now: datetime) -> None:
        if not stats.total_duplicates:
            return
        try:
            with session_scope(self.session_factory) as db:
                ranked = _ranked_rows()
                result = db.execute(
                    delete(JobRecord)
                    .where(JobRecord.id.in_(select(ranked.c.id).where(ranked.c.rn > 1)))
                    .execution_options(synchronize_session=False)
                )
                stats.deleted_duplicates = result.rowcount
        except SQLAlchemyError as e:
            raise CleanupError("duplicates", str(e)) from e

    def _delete_expired(self, stats: CleanupStats, now: datetime) -> None:
        if not stats.total_expired:
            return
        try:
            with session_scope(self.session_factory) as db:
                result = db.execute(
                    delete(JobRecord)
                    .where(JobRecord.end_date < now)
                    .execution_options(synchronize_session=False)
                )
                stats.deleted_expired = result.rowcount
        except SQLAlchemyError as e:
            raise CleanupError("expired", str(e)) from e

    def _begin_run(self) -> int | None:
        try:
            return self.tracker.begin(CLEANUP_SOURCE_NAME)
        except SQLAlchemyError as e:
            logger.error(f"Could not record cleanup run start: {e}")
            return None

    def _finish_run(self, run_id: int, stats: CleanupStats) -> None:
        counts = RunCounts(
            processed=stats.total_found,
            succeeded=stats.total_deleted,
            errors=stats.error_count,
            error_message="; ".join(stats.errors) or None,
        )
        try:
            self.tracker.finish(run_id, "failed" if stats.error_count else "success", counts)
        except (SQLAlchemyError, RunStateError) as e:
            logger.error(f"Could not record cleanup run {run_id}: {e}")

    def expiring_soon(self, days_ahead: int = 7) -> ExpiringSoonReport:
        """Records whose deadline falls within the next days_ahead days, by source."""
        now = self.clock()
        horizon = now + timedelta(days=days_ahead)

        with session_scope(self.session_factory) as db:
            rows = db.execute(
                select(
                    JobRecord.source_name,
                    func.count(JobRecord.id).label("expired_count"),
                    func.min(JobRecord.end_date).label("oldest_expired"),
                    func.max(JobRecord.end_date).label("newest_expired"),
                )
                .where(JobRecord.end_date >= now, JobRecord.end_date <= horizon)
                .group_by(JobRecord.source_name)
                .order_by(func.count(JobRecord.id).desc())
            ).all()

        by_source = {
            row.source_name: ExpiredBreakdown(
                expired_count=row.expired_count,
                oldest_expired=as_utc(row.oldest_expired),
                newest_expired=as_utc(row.newest_expired),
            )
            for row in rows
        }
        return ExpiringSoonReport(
            days_ahead=days_ahead,
            total_expiring=sum(b.expired_count for b in by_source.values()),
            by_source=by_source,
        )
