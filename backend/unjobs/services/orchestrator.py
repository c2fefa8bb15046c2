"""Ingestion orchestrator: one cycle over every configured connector.

Connectors run sequentially. A failing listing never stops its source, and
a failing source never stops the cycle. After all sources the job listing
cache is invalidated and the cleanup engine runs.

Usage:
    from unjobs.services.orchestrator import Orchestrator

    summary = Orchestrator.from_settings().run()
"""

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from unjobs.config import get_settings
from unjobs.connectors.base import BaseConnector
from unjobs.errors import PersistenceError, RunStateError, ValidationError
from unjobs.models.base import SyncSessionLocal, utcnow
from unjobs.schemas.cleanup import CycleSummary, FailedSource, SourceOutcome
from unjobs.schemas.job_record import JobCandidate
from unjobs.services.cache import Invalidator, NullInvalidator, RedisInvalidator, invalidate_quietly
from unjobs.services.cleanup import CleanupEngine
from unjobs.services.org_resolver import OrganizationResolver
from unjobs.services.run_tracker import RunCounts, RunStatusTracker
from unjobs.services.upsert import INSERTED, UpsertEngine

logger = logging.getLogger(__name__)


class Orchestrator:
    def __init__(
        self,
        connectors: list[BaseConnector],
        upsert: UpsertEngine,
        resolver: OrganizationResolver,
        tracker: RunStatusTracker,
        cleanup: CleanupEngine | None = None,
        invalidator: Invalidator | None = None,
        cache_prefix: str | None = None,
        max_pages: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        settings = get_settings()
        self.connectors = connectors
        self.upsert = upsert
        self.resolver = resolver
        self.tracker = tracker
        self.cleanup = cleanup
        self.invalidator = invalidator or NullInvalidator()
        self.cache_prefix = cache_prefix or settings.cache_prefix
        self.max_pages = max_pages or settings.max_pages_per_source
        self.clock = clock

    @classmethod
    def from_settings(cls, names: list[str] | None = None, session_factory=SyncSessionLocal) -> "Orchestrator":
        """Wire a production orchestrator: registered connectors, Redis cache, shared session factory."""
        import unjobs.connectors  # noqa: F401
        from unjobs.connectors.registry import build_connectors

        settings = get_settings()
        invalidator = RedisInvalidator(settings.redis_url)
        tracker = RunStatusTracker(session_factory)
        return cls(
            connectors=build_connectors(names, settings=settings),
            upsert=UpsertEngine(session_factory),
            resolver=OrganizationResolver(session_factory),
            tracker=tracker,
            cleanup=CleanupEngine(session_factory, invalidator=invalidator, tracker=tracker),
            invalidator=invalidator,
        )

    def run(self) -> CycleSummary:
        summary = CycleSummary(started_at=self.clock())
        logger.info(f"Ingestion cycle started for {len(self.connectors)} sources")

        for connector in self.connectors:
            outcome = self.run_source(connector)
            summary.outcomes.append(outcome)
            if outcome.state == "success":
                summary.succeeded.append(outcome.name)
            else:
                summary.failed.append(FailedSource(name=outcome.name, error=outcome.error_message or "unknown error"))
            summary.total_processed += outcome.processed
            summary.total_succeeded += outcome.succeeded
            summary.total_errors += outcome.errors
            summary.total_inserted += outcome.inserted
            summary.total_updated += outcome.updated

        summary.cache_cleared = invalidate_quietly(self.invalidator, self.cache_prefix)

        if self.cleanup is not None:
            try:
                summary.cleanup = self.cleanup.run(dry_run=False)
            except Exception as e:
                logger.error(f"Post-ingestion cleanup failed: {e}")
                summary.cleanup_error = str(e)

        summary.finished_at = self.clock()
        summary.duration_seconds = max(0, int((summary.finished_at - summary.started_at).total_seconds()))

        logger.info(
            f"Ingestion cycle finished in {summary.duration_seconds}s: "
            f"{len(summary.succeeded)} succeeded, {len(summary.failed)} failed, "
            f"{summary.total_inserted} inserted, {summary.total_updated} updated, "
            f"{summary.total_errors} errors"
        )
        for failed in summary.failed:
            logger.error(f"  {failed.name}: {failed.error}")
        return summary

    def run_source(self, connector: BaseConnector) -> SourceOutcome:
        """Ingest one source. Never raises; the outcome records what happened."""
        outcome = SourceOutcome(name=connector.name, state="running")

        try:
            outcome.run_id = self.tracker.begin(connector.name)
        except SQLAlchemyError as e:
            logger.error(f"[{connector.name}] Could not record run start, skipping source: {e}")
            connector.close()
            outcome.state = "failed"
            outcome.error_message = f"run status unavailable: {e}"
            return outcome

        try:
            cursor = None
            while True:
                if outcome.pages >= self.max_pages:
                    logger.warning(f"[{connector.name}] Stopped at page cap ({self.max_pages})")
                    break
                page = connector.fetch_page(cursor)
                outcome.pages += 1
                for raw in page.items:
                    self._process_listing(connector, raw, outcome)
                if not page.has_more:
                    break
                cursor = page.cursor
            outcome.state = "success"
        except Exception as e:
            logger.error(f"[{connector.name}] Source failed after {outcome.pages} pages: {e}")
            outcome.state = "failed"
            outcome.error_message = str(e)
        finally:
            connector.close()

        counts = RunCounts(outcome.processed, outcome.succeeded, outcome.errors, outcome.error_message)
        try:
            self.tracker.finish(outcome.run_id, outcome.state, counts)
        except (SQLAlchemyError, RunStateError) as e:
            logger.error(f"[{connector.name}] Could not record run {outcome.run_id} outcome: {e}")
            outcome.state = "failed"
            outcome.error_message = f"run status unavailable: {e}"

        logger.info(
            f"[{connector.name}] {outcome.state}: processed={outcome.processed} "
            f"inserted={outcome.inserted} updated={outcome.updated} errors={outcome.errors}"
        )
        return outcome

    def _process_listing(self, connector: BaseConnector, raw: dict, outcome: SourceOutcome) -> None:
        outcome.processed += 1
        try:
            candidate = connector.normalize(raw)
            if candidate is None:
                raise ValidationError(connector.name, None, ["listing could not be normalized"])
            result = self.upsert.merge(self._prepare(connector, candidate))
        except (ValidationError, PersistenceError) as e:
            outcome.errors += 1
            logger.warning(f"[{connector.name}] Dropped listing: {e}")
            return
        except Exception as e:
            outcome.errors += 1
            logger.warning(f"[{connector.name}] Unexpected error on listing: {e}")
            return

        outcome.succeeded += 1
        if result == INSERTED:
            outcome.inserted += 1
        else:
            outcome.updated += 1

    def _prepare(self, connector: BaseConnector, candidate: JobCandidate) -> JobCandidate:
        update = {"source_name": connector.name}
        if candidate.organization_id is None:
            key = candidate.department_text if connector.resolve_from_department else ""
            update["organization_id"] = self.resolver.resolve(key or connector.organization_hint)
        return candidate.model_copy(update=update)
