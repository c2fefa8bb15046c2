from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

from unjobs.errors import RunStateError
from unjobs.models.base import as_utc, session_scope
from unjobs.models.job_record import JobRecord
from unjobs.models.run_status import RunStatus
from unjobs.services.run_tracker import RunCounts, RunStatusTracker


def add_jobs(session_factory, source_name: str, count: int, now) -> None:
    with session_scope(session_factory) as db:
        for i in range(count):
            db.add(JobRecord(
                source_job_id=f"{source_name}-{i}",
                source_name=source_name,
                organization_id=128,
                title=f"Job {i}",
                ingested_at=now,
            ))


def completed_run(tracker, clock, source_name, outcome="success", minutes=5, counts=None) -> int:
    run_id = tracker.begin(source_name)
    clock.advance(minutes=minutes)
    tracker.finish(run_id, outcome, counts or RunCounts(10, 9, 1))
    return run_id


def test_begin_then_finish_records_counts_duration_and_live_count(session_factory, organizations, clock) -> None:
    tracker = RunStatusTracker(session_factory, clock=clock)
    add_jobs(session_factory, "wfp", 4, clock.now)

    run_id = tracker.begin("wfp")
    clock.advance(seconds=95)
    finished = tracker.finish(run_id, "success", RunCounts(processed=5, succeeded=4, errors=1))

    assert finished.state == "success"
    assert finished.processed_count == 5
    assert finished.success_count == 4
    assert finished.error_count == 1
    assert finished.duration_seconds == 95
    assert finished.live_count == 4
    assert as_utc(finished.end_time) == clock.now


def test_finish_is_allowed_exactly_once(session_factory, clock) -> None:
    tracker = RunStatusTracker(session_factory, clock=clock)
    run_id = tracker.begin("unhcr")
    tracker.finish(run_id, "failed", RunCounts(3, 1, 1, error_message="timeout"))

    with pytest.raises(RunStateError):
        tracker.finish(run_id, "success", RunCounts(10, 10, 0))

    with session_scope(session_factory) as db:
        run = db.get(RunStatus, run_id)
    assert run.state == "failed"
    assert run.processed_count == 3
    assert run.error_message == "timeout"


def test_finish_unknown_run_or_outcome(session_factory, clock) -> None:
    tracker = RunStatusTracker(session_factory, clock=clock)
    with pytest.raises(RunStateError):
        tracker.finish(999, "success")

    run_id = tracker.begin("wfp")
    with pytest.raises(ValueError):
        tracker.finish(run_id, "running")


def test_counts_are_clamped_to_the_run_invariant() -> None:
    assert RunCounts(5, 4, 3).clamped() == RunCounts(5, 4, 1)
    assert RunCounts(-1, 2, 2).clamped() == RunCounts(0, 0, 0)
    assert RunCounts(3, 7, 0).clamped() == RunCounts(3, 3, 0)


def test_storage_rejects_rows_breaking_the_count_invariant(session_factory, clock) -> None:
    with pytest.raises(IntegrityError):
        with session_scope(session_factory) as db:
            db.add(RunStatus(
                source_name="wfp", state="success", processed_count=1, success_count=1, error_count=1,
                start_time=clock.now, created_at=clock.now,
            ))


def test_latest_returns_newest_run_per_source(session_factory, clock) -> None:
    tracker = RunStatusTracker(session_factory, clock=clock)
    completed_run(tracker, clock, "wfp", "failed")
    newest_wfp = completed_run(tracker, clock, "wfp", "success")
    unhcr = completed_run(tracker, clock, "unhcr", "failed")

    latest = tracker.latest()

    assert [(r.source_name, r.id) for r in latest] == [("unhcr", unhcr), ("wfp", newest_wfp)]


def test_history_pages_newest_first(session_factory, clock) -> None:
    tracker = RunStatusTracker(session_factory, clock=clock)
    ids = [completed_run(tracker, clock, "inspira") for _ in range(5)]
    completed_run(tracker, clock, "wfp")

    first = tracker.history("inspira", page=1, size=2)
    last = tracker.history("inspira", page=3, size=2)

    assert [r.id for r in first.items] == [ids[4], ids[3]]
    assert first.total_records == 5
    assert first.total_pages == 3
    assert first.has_next and not first.has_prev
    assert [r.id for r in last.items] == [ids[0]]
    assert last.has_prev and not last.has_next


@pytest.mark.parametrize("page,size", [(0, 20), (1001, 20), (1, 0), (1, 101)])
def test_history_rejects_out_of_range_paging(session_factory, clock, page, size) -> None:
    with pytest.raises(ValueError):
        RunStatusTracker(session_factory, clock=clock).history("wfp", page=page, size=size)


def test_statistics_over_window(session_factory, clock) -> None:
    tracker = RunStatusTracker(session_factory, clock=clock)
    completed_run(tracker, clock, "wfp", "success", minutes=10)
    clock.advance(days=10)  # outside a 7-day window from here on
    completed_run(tracker, clock, "wfp", "failed", minutes=2)
    completed_run(tracker, clock, "wfp", "success", minutes=4)
    completed_run(tracker, clock, "unhcr", "failed", minutes=6)

    stats = tracker.statistics(days=7)

    assert stats.total_sources == 2
    assert stats.successful_sources == 1
    assert stats.failed_sources == 1
    assert stats.avg_duration == 300.0
    by_source = {s.source_name: s for s in stats.sources}
    assert by_source["wfp"].total_runs == 2
    assert by_source["wfp"].successful_runs == 1
    assert by_source["wfp"].success_rate == 50.0
    assert by_source["unhcr"].success_rate == 0.0
    assert len(stats.daily) == 1
    assert stats.daily[0].run_date == date(2026, 3, 11)
    assert stats.daily[0].sources_run == 2
    assert stats.daily[0].total_runs == 3


@pytest.mark.parametrize("days", [0, 366])
def test_statistics_rejects_out_of_range_window(session_factory, clock, days) -> None:
    with pytest.raises(ValueError):
        RunStatusTracker(session_factory, clock=clock).statistics(days)


def test_health_is_degraded_without_runs(session_factory, clock) -> None:
    health = RunStatusTracker(session_factory, clock=clock).health()
    assert health.status == "degraded"
    assert health.total_sources == 0


def test_health_flags_stale_and_stuck_sources(session_factory, clock) -> None:
    tracker = RunStatusTracker(session_factory, clock=clock, stale_minutes=60)
    completed_run(tracker, clock, "wfp")
    assert tracker.health().status == "healthy"

    tracker.begin("unhcr")
    clock.advance(hours=2)
    health = tracker.health()
    assert health.status == "degraded"
    assert health.stuck_sources == ["unhcr"]
    assert health.currently_running == 1

    clock.advance(days=2)
    health = tracker.health()
    assert health.recent_sources == 0


def test_expire_stuck_runs_fails_only_stale_running_rows(session_factory, clock) -> None:
    tracker = RunStatusTracker(session_factory, clock=clock, stale_minutes=60)
    stale = tracker.begin("unhcr")
    clock.advance(minutes=90)
    fresh = tracker.begin("wfp")

    assert tracker.expire_stuck_runs() == 1

    with session_scope(session_factory) as db:
        assert db.get(RunStatus, stale).state == "failed"
        assert db.get(RunStatus, stale).duration_seconds == 90 * 60
        assert db.get(RunStatus, fresh).state == "running"
    with pytest.raises(RunStateError):
        tracker.finish(stale, "success")


def test_prune_deletes_old_terminal_rows(session_factory, clock) -> None:
    tracker = RunStatusTracker(session_factory, clock=clock)
    old = completed_run(tracker, clock, "wfp")
    clock.advance(days=100)
    recent = completed_run(tracker, clock, "wfp")

    assert tracker.prune(retention_days=90) == 1

    assert [r.id for r in tracker.history("wfp").items] == [recent]
    assert old != recent
