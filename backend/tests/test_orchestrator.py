from datetime import timedelta

from sqlalchemy import select

from conftest import RecordingInvalidator, listing
from unjobs.models.base import session_scope
from unjobs.models.job_record import JobRecord
from unjobs.models.run_status import RunStatus
from unjobs.services.cleanup import CleanupEngine
from unjobs.services.orchestrator import Orchestrator
from unjobs.services.org_resolver import OrganizationResolver
from unjobs.services.run_tracker import RunStatusTracker
from unjobs.services.upsert import UpsertEngine


def make_orchestrator(session_factory, clock, connectors, **kwargs) -> Orchestrator:
    tracker = RunStatusTracker(session_factory, clock=clock)
    return Orchestrator(
        connectors=connectors,
        upsert=UpsertEngine(session_factory, clock=clock),
        resolver=OrganizationResolver(session_factory, default_id=128),
        tracker=tracker,
        clock=clock,
        **kwargs,
    )


def stored_jobs(session_factory) -> list[JobRecord]:
    with session_scope(session_factory) as db:
        return db.execute(select(JobRecord).order_by(JobRecord.id)).scalars().all()


def stored_runs(session_factory) -> dict[str, RunStatus]:
    with session_scope(session_factory) as db:
        return {r.source_name: r for r in db.execute(select(RunStatus)).scalars()}


def test_failing_source_does_not_stop_the_cycle(session_factory, organizations, clock, make_connector) -> None:
    a = make_connector("a", [[listing(1), listing(2)], [listing(3)]])
    b = make_connector("b", [[listing(10)], [listing(11), listing(12)], [listing(13)], [listing(14)]], fail_on_page=2)
    c = make_connector("c", [[listing(20)]])

    summary = make_orchestrator(session_factory, clock, [a, b, c]).run()

    assert summary.succeeded == ["a", "c"]
    assert [f.name for f in summary.failed] == ["b"]
    assert "connection reset" in summary.failed[0].error
    assert b.fetched == [0, 1, 2]

    runs = stored_runs(session_factory)
    assert runs["a"].state == "success"
    assert runs["a"].processed_count == 3
    assert runs["b"].state == "failed"
    assert runs["b"].processed_count == 3
    assert runs["b"].success_count == 3
    assert "connection reset" in runs["b"].error_message
    assert runs["c"].state == "success"

    # Listings from pages B fetched before failing are kept
    assert sorted(j.source_job_id for j in stored_jobs(session_factory) if j.source_name == "b") == ["10", "11", "12"]
    assert summary.total_processed == 7
    assert summary.total_inserted == 7


def test_every_connector_is_closed(session_factory, organizations, clock, make_connector) -> None:
    ok = make_connector("ok", [[listing(1)]])
    broken = make_connector("broken", [[listing(1)]], fail_on_page=0)

    make_orchestrator(session_factory, clock, [ok, broken]).run()

    assert ok.closed and broken.closed


def test_bad_listings_are_counted_and_skipped(session_factory, organizations, clock, make_connector) -> None:
    pages = [[
        listing(1),
        {"malformed": True},
        {"explode": True},
        listing(2, title=""),
        listing(3, title="x" * 501),
        listing(4),
    ]]

    summary = make_orchestrator(session_factory, clock, [make_connector("wfp", pages)]).run()

    (outcome,) = summary.outcomes
    assert outcome.state == "success"
    assert outcome.processed == 6
    assert outcome.succeeded == 2
    assert outcome.errors == 4
    assert [j.source_job_id for j in stored_jobs(session_factory)] == ["1", "4"]


def test_second_cycle_updates_instead_of_inserting(session_factory, organizations, clock, make_connector) -> None:
    pages = [[listing(1), listing(2)]]

    first = make_orchestrator(session_factory, clock, [make_connector("wfp", pages)]).run()
    clock.advance(hours=12)
    second = make_orchestrator(session_factory, clock, [make_connector("wfp", pages)]).run()

    assert (first.total_inserted, first.total_updated) == (2, 0)
    assert (second.total_inserted, second.total_updated) == (0, 2)
    assert len(stored_jobs(session_factory)) == 2


def test_source_name_comes_from_the_connector(session_factory, organizations, clock, make_connector) -> None:
    pages = [[listing(1, source_name="spoofed")]]

    make_orchestrator(session_factory, clock, [make_connector("unhcr", pages)]).run()

    assert [j.source_name for j in stored_jobs(session_factory)] == ["unhcr"]


def test_colliding_listing_from_a_second_connector_updates(session_factory, organizations, clock, make_connector) -> None:
    # Two importers writing under the same source name, both resolved to UNHCR
    first = make_connector("unhcr", [[listing("42", title="Protection Officer")]],
                           organization_hint="UNHCR", resolve_from_department=False)
    second = make_connector("unhcr", [[listing("42", title="Senior Protection Officer")]],
                            organization_hint="UNHCR", resolve_from_department=False)

    summary = make_orchestrator(session_factory, clock, [first, second]).run()

    assert [(o.inserted, o.updated) for o in summary.outcomes] == [(1, 0), (0, 1)]
    (job,) = stored_jobs(session_factory)
    assert (job.source_job_id, job.source_name, job.organization_id) == ("42", "unhcr", 7)
    assert job.title == "Senior Protection Officer"
    assert job.revision == 2


def test_organization_resolution(session_factory, organizations, clock, make_connector) -> None:
    by_department = make_connector("inspira", [[
        listing(1, department_text="Department of Peace Operations"),
        listing(2, department_text=""),
        listing(3, department_text="Unknown Office"),
        listing(4, organization_id=7),
    ]], organization_hint="WFP")
    fixed = make_connector("wfp", [[listing(5, department_text="Supply Chain Division")]],
                           organization_hint="WFP", resolve_from_department=False)

    make_orchestrator(session_factory, clock, [by_department, fixed]).run()

    orgs = {j.source_job_id: j.organization_id for j in stored_jobs(session_factory)}
    assert orgs == {"1": 42, "2": 3, "3": 128, "4": 7, "5": 3}


def test_page_cap_stops_endless_sources(session_factory, organizations, clock, make_connector) -> None:
    endless = make_connector("endless", [[listing(i)] for i in range(10)])

    summary = make_orchestrator(session_factory, clock, [endless], max_pages=3).run()

    assert endless.fetched == [0, 1, 2]
    assert summary.outcomes[0].state == "success"
    assert summary.outcomes[0].pages == 3


def test_cache_is_invalidated_once_per_cycle(session_factory, organizations, clock, make_connector) -> None:
    invalidator = RecordingInvalidator(removed=5)

    summary = make_orchestrator(
        session_factory, clock, [make_connector("wfp", [[listing(1)]])], invalidator=invalidator
    ).run()

    assert invalidator.calls == ["jobs:"]
    assert summary.cache_cleared == 5


def test_unreachable_cache_is_not_a_failure(session_factory, organizations, clock, make_connector) -> None:
    invalidator = RecordingInvalidator(error=ConnectionError("redis down"))

    summary = make_orchestrator(
        session_factory, clock, [make_connector("wfp", [[listing(1)]])], invalidator=invalidator
    ).run()

    assert summary.cache_cleared is None
    assert summary.succeeded == ["wfp"]


def test_cleanup_runs_after_ingestion(session_factory, organizations, clock, make_connector) -> None:
    pages = [[
        listing(1, title="Driver", end_date=clock.now - timedelta(days=1)),
        listing(2, end_date=clock.now + timedelta(days=1)),
    ]]
    cleanup = CleanupEngine(session_factory, clock=clock)

    summary = make_orchestrator(session_factory, clock, [make_connector("wfp", pages)], cleanup=cleanup).run()

    assert summary.cleanup is not None
    assert summary.cleanup.deleted_expired == 1
    assert [j.source_job_id for j in stored_jobs(session_factory)] == ["2"]


def test_cleanup_crash_is_recorded_not_raised(session_factory, organizations, clock, make_connector) -> None:
    class ExplodingCleanup:
        def run(self, dry_run=False):
            raise RuntimeError("cleanup exploded")

    summary = make_orchestrator(
        session_factory, clock, [make_connector("wfp", [[listing(1)]])], cleanup=ExplodingCleanup()
    ).run()

    assert summary.cleanup is None
    assert summary.cleanup_error == "cleanup exploded"
    assert summary.succeeded == ["wfp"]


def test_run_status_unavailable_fails_only_that_source(session_factory, organizations, clock, make_connector) -> None:
    from sqlalchemy.exc import OperationalError

    orchestrator = make_orchestrator(session_factory, clock, [])
    real_begin = orchestrator.tracker.begin

    def flaky_begin(source_name):
        if source_name == "down":
            raise OperationalError("INSERT", {}, Exception("database is locked"))
        return real_begin(source_name)

    orchestrator.tracker.begin = flaky_begin
    down = make_connector("down", [[listing(1)]])
    up = make_connector("up", [[listing(2)]])
    orchestrator.connectors = [down, up]

    summary = orchestrator.run()

    assert summary.succeeded == ["up"]
    assert summary.failed[0].name == "down"
    assert down.fetched == []
    assert down.closed
