from datetime import datetime, timezone

import pytest

from unjobs.services.scheduler import MAX_SLEEP_SECONDS, Scheduler


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def test_next_fire_picks_the_following_slot() -> None:
    scheduler = Scheduler(lambda: None, hours=[6, 18])

    assert scheduler.next_fire(utc(2026, 3, 1, 5, 59)) == utc(2026, 3, 1, 6)
    assert scheduler.next_fire(utc(2026, 3, 1, 6)) == utc(2026, 3, 1, 18)
    assert scheduler.next_fire(utc(2026, 3, 1, 12)) == utc(2026, 3, 1, 18)
    assert scheduler.next_fire(utc(2026, 3, 1, 18, 0, 1)) == utc(2026, 3, 2, 6)
    assert scheduler.next_fire(utc(2026, 12, 31, 23)) == utc(2027, 1, 1, 6)


def test_hours_default_to_settings() -> None:
    assert Scheduler(lambda: None).hours == [6, 18]


@pytest.mark.parametrize("hours", [[], [24], [-1, 6]])
def test_invalid_hours_are_rejected(hours) -> None:
    with pytest.raises(ValueError):
        Scheduler(lambda: None, hours=hours)


def test_run_forever_fires_at_each_slot(clock) -> None:
    fired_at = []
    sleeps = []

    def sleep(seconds):
        sleeps.append(seconds)
        clock.advance(seconds=seconds)

    scheduler = Scheduler(lambda: fired_at.append(clock.now), hours=[6, 18], clock=clock, sleep=sleep)

    assert scheduler.run_forever(max_cycles=2) == 2
    assert fired_at == [utc(2026, 3, 1, 18), utc(2026, 3, 2, 6)]
    assert max(sleeps) <= MAX_SLEEP_SECONDS


def test_missed_slots_fire_once(clock) -> None:
    calls = []
    scheduler = Scheduler(lambda: calls.append(clock.now), hours=[6, 18], clock=clock)

    assert scheduler.run_pending() is False
    clock.advance(days=2)  # sleeps through four slots
    assert scheduler.run_pending() is True
    assert scheduler.run_pending() is False
    assert len(calls) == 1


def test_failing_job_does_not_stop_the_schedule(clock, caplog) -> None:
    def job():
        raise RuntimeError("broker unreachable")

    scheduler = Scheduler(job, hours=[6, 18], clock=clock)
    scheduler.run_pending()
    clock.advance(hours=6)

    assert scheduler.run_pending() is True
    assert "broker unreachable" in caplog.text

    clock.advance(hours=12)
    assert scheduler.run_pending() is True


def test_celery_beat_uses_the_same_hours() -> None:
    from unjobs.tasks.celery_app import celery_app

    entry = celery_app.conf.beat_schedule["run-ingestion-cycle"]
    assert entry["task"] == "unjobs.tasks.ingest_tasks.run_ingestion_cycle"
    assert entry["schedule"].hour == {6, 18}
    assert entry["schedule"].minute == {0}
