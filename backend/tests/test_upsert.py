from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from unjobs.errors import PersistenceError, ValidationError
from unjobs.models.base import as_utc, session_scope
from unjobs.models.job_record import JobRecord
from unjobs.schemas.job_record import JobCandidate
from unjobs.services.upsert import INSERTED, UPDATED, UpsertEngine, validate_candidate


def candidate(**overrides) -> JobCandidate:
    data = {
        "source_job_id": "42",
        "source_name": "inspira",
        "organization_id": 7,
        "title": "Analyst",
        "duty_station": "Geneva",
        "end_date": datetime(2026, 4, 1, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return JobCandidate(**data)


def rows(session_factory) -> list[JobRecord]:
    with session_scope(session_factory) as db:
        return db.execute(select(JobRecord).order_by(JobRecord.id)).scalars().all()


def test_first_merge_inserts_and_second_updates(session_factory, organizations, clock) -> None:
    engine = UpsertEngine(session_factory, clock=clock)

    assert engine.merge(candidate()) == INSERTED
    clock.advance(hours=1)
    assert engine.merge(candidate()) == UPDATED

    stored = rows(session_factory)
    assert len(stored) == 1
    assert stored[0].title == "Analyst"
    assert stored[0].revision == 2
    assert as_utc(stored[0].ingested_at) == clock.now


def test_identical_merges_leave_identical_content(session_factory, organizations, clock) -> None:
    engine = UpsertEngine(session_factory, clock=clock)
    job = candidate(
        description="Supports the mission", category_code="POL", level="P-3", job_family_code="PA",
        job_code_title="Political Affairs Officer", recruitment_type="Fixed Term",
        start_date=datetime(2026, 2, 1, tzinfo=timezone.utc), department_text="DPO",
        apply_link="https://careers.un.org/42", extra_data={"network": "POLNET"},
    )
    bookkeeping = {"revision", "created_at", "updated_at"}

    def content() -> dict:
        (stored,) = rows(session_factory)
        return {c.name: getattr(stored, c.name) for c in JobRecord.__table__.columns if c.name not in bookkeeping}

    assert engine.merge(job) == INSERTED
    after_insert = content()
    assert engine.merge(job) == UPDATED

    assert content() == after_insert


def test_update_overwrites_mutable_fields(session_factory, organizations, clock) -> None:
    engine = UpsertEngine(session_factory, clock=clock)
    engine.merge(candidate(description="old", extra_data={"network": "POLNET"}))

    engine.merge(candidate(title="Senior Analyst", description="new", duty_station="Nairobi", extra_data={}))

    (stored,) = rows(session_factory)
    assert stored.title == "Senior Analyst"
    assert stored.description == "new"
    assert stored.duty_station == "Nairobi"
    assert stored.extra_data == {}


def test_numeric_job_id_matches_string_job_id(session_factory, organizations, clock) -> None:
    engine = UpsertEngine(session_factory, clock=clock)

    assert engine.merge(candidate(source_job_id=42)) == INSERTED
    assert engine.merge(candidate(source_job_id=" 42 ")) == UPDATED
    assert len(rows(session_factory)) == 1


def test_same_job_id_in_other_source_or_org_is_a_new_record(session_factory, organizations, clock) -> None:
    engine = UpsertEngine(session_factory, clock=clock)

    assert engine.merge(candidate()) == INSERTED
    assert engine.merge(candidate(source_name="unhcr")) == INSERTED
    assert engine.merge(candidate(organization_id=3)) == INSERTED

    with session_scope(session_factory) as db:
        count = db.execute(select(func.count(JobRecord.id))).scalar_one()
    assert count == 3


def test_repeated_merges_keep_natural_key_unique(session_factory, organizations, clock) -> None:
    engine = UpsertEngine(session_factory, clock=clock)
    for job_id in ["1", "2", "1", "3", "2", "1"]:
        engine.merge(candidate(source_job_id=job_id))

    with session_scope(session_factory) as db:
        duplicates = db.execute(
            select(JobRecord.source_job_id)
            .group_by(JobRecord.source_job_id, JobRecord.source_name, JobRecord.organization_id)
            .having(func.count() > 1)
        ).all()
    assert duplicates == []
    assert sorted(r.source_job_id for r in rows(session_factory)) == ["1", "2", "3"]


@pytest.mark.parametrize("field", ["source_job_id", "title", "source_name", "organization_id"])
def test_missing_required_field_is_rejected_before_write(session_factory, organizations, clock, field) -> None:
    engine = UpsertEngine(session_factory, clock=clock)

    with pytest.raises(ValidationError) as exc:
        engine.merge(candidate(**{field: None}))

    assert f"missing {field}" in exc.value.errors
    assert rows(session_factory) == []


def test_blank_strings_count_as_missing() -> None:
    errors = validate_candidate(candidate(source_job_id="   ", title=""))
    assert "missing source_job_id" in errors
    assert "missing title" in errors


def test_title_longer_than_500_characters_is_rejected() -> None:
    assert validate_candidate(candidate(title="x" * 500)) == []
    assert validate_candidate(candidate(title="x" * 501)) == ["title longer than 500 characters"]


def test_storage_failure_becomes_persistence_error(session_factory, organizations, clock, engine) -> None:
    with engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE job_records")

    with pytest.raises(PersistenceError) as exc:
        UpsertEngine(session_factory, clock=clock).merge(candidate())

    assert exc.value.source_name == "inspira"
    assert exc.value.source_job_id == "42"
    assert isinstance(exc.value.__cause__, OperationalError)


def test_unsupported_dialect_becomes_persistence_error(session_factory, organizations, clock, monkeypatch) -> None:
    monkeypatch.setattr("unjobs.services.upsert._DIALECT_INSERTS", {"postgresql": None})

    with pytest.raises(PersistenceError, match="not supported on dialect: sqlite"):
        UpsertEngine(session_factory, clock=clock).merge(candidate())

    assert rows(session_factory) == []
