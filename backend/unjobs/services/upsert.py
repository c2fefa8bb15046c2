"""Upsert engine: merges job candidates into job_records on the natural key.

Every merge is a single INSERT ... ON CONFLICT DO UPDATE statement, so the
storage-layer unique constraint on (source_job_id, source_name,
organization_id) is the only arbiter between concurrent writers. The merge
revision returned by the statement tells the branch that fired: revision 1
is a fresh insert, anything higher an update.
"""

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import CompileError, SQLAlchemyError
from sqlalchemy.orm import Session

from unjobs.errors import PersistenceError, ValidationError
from unjobs.models.base import SyncSessionLocal, session_scope, utcnow
from unjobs.models.job_record import MUTABLE_FIELDS, NATURAL_KEY, JobRecord
from unjobs.schemas.job_record import JobCandidate

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 500
REQUIRED_FIELDS = ("source_job_id", "title", "source_name", "organization_id")

INSERTED = "inserted"
UPDATED = "updated"

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def validate_candidate(candidate: JobCandidate) -> list[str]:
    """Return a list of validation problems (empty when the candidate is mergeable)."""
    errors = []
    for field in REQUIRED_FIELDS:
        value = getattr(candidate, field)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors.append(f"missing {field}")

    if candidate.title and len(candidate.title) > MAX_TITLE_LENGTH:
        errors.append(f"title longer than {MAX_TITLE_LENGTH} characters")

    return errors


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect]
    except KeyError:
        raise CompileError(f"Upsert is not supported on dialect: {dialect}")


def merge_job(db: Session, candidate: JobCandidate, now: datetime) -> str:
    """Merge one validated candidate inside an open session.

    Last write wins for every mutable field; ingested_at and updated_at are
    refreshed and the revision counter incremented on conflict.
    """
    values = {field: getattr(candidate, field) for field in NATURAL_KEY + MUTABLE_FIELDS}
    values.update(
        ingested_at=now,
        created_at=now,
        updated_at=now,
        revision=1,
    )

    insert = _insert_for(db)
    stmt = insert(JobRecord).values(**values)
    set_ = {field: stmt.excluded[field] for field in MUTABLE_FIELDS}
    set_.update(
        ingested_at=stmt.excluded.ingested_at,
        updated_at=stmt.excluded.updated_at,
        revision=JobRecord.__table__.c.revision + 1,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=list(NATURAL_KEY),
        set_=set_,
    ).returning(JobRecord.id, JobRecord.revision)

    row = db.execute(stmt).one()
    return INSERTED if row.revision == 1 else UPDATED


class UpsertEngine:
    """Validates and merges candidates, one session scope per merge."""

    def __init__(self, session_factory=SyncSessionLocal, clock: Callable[[], datetime] = utcnow):
        self.session_factory = session_factory
        self.clock = clock

    def merge(self, candidate: JobCandidate) -> str:
        errors = validate_candidate(candidate)
        if errors:
            raise ValidationError(candidate.source_name, candidate.source_job_id, errors)

        try:
            with session_scope(self.session_factory) as db:
                return merge_job(db, candidate, self.clock())
        except SQLAlchemyError as e:
            raise PersistenceError(candidate.source_name, candidate.source_job_id, str(e)) from e
