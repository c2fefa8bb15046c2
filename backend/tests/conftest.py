import os

# Settings are read at import time by unjobs.models.base
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from unjobs.connectors.base import BaseConnector, Page
from unjobs.errors import FetchError
from unjobs.models.base import Base, session_scope
from unjobs.models.organization import Organization
from unjobs.models import job_record, run_status  # noqa: F401
from unjobs.schemas.job_record import JobCandidate

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingInvalidator:
    def __init__(self, removed: int = 3, error: Exception | None = None):
        self.removed = removed
        self.error = error
        self.calls: list[str] = []

    def invalidate(self, prefix: str) -> int:
        self.calls.append(prefix)
        if self.error is not None:
            raise self.error
        return self.removed


class FakeConnector(BaseConnector):
    """Serves canned pages; raw items are JobCandidate keyword dicts."""

    def __init__(self, name: str, pages: list[list[dict]], fail_on_page: int | None = None,
                 organization_hint: str = "", resolve_from_department: bool = True):
        super().__init__(sleep=lambda _: None)
        self.name = name
        self.pages = pages
        self.fail_on_page = fail_on_page
        self.organization_hint = organization_hint
        self.resolve_from_department = resolve_from_department
        self.fetched: list[Any] = []
        self.closed = False

    def fetch_page(self, cursor: Any = None) -> Page:
        index = cursor or 0
        self.fetched.append(index)
        if self.fail_on_page is not None and index == self.fail_on_page:
            raise FetchError(self.name, f"fake://{self.name}/{index}", "connection reset")
        return Page(items=self.pages[index], has_more=index + 1 < len(self.pages), cursor=index + 1)

    def normalize(self, raw: dict) -> JobCandidate | None:
        if raw.get("malformed"):
            return None
        if raw.get("explode"):
            raise KeyError("jobTitle")
        return JobCandidate(**raw)

    def close(self) -> None:
        self.closed = True
        super().close()


def listing(job_id: Any, title: str = "Programme Officer", **kwargs) -> dict:
    return {"source_job_id": job_id, "title": title, **kwargs}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def organizations(session_factory):
    with session_scope(session_factory) as db:
        db.add_all([
            Organization(id=3, code="WFP", name="World Food Programme", short_name="WFP",
                         long_name="United Nations World Food Programme"),
            Organization(id=7, code="UNHCR", name="UN Refugee Agency", short_name="UNHCR",
                         long_name="Office of the High Commissioner for Refugees"),
            Organization(id=42, code="DPO", name="Department of Peace Operations", short_name="DPO"),
            Organization(id=128, code="UN", name="United Nations", short_name="UN",
                         long_name="United Nations Secretariat"),
        ])
    return {"wfp": 3, "unhcr": 7, "dpo": 42, "default": 128}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def invalidator():
    return RecordingInvalidator()


@pytest.fixture
def make_connector():
    return FakeConnector
