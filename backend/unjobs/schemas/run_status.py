"""Pydantic schemas for RunStatus model and the run status query contract."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict


class RunStatusRead(BaseModel):
    """Full run status row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    source_name: str
    state: str
    processed_count: int = 0
    success_count: int = 0
    error_count: int = 0
    error_message: str | None = None
    start_time: datetime
    end_time: datetime | None = None
    duration_seconds: int | None = None
    live_count: int = 0
    created_at: datetime


class RunHistoryPage(BaseModel):
    """One page of a source's run history, newest first."""

    source_name: str
    items: list[RunStatusRead]
    page: int
    size: int
    total_records: int
    total_pages: int
    has_next: bool
    has_prev: bool


class SourcePerformance(BaseModel):
    source_name: str
    total_runs: int
    successful_runs: int
    success_rate: float
    avg_live_count: float
    avg_duration: float
    last_run: datetime | None = None


class DailyRunStats(BaseModel):
    run_date: date
    sources_run: int
    total_runs: int
    successful_runs: int
    avg_live_count: float
    avg_duration: float


class RunStatistics(BaseModel):
    """Aggregate statistics over a trailing window of days."""

    days: int
    total_sources: int
    successful_sources: int
    failed_sources: int
    total_live_records: int
    avg_duration: float
    last_run_time: datetime | None = None
    sources: list[SourcePerformance] = []
    daily: list[DailyRunStats] = []


class HealthSnapshot(BaseModel):
    """Global ingestion health derived from the latest run per source."""

    status: str  # healthy, degraded
    total_sources: int
    recent_sources: int  # latest run in the last 24 hours
    currently_running: int
    stuck_sources: list[str]
    successful_sources: int
    failed_sources: int
    total_live_records: int
    avg_duration: float
    last_activity: datetime | None = None
    checked_at: datetime
