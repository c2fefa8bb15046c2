"""Pydantic schemas for cleanup and ingestion cycle reports."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ExpiredBreakdown(BaseModel):
    expired_count: int
    oldest_expired: datetime | None = None
    newest_expired: datetime | None = None


class DuplicateBreakdown(BaseModel):
    duplicate_groups: int
    duplicate_count: int  # extra copies beyond the one kept


class CleanupStats(BaseModel):
    dry_run: bool = False
    total_expired: int = 0
    total_duplicates: int = 0
    deleted_expired: int = 0
    deleted_duplicates: int = 0
    expired_by_source: dict[str, ExpiredBreakdown] = {}
    duplicates_by_source: dict[str, DuplicateBreakdown] = {}
    error_count: int = 0
    errors: list[str] = []
    started_at: datetime | None = None
    finished_at: datetime | None = None
    duration_seconds: int = 0

    @property
    def total_found(self) -> int:
        return self.total_expired + self.total_duplicates

    @property
    def total_deleted(self) -> int:
        return self.deleted_expired + self.deleted_duplicates


class ExpiringSoonReport(BaseModel):
    days_ahead: int
    total_expiring: int
    by_source: dict[str, ExpiredBreakdown] = {}


class FailedSource(BaseModel):
    name: str
    error: str


class SourceOutcome(BaseModel):
    """Result of one connector run inside a cycle."""

    name: str
    state: str  # success, failed
    run_id: int | None = None
    processed: int = 0
    succeeded: int = 0
    errors: int = 0
    inserted: int = 0
    updated: int = 0
    pages: int = 0
    error_message: str | None = None


class CycleSummary(BaseModel):
    started_at: datetime
    finished_at: datetime | None = None
    duration_seconds: int = 0
    succeeded: list[str] = []
    failed: list[FailedSource] = []
    outcomes: list[SourceOutcome] = []
    total_processed: int = 0
    total_succeeded: int = 0
    total_errors: int = 0
    total_inserted: int = 0
    total_updated: int = 0
    cache_cleared: int | None = None
    cleanup: CleanupStats | None = None
    cleanup_error: str | None = None
