"""Pydantic schemas package."""

from unjobs.schemas.job_record import JobCandidate
from unjobs.schemas.run_status import (
    DailyRunStats,
    HealthSnapshot,
    RunHistoryPage,
    RunStatistics,
    RunStatusRead,
    SourcePerformance,
)
from unjobs.schemas.cleanup import (
    CleanupStats,
    CycleSummary,
    DuplicateBreakdown,
    ExpiredBreakdown,
    ExpiringSoonReport,
    FailedSource,
    SourceOutcome,
)

__all__ = [
    # JobRecord
    "JobCandidate",
    # RunStatus
    "DailyRunStats",
    "HealthSnapshot",
    "RunHistoryPage",
    "RunStatistics",
    "RunStatusRead",
    "SourcePerformance",
    # Cleanup / cycle
    "CleanupStats",
    "CycleSummary",
    "DuplicateBreakdown",
    "ExpiredBreakdown",
    "ExpiringSoonReport",
    "FailedSource",
    "SourceOutcome",
]
