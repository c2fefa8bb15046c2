"""Run status model: append-only audit log per source ingestion run."""

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, Text

from unjobs.models.base import Base

RUN_STATES = ("running", "success", "failed")


class RunStatus(Base):
    __tablename__ = "run_statuses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source_name = Column(String(50), nullable=False, index=True)
    state = Column(String(20), nullable=False, default="running")  # running, success, failed

    processed_count = Column(Integer, nullable=False, default=0)
    success_count = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True))
    duration_seconds = Column(Integer)
    live_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint("state IN ('running', 'success', 'failed')", name="ck_run_state"),
        CheckConstraint(
            "processed_count >= 0 AND success_count >= 0 AND error_count >= 0",
            name="ck_run_counts_non_negative",
        ),
        CheckConstraint("success_count + error_count <= processed_count", name="ck_run_counts"),
        CheckConstraint("end_time IS NULL OR end_time >= start_time", name="ck_run_time_range"),
        CheckConstraint("duration_seconds IS NULL OR duration_seconds >= 0", name="ck_run_duration"),
        Index("idx_run_source_created", "source_name", "created_at"),
        Index("idx_run_source_state", "source_name", "state"),
    )
