"""Job record model: canonical vacancy table."""

from sqlalchemy import (
    JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from unjobs.models.base import Base, TimestampMixin
from unjobs.models.organization import Organization  # noqa: F401

NATURAL_KEY = ("source_job_id", "source_name", "organization_id")

# Overwritten on every merge for an existing natural key
MUTABLE_FIELDS = (
    "title",
    "description",
    "language",
    "category_code",
    "level",
    "job_family_code",
    "job_code_title",
    "duty_station",
    "recruitment_type",
    "start_date",
    "end_date",
    "department_text",
    "apply_link",
    "extra_data",
)


class JobRecord(TimestampMixin, Base):
    __tablename__ = "job_records"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Natural key
    source_job_id = Column(String(255), nullable=False)
    source_name = Column(String(50), nullable=False, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    # Core
    title = Column(Text, nullable=False)
    description = Column(Text, default="")
    language = Column(String(10), default="EN")

    # Free-text, source-specific codes
    category_code = Column(String(255), default="")
    level = Column(String(100), default="")
    job_family_code = Column(String(255), default="")
    job_code_title = Column(String(255), default="")

    duty_station = Column(String(500), default="")
    recruitment_type = Column(String(100), default="")
    start_date = Column(DateTime(timezone=True))
    end_date = Column(DateTime(timezone=True), index=True)  # application deadline
    department_text = Column(String(255), default="")
    apply_link = Column(Text, default="")
    extra_data = Column(JSON().with_variant(JSONB, "postgresql"), default=dict)

    # Merge bookkeeping
    ingested_at = Column(DateTime(timezone=True), nullable=False, index=True)
    revision = Column(Integer, nullable=False, default=1)  # 1 until the first update

    organization = relationship("Organization")

    __table_args__ = (
        UniqueConstraint(*NATURAL_KEY, name="uq_job_record_natural_key"),
        Index("idx_job_duplicate_group", "title", "duty_station", "source_name", "organization_id"),
        Index("idx_job_source_ingested", "source_name", "ingested_at"),
    )
