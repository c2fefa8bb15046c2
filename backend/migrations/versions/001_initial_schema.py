"""Initial schema: organizations, job_records, run_statuses.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Organizations
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(50), index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("short_name", sa.String(100)),
        sa.Column("long_name", sa.String(500)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Job records
    op.create_table(
        "job_records",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("source_job_id", sa.String(255), nullable=False),
        sa.Column("source_name", sa.String(50), nullable=False, index=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id"), nullable=False, index=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("language", sa.String(10), server_default="EN"),
        sa.Column("category_code", sa.String(255), server_default=""),
        sa.Column("level", sa.String(100), server_default=""),
        sa.Column("job_family_code", sa.String(255), server_default=""),
        sa.Column("job_code_title", sa.String(255), server_default=""),
        sa.Column("duty_station", sa.String(500), server_default=""),
        sa.Column("recruitment_type", sa.String(100), server_default=""),
        sa.Column("start_date", sa.DateTime(timezone=True)),
        sa.Column("end_date", sa.DateTime(timezone=True), index=True),
        sa.Column("department_text", sa.String(255), server_default=""),
        sa.Column("apply_link", sa.Text, server_default=""),
        sa.Column("extra_data", postgresql.JSONB, server_default="{}"),
        sa.Column("ingested_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("revision", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("source_job_id", "source_name", "organization_id", name="uq_job_record_natural_key"),
    )
    op.create_index(
        "idx_job_duplicate_group", "job_records",
        ["title", "duty_station", "source_name", "organization_id"],
    )
    op.create_index("idx_job_source_ingested", "job_records", ["source_name", "ingested_at"])

    # Run statuses
    op.create_table(
        "run_statuses",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("source_name", sa.String(50), nullable=False, index=True),
        sa.Column("state", sa.String(20), nullable=False, server_default="running"),
        sa.Column("processed_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("success_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("error_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True)),
        sa.Column("duration_seconds", sa.Integer),
        sa.Column("live_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.CheckConstraint("state IN ('running', 'success', 'failed')", name="ck_run_state"),
        sa.CheckConstraint(
            "processed_count >= 0 AND success_count >= 0 AND error_count >= 0",
            name="ck_run_counts_non_negative",
        ),
        sa.CheckConstraint("success_count + error_count <= processed_count", name="ck_run_counts"),
        sa.CheckConstraint("end_time IS NULL OR end_time >= start_time", name="ck_run_time_range"),
        sa.CheckConstraint("duration_seconds IS NULL OR duration_seconds >= 0", name="ck_run_duration"),
    )
    op.create_index("idx_run_source_created", "run_statuses", ["source_name", "created_at"])
    op.create_index("idx_run_source_state", "run_statuses", ["source_name", "state"])

    # Default organization for unresolvable departments
    op.execute(
        "INSERT INTO organizations (id, code, name, short_name, long_name) "
        "VALUES (128, 'UN', 'United Nations', 'UN', 'United Nations Secretariat')"
    )
    op.execute(
        "SELECT setval(pg_get_serial_sequence('organizations', 'id'), "
        "GREATEST((SELECT MAX(id) FROM organizations), 1))"
    )


def downgrade() -> None:
    op.drop_table("run_statuses")
    op.drop_table("job_records")
    op.drop_table("organizations")
