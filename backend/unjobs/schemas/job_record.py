"""Pydantic schemas for JobRecord model."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, field_validator


class JobCandidate(BaseModel):
    """Canonical vacancy produced by a connector, before it is merged.

    Natural-key fields are optional here so that an incomplete candidate can
    still be built and then rejected by the upsert engine's validation.
    """

    source_job_id: str | None = None
    source_name: str | None = None
    organization_id: int | None = None
    title: str | None = None

    description: str = ""
    language: str = "EN"
    category_code: str = ""
    level: str = ""
    job_family_code: str = ""
    job_code_title: str = ""
    duty_station: str = ""
    recruitment_type: str = ""
    start_date: datetime | None = None
    end_date: datetime | None = None
    department_text: str = ""
    apply_link: str = ""
    extra_data: dict[str, Any] = {}

    @field_validator("source_job_id", mode="before")
    @classmethod
    def _coerce_job_id(cls, value: Any) -> str | None:
        # APIs hand out numeric ids as often as strings
        if value is None:
            return None
        return str(value).strip()

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> str | None:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        return value.strip() if isinstance(value, str) else value

    @field_validator(
        "description", "language", "category_code", "level", "job_family_code", "job_code_title",
        "duty_station", "recruitment_type", "department_text", "apply_link",
        mode="before",
    )
    @classmethod
    def _none_to_blank(cls, value: Any) -> Any:
        if value is None:
            return ""
        # Codes such as categoryCode arrive as numbers from some APIs
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("start_date", "end_date")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
