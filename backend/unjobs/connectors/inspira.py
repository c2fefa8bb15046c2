"""UN Careers (Inspira) connector for the UN Secretariat.

careers.un.org serves a public JSON API; pages are 0-based and the response
carries the overall count used to decide whether more pages follow.
"""

import logging
import math

from unjobs.connectors.base import BaseConnector, Page
from unjobs.connectors.registry import register_connector
from unjobs.schemas.job_record import JobCandidate

logger = logging.getLogger(__name__)

API_URL = "https://careers.un.org/api/public/opening/jo/list/filteredV2/en"
APPLY_URL = "https://careers.un.org/jobSearchDescription/{job_id}?language=en"


def _named(value, key: str = "name") -> str:
    if isinstance(value, dict):
        return value.get(key) or value.get(key.capitalize()) or ""
    return ""


@register_connector("inspira")
class InspiraConnector(BaseConnector):
    organization_hint = "Secretariat"
    page_size = 10

    def fetch_page(self, cursor: int | None = None) -> Page:
        page = cursor or 0
        logger.info(f"[{self.name}] Fetching page {page}")

        data = self.request_json(
            "POST",
            API_URL,
            json={
                "filterConfig": {"keyword": ""},
                "pagination": {
                    "page": page,
                    "itemPerPage": self.page_size,
                    "sortBy": "startDate",
                    "sortDirection": -1,
                },
            },
        )
        body = data.get("data") or {}
        listings = body.get("list") or []
        total_pages = math.ceil((body.get("count") or 0) / self.page_size)

        return Page(
            items=listings,
            has_more=bool(listings) and page + 1 < total_pages,
            cursor=page + 1,
        )

    def normalize(self, raw: dict) -> JobCandidate | None:
        job_id = raw.get("jobId")
        if job_id in (None, ""):
            return None

        duty_stations = raw.get("dutyStation") or []
        duty_station = duty_stations[0].get("description", "") if duty_stations and isinstance(duty_stations[0], dict) else ""

        return self.candidate(
            source_job_id=job_id,
            title=raw.get("jobTitle"),
            description=raw.get("jobDescription"),
            language=raw.get("language") or "EN",
            category_code=raw.get("categoryCode"),
            level=raw.get("jobLevel"),
            job_family_code=raw.get("jobFamilyCode"),
            job_code_title=raw.get("jobCodeTitle"),
            duty_station=duty_station,
            recruitment_type=raw.get("recruitmentType"),
            start_date=self.parse_datetime(raw.get("startDate")),
            end_date=self.parse_datetime(raw.get("endDate")),
            department_text=_named(raw.get("dept")),
            apply_link=APPLY_URL.format(job_id=job_id),
            extra_data={
                "network": _named(raw.get("jn")),
                "family": _named(raw.get("jf")),
                "category": _named(raw.get("jc")),
                "level": _named(raw.get("jl")),
            },
        )
