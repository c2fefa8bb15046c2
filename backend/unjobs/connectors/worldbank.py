"""World Bank Group connector (Cornerstone OnDemand job search API).

The search endpoint needs a bearer token (WORLDBANK_API_KEY); pages are
numbered from 1.
"""

import logging
import math

from unjobs.connectors.base import BaseConnector, Page
from unjobs.connectors.registry import register_connector
from unjobs.schemas.job_record import JobCandidate

logger = logging.getLogger(__name__)

API_URL = "https://us.api.csod.com/rec-job-search/external/jobs"
APPLY_URL = "https://worldbankgroup.csod.com/careers/{requisition_id}"


@register_connector("worldbank")
class WorldBankConnector(BaseConnector):
    organization_hint = "World Bank"
    resolve_from_department = False
    page_size = 25

    def _payload(self, page_number: int) -> dict:
        return {
            "careerSiteId": 1,
            "careerSitePageId": 1,
            "cultureId": 1,
            "cultureName": "en-US",
            "cities": [],
            "countryCodes": [],
            "states": [],
            "customFieldCheckboxKeys": [],
            "customFieldDropdowns": [],
            "customFieldRadios": [],
            "pageNumber": page_number,
            "pageSize": self.page_size,
            "placeID": "",
            "postingsWithinDays": None,
            "radius": None,
            "searchText": "",
        }

    def fetch_page(self, cursor: int | None = None) -> Page:
        page_number = cursor or 1
        logger.info(f"[{self.name}] Fetching page {page_number}")

        headers = {}
        if self.settings.worldbank_api_key:
            headers["Authorization"] = f"Bearer {self.settings.worldbank_api_key}"

        data = self.request_json("POST", API_URL, json=self._payload(page_number), headers=headers)
        body = data.get("data") or {}
        requisitions = body.get("requisitions") or []
        total_pages = math.ceil((body.get("totalCount") or 0) / self.page_size)

        return Page(
            items=requisitions,
            has_more=bool(requisitions) and page_number < total_pages,
            cursor=page_number + 1,
        )

    def normalize(self, raw: dict) -> JobCandidate | None:
        requisition_id = raw.get("requisitionId")
        if requisition_id in (None, ""):
            return None

        locations = raw.get("locations") or []
        duty_station = raw.get("location") or ""
        if not duty_station and locations and isinstance(locations[0], dict):
            duty_station = ", ".join(
                part for part in (locations[0].get("city"), locations[0].get("country")) if part
            )

        return self.candidate(
            source_job_id=requisition_id,
            title=raw.get("title") or raw.get("displayJobTitle"),
            description=raw.get("description") or raw.get("externalDescription"),
            category_code=raw.get("category"),
            job_code_title=raw.get("jobCode"),
            duty_station=duty_station,
            recruitment_type=raw.get("type"),
            start_date=self.parse_datetime(raw.get("postingEffectiveDate") or raw.get("startDate")),
            end_date=self.parse_datetime(raw.get("postingExpirationDate") or raw.get("endDate")),
            department_text=self.organization_hint,
            apply_link=raw.get("applyUrl") or APPLY_URL.format(requisition_id=requisition_id),
        )
