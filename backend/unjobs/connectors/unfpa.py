"""UNFPA connector (Oracle HCM Candidate Experience REST API).

The requisition finder returns a single item wrapping the requisition list
and the overall job count. Flex fields on the detail endpoint carry the
agency, grade and practice area.
"""

import logging

from unjobs.connectors.base import BaseConnector, Page
from unjobs.connectors.registry import register_connector
from unjobs.errors import FetchError
from unjobs.schemas.job_record import JobCandidate

logger = logging.getLogger(__name__)

HCM_URL = "https://estm.fa.em2.oraclecloud.com/hcmRestApi/resources/latest"
SITE_NUMBER = "CX_2003"
APPLY_URL = f"https://estm.fa.em2.oraclecloud.com/hcmUI/CandidateExperience/en/sites/{SITE_NUMBER}/job/{{job_id}}"


def _flex_value(flex_fields: list[dict], prompt: str) -> str:
    for flex in flex_fields:
        if isinstance(flex, dict) and flex.get("Prompt") == prompt:
            return flex.get("Value") or ""
    return ""


@register_connector("unfpa")
class UnfpaConnector(BaseConnector):
    organization_hint = "UNFPA"
    page_size = 25

    def fetch_page(self, cursor: int | None = None) -> Page:
        offset = cursor or 0
        logger.info(f"[{self.name}] Fetching requisitions offset={offset}")

        finder = f"findReqs;siteNumber={SITE_NUMBER},limit={self.page_size},offset={offset},sortBy=POSTING_DATES_DESC"
        data = self.request_json(
            "GET",
            f"{HCM_URL}/recruitingCEJobRequisitions",
            params={"onlyData": "true", "expand": "requisitionList", "finder": finder},
        )
        wrapper = (data.get("items") or [{}])[0]
        requisitions = wrapper.get("requisitionList") or []
        total = wrapper.get("TotalJobsCount") or 0

        items = [self._with_detail(req) for req in requisitions]
        next_offset = offset + self.page_size
        return Page(
            items=items,
            has_more=bool(requisitions) and next_offset < total,
            cursor=next_offset,
        )

    def _with_detail(self, requisition: dict) -> dict:
        detail = {}
        try:
            data = self.request_json(
                "GET",
                f"{HCM_URL}/recruitingCEJobRequisitionDetails",
                params={
                    "expand": "all",
                    "onlyData": "true",
                    "finder": f'ById;Id="{requisition.get("Id")}",siteNumber={SITE_NUMBER}',
                },
            )
            detail = (data.get("items") or [{}])[0]
        except FetchError as e:
            logger.warning(f"[{self.name}] Detail unavailable, keeping summary: {e}")
        return {"summary": requisition, "detail": detail}

    def normalize(self, raw: dict) -> JobCandidate | None:
        summary = raw.get("summary") or {}
        detail = raw.get("detail") or {}
        job_id = summary.get("Id")
        if job_id in (None, ""):
            return None

        flex_fields = detail.get("requisitionFlexFields") or []
        agency = _flex_value(flex_fields, "Agency") or self.organization_hint

        return self.candidate(
            source_job_id=job_id,
            title=summary.get("Title"),
            description=detail.get("ExternalDescriptionStr"),
            language=summary.get("Language") or "EN",
            category_code=detail.get("Category"),
            level=_flex_value(flex_fields, "Grade"),
            job_family_code=summary.get("JobFamily"),
            job_code_title=summary.get("JobFunction"),
            duty_station=summary.get("PrimaryLocation"),
            recruitment_type=detail.get("RequisitionType"),
            start_date=self.parse_datetime(detail.get("ExternalPostedStartDate") or summary.get("PostedDate")),
            end_date=self.parse_datetime(detail.get("ExternalPostedEndDate")),
            department_text=agency,
            apply_link=APPLY_URL.format(job_id=job_id),
            extra_data={
                "practice_area": _flex_value(flex_fields, "Practice Area"),
                "grade": _flex_value(flex_fields, "Grade"),
            },
        )
