"""Workday connectors (WFP, UNHCR).

Workday career sites expose a JSON search API at /wday/cxs/{tenant}/{site}/jobs
(offset/limit paging) plus a per-posting detail endpoint at the posting's
externalPath. Workday only reports the total on the first page, so the
cursor carries it forward.
"""

import logging
import re

from unjobs.connectors.base import BaseConnector, Page
from unjobs.connectors.registry import register_connector
from unjobs.errors import FetchError
from unjobs.schemas.job_record import JobCandidate

logger = logging.getLogger(__name__)

POSTING_ID_RE = re.compile(r"_([A-Za-z0-9-]+)$")


class WorkdayConnector(BaseConnector):
    """Shared Workday paging and detail fetching. Subclasses set the endpoints."""

    site_url: str = ""  # .../wday/cxs/{tenant}/{site}
    apply_url: str = ""  # prefix for the public posting page
    page_size = 20
    resolve_from_department = False

    def fetch_page(self, cursor: dict | None = None) -> Page:
        cursor = cursor or {"offset": 0, "total": None}
        offset = cursor["offset"]
        logger.info(f"[{self.name}] Fetching Workday API offset={offset}")

        data = self.request_json(
            "POST",
            f"{self.site_url}/jobs",
            json={"appliedFacets": {}, "limit": self.page_size, "offset": offset, "searchText": ""},
        )
        postings = data.get("jobPostings") or []
        total = cursor["total"] if cursor["total"] is not None else (data.get("total") or 0)

        items = [self._with_detail(posting) for posting in postings]
        next_offset = offset + self.page_size
        return Page(
            items=items,
            has_more=bool(postings) and next_offset < total,
            cursor={"offset": next_offset, "total": total},
        )

    def _with_detail(self, posting: dict) -> dict:
        """Attach the posting detail; the summary alone is kept if the detail fetch fails."""
        path = posting.get("externalPath")
        detail = {}
        if path:
            try:
                detail = self.request_json("GET", f"{self.site_url}{path}")
            except FetchError as e:
                logger.warning(f"[{self.name}] Detail unavailable, keeping summary: {e}")
        return {"summary": posting, "detail": detail}

    def _posting_id(self, summary: dict, info: dict) -> str | None:
        if info.get("jobPostingId"):
            return info["jobPostingId"]
        match = POSTING_ID_RE.search(summary.get("externalPath") or "")
        if match:
            return match.group(1)
        bullets = summary.get("bulletFields") or []
        return bullets[0] if bullets else None

    def normalize(self, raw: dict) -> JobCandidate | None:
        summary = raw.get("summary") or {}
        detail = raw.get("detail") or {}
        info = detail.get("jobPostingInfo") or {}

        posting_id = self._posting_id(summary, info)
        if not posting_id:
            logger.warning(f"[{self.name}] Posting without an id: {summary.get('title')!r}")
            return None

        bullets = summary.get("bulletFields") or []
        hiring_org = (detail.get("hiringOrganization") or {}).get("name")

        return self.candidate(
            source_job_id=posting_id,
            title=info.get("title") or summary.get("title"),
            description=info.get("jobDescription"),
            category_code=bullets[0] if bullets else "",
            job_code_title=posting_id,
            duty_station=info.get("location") or summary.get("locationsText"),
            recruitment_type=info.get("timeType"),
            start_date=self.parse_datetime(info.get("startDate")),
            end_date=self.parse_datetime(info.get("endDate")),
            department_text=hiring_org or self.organization_hint,
            apply_link=f"{self.apply_url}{posting_id}",
            extra_data={
                "posted_on": summary.get("postedOn"),
                "external_path": summary.get("externalPath"),
                "workday_id": info.get("id"),
            },
        )


@register_connector("unhcr")
class UnhcrConnector(WorkdayConnector):
    organization_hint = "UNHCR"
    site_url = "https://unhcr.wd3.myworkdayjobs.com/wday/cxs/unhcr/External"
    apply_url = "https://unhcr.wd3.myworkdayjobs.com/en-US/External/details/"


@register_connector("wfp")
class WfpConnector(WorkdayConnector):
    organization_hint = "WFP"
    site_url = "https://wd3.myworkdaysite.com/wday/cxs/wfp/job_openings"
    apply_url = "https://wd3.myworkdaysite.com/en-US/recruiting/wfp/job_openings/details/"
