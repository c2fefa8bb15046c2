"""UNESCO connector (careers.unesco.org).

A SuccessFactors career site: the "All jobs openings" listing is a results
table (title, location, contract type, grade, closing date) paged by start
row in the URL path, 25 rows per page.
"""

import logging
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from unjobs.connectors.base import Page
from unjobs.connectors.browser import BrowserConnector
from unjobs.connectors.registry import register_connector
from unjobs.schemas.job_record import JobCandidate

logger = logging.getLogger(__name__)

BASE_URL = "https://careers.unesco.org"
LISTING_URL = "https://careers.unesco.org/go/All-jobs-openings/782502/"
PAGE_SIZE = 25
JOB_ID_RE = re.compile(r"/job/[^/]+/(\d+)/?$")


def _dedupe_title(title: str) -> str:
    # The results table renders the title twice inside one link
    half = len(title) // 2
    if len(title) > 10 and title[:half] == title[half:]:
        return title[:half].strip()
    words = title.split()
    mid = len(words) // 2
    first, second = " ".join(words[:mid]), " ".join(words[mid:])
    if first == second and len(first) > 5:
        return first
    return title


def parse_listing(html: str) -> list[dict]:
    """Rows of the results table; header rows and rows without a job link are skipped."""
    soup = BeautifulSoup(html, "lxml")
    jobs = []

    for row in soup.select("table tr"):
        if row.find("th"):
            continue
        cells = row.find_all("td")
        if len(cells) < 5:
            continue
        link = cells[0].find("a", href=True)
        if link is None:
            continue

        url = urljoin(BASE_URL, link["href"])
        match = JOB_ID_RE.search(url)
        jobs.append({
            "job_id": match.group(1) if match else "",
            "url": url,
            "title": _dedupe_title(link.get_text(" ", strip=True)),
            "location": cells[1].get_text(" ", strip=True),
            "contract_type": cells[2].get_text(" ", strip=True),
            "grade": cells[3].get_text(" ", strip=True),
            "deadline": cells[4].get_text(" ", strip=True),
        })

    return jobs


@register_connector("unesco")
class UnescoConnector(BrowserConnector):
    organization_hint = "UNESCO"
    resolve_from_department = False
    wait_selector = "table tr td a"

    def fetch_page(self, cursor=None) -> Page:
        start_row = cursor or 0
        url = LISTING_URL if start_row == 0 else f"{LISTING_URL}{start_row}/"
        html = self.render_page(url)
        listings = parse_listing(html)
        self.check_not_blocked(url, html, listings)

        logger.info(f"[{self.name}] Parsed {len(listings)} listings from row {start_row}")
        return Page(
            items=listings,
            has_more=len(listings) >= PAGE_SIZE,
            cursor=start_row + PAGE_SIZE,
        )

    def normalize(self, raw: dict) -> JobCandidate | None:
        if not raw.get("job_id"):
            return None

        return self.candidate(
            source_job_id=raw["job_id"],
            title=raw.get("title"),
            level=raw.get("grade"),
            duty_station=raw.get("location"),
            recruitment_type=raw.get("contract_type"),
            end_date=self.parse_datetime(raw.get("deadline")),
            department_text=self.organization_hint,
            apply_link=raw.get("url"),
        )
