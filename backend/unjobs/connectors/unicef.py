"""UNICEF connector (jobs.unicef.org).

The listing is rendered client-side behind a WAF challenge, so it is loaded
in a headless browser, expanded with its "load more" control and parsed with
BeautifulSoup. The whole listing arrives as a single page.
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

BASE_URL = "https://jobs.unicef.org"
LISTING_URL = "https://jobs.unicef.org/en-us/listing/"
JOB_LINK_SELECTOR = 'a[href*="/job/"]'
JOB_ID_RE = re.compile(r"/job/(\d+)/")


def parse_listing(html: str) -> list[dict]:
    """Extract job links (with whatever context their card offers) from the listing HTML."""
    soup = BeautifulSoup(html, "lxml")
    jobs: dict[str, dict] = {}

    for link in soup.select(JOB_LINK_SELECTOR):
        url = urljoin(BASE_URL, link.get("href", ""))
        match = JOB_ID_RE.search(url)
        title = link.get_text(" ", strip=True)
        if not match or not (5 < len(title) < 200):
            continue
        job_id = match.group(1)
        if job_id in jobs:
            continue

        card = link.find_parent(["article", "li"]) or link.find_parent("div")
        location = deadline = contract = ""
        if card is not None:
            location_el = card.select_one(".location, .duty-station, [class*='location']")
            deadline_el = card.select_one(".deadline, [class*='deadline']")
            contract_el = card.select_one(".contract-type, [class*='contract']")
            location = location_el.get_text(" ", strip=True) if location_el else ""
            deadline = deadline_el.get_text(" ", strip=True) if deadline_el else ""
            contract = contract_el.get_text(" ", strip=True) if contract_el else ""

        jobs[job_id] = {
            "job_id": job_id,
            "url": url,
            "title": title,
            "location": location,
            "deadline": deadline,
            "contract_type": contract,
        }

    return list(jobs.values())


@register_connector("unicef")
class UnicefConnector(BrowserConnector):
    organization_hint = "UNICEF"
    resolve_from_department = False
    wait_selector = JOB_LINK_SELECTOR

    def fetch_page(self, cursor=None) -> Page:
        html = self.render_page(LISTING_URL)
        listings = parse_listing(html)
        self.check_not_blocked(LISTING_URL, html, listings)

        logger.info(f"[{self.name}] Parsed {len(listings)} listings")
        return Page(items=listings, has_more=False)

    def normalize(self, raw: dict) -> JobCandidate | None:
        if not raw.get("job_id"):
            return None

        return self.candidate(
            source_job_id=raw["job_id"],
            title=raw.get("title"),
            duty_station=raw.get("location"),
            recruitment_type=raw.get("contract_type"),
            end_date=self.parse_datetime(raw.get("deadline")),
            department_text=self.organization_hint,
            apply_link=raw.get("url"),
        )
