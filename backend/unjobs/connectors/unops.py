"""UNOPS connector (jobs.unops.org).

An ASP.NET grid of active vacancies: title (linking to VADetails.aspx?id=N),
level, duty station and closing date. Only the first grid page is read; the
grid pages through form postbacks rather than URLs.
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

LISTING_URL = "https://jobs.unops.org/Pages/ViewVacancy/VAListing.aspx"
DETAIL_LINK_SELECTOR = 'a[href*="VADetails.aspx"]'
JOB_ID_RE = re.compile(r"[?&]id=(\d+)")


def _cell_text(cell, limit: int) -> str:
    return " ".join(cell.get_text(" ", strip=True).split())[:limit]


def parse_listing(html: str) -> list[dict]:
    soup = BeautifulSoup(html, "lxml")
    jobs = []

    for row in soup.select("table tr"):
        if row.find("th"):
            continue
        cells = row.find_all("td")
        if len(cells) < 4:
            continue
        link = cells[0].select_one(DETAIL_LINK_SELECTOR)
        if link is None:
            continue
        title = link.get_text(" ", strip=True)
        if len(title) <= 5:
            continue

        url = urljoin(LISTING_URL, link["href"])
        match = JOB_ID_RE.search(url)
        jobs.append({
            "job_id": match.group(1) if match else "",
            "url": url,
            "title": title,
            "level": _cell_text(cells[1], 50),
            "location": _cell_text(cells[2], 100),
            "deadline": _cell_text(cells[3], 50),
        })

    return jobs


@register_connector("unops")
class UnopsConnector(BrowserConnector):
    organization_hint = "UNOPS"
    resolve_from_department = False
    wait_selector = DETAIL_LINK_SELECTOR

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
            level=raw.get("level"),
            duty_station=raw.get("location"),
            end_date=self.parse_datetime(raw.get("deadline")),
            department_text=self.organization_hint,
            apply_link=raw.get("url"),
        )
