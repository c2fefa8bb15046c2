"""Base connector abstract class."""

import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

import httpx
import pydantic

from unjobs.config import Settings, get_settings
from unjobs.errors import FetchError
from unjobs.schemas.job_record import JobCandidate

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
}

DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d",
    "%d %b %Y %I:%M %p",
    "%d %B %Y %I:%M %p",
    "%d %b %Y",
    "%d %B %Y",
    "%m/%d/%Y",
    "%d-%b-%Y",
)


@dataclass
class Page:
    """One page of raw listings. cursor is what fetch_page needs for the next page."""

    items: list[dict] = field(default_factory=list)
    has_more: bool = False
    cursor: Any = None


class BaseConnector(ABC):
    """Abstract base class for all source connectors.

    Subclasses must implement:
        fetch_page(cursor) -> Page            fetch one page of raw listings
        normalize(raw) -> JobCandidate | None convert a raw listing to the canonical shape

    fetch_page(None) returns the first page. normalize never raises on a
    malformed listing: it returns None and the orchestrator counts an error.
    """

    name: str = ""
    organization_hint: str = ""  # used for org resolution when a listing names no department
    resolve_from_department: bool = True  # False: always resolve from organization_hint

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None
        self.sleep = sleep

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.settings.fetch_timeout,
                headers=DEFAULT_HEADERS,
                follow_redirects=True,
            )
        return self._client

    @abstractmethod
    def fetch_page(self, cursor: Any = None) -> Page:
        ...

    @abstractmethod
    def normalize(self, raw: dict) -> JobCandidate | None:
        ...

    def candidate(self, **fields: Any) -> JobCandidate | None:
        """Build a JobCandidate, or None when the listing's values do not fit it."""
        try:
            return JobCandidate(**fields)
        except pydantic.ValidationError as e:
            logger.warning(
                f"[{self.name}] Dropping listing {fields.get('source_job_id')!r}: "
                f"{e.error_count()} invalid field(s): {e.errors()[0]['loc']}"
            )
            return None

    def retrying(self, url: str, call: Callable[[], Any], retry_on: tuple, action: str = "request") -> Any:
        """Run call, retrying with exponential backoff on the given errors.

        Raises FetchError once every attempt has failed.
        """
        attempts = max(1, self.settings.fetch_retries)
        last_error = None

        for attempt in range(1, attempts + 1):
            try:
                return call()
            except retry_on as e:
                last_error = e
                logger.warning(f"[{self.name}] {action} {url} failed (attempt {attempt}/{attempts}): {e}")
                if attempt < attempts:
                    self.sleep(self.settings.fetch_backoff_base * 2 ** (attempt - 1))

        raise FetchError(self.name, url, f"{action} failed: {last_error}")

    def request_json(self, method: str, url: str, **kwargs) -> Any:
        """Issue a request and decode JSON, retrying on HTTP errors and bad bodies."""

        def call():
            resp = self.client.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp.json()

        return self.retrying(url, call, (httpx.HTTPError, ValueError), action=method)

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    @staticmethod
    def parse_datetime(value: Any) -> datetime | None:
        """Parse an API date (ISO string, display string or epoch millis) to UTC."""
        if value in (None, ""):
            return None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)):
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        else:
            text = re.sub(r"^\s*(Deadline|Closing date):\s*", "", str(value), flags=re.IGNORECASE).strip()
            text = re.sub(r"Z$", "+00:00", text)
            parsed = None
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                for fmt in DATE_FORMATS:
                    try:
                        parsed = datetime.strptime(text, fmt)
                        break
                    except ValueError:
                        continue
            if parsed is None:
                logger.debug(f"Unparseable date: {value!r}")
                return None

        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    @staticmethod
    def text(value: Any) -> str:
        return str(value).strip() if value is not None else ""
