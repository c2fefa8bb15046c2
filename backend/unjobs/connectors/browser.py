"""Headless browser for JS-rendered career sites.

Uses Patchright (Playwright fork with anti-detection patches). Each render
launches its own browser and always tears it down, so a crashed page never
leaves a Chromium process behind.
"""

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import Callable

from unjobs.connectors.base import BaseConnector
from unjobs.errors import FetchError

logger = logging.getLogger(__name__)

STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'platform', { get: () => 'MacIntel' });
window.chrome = {
    runtime: { connect: () => {}, sendMessage: () => {} },
    loadTimes: () => ({}),
    csi: () => ({})
};
"""

BROWSER_LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--no-first-run",
    "--window-size=1440,900",
]

BROWSER_CONTEXT_OPTIONS = {
    "viewport": {"width": 1440, "height": 900},
    "locale": "en-US",
    "timezone_id": "UTC",
    "user_agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "accept_downloads": False,
}

LOAD_MORE_SELECTORS = [
    ".load-more",
    ".load-more-jobs",
    "[data-automation-id='loadMoreJobs']",
    "button[class*='load']",
    "button[class*='more']",
    ".show-more",
]


class StealthBrowser:
    """Browser wrapper with anti-detection settings."""

    def __init__(self, headless: bool = True, timeout: int = 30000):
        self.headless = headless
        self.timeout = timeout
        self.browser = None
        self.playwright = None

    async def launch(self) -> None:
        from patchright.async_api import async_playwright

        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(
            headless=self.headless,
            args=BROWSER_LAUNCH_ARGS,
        )
        logger.info("Launched Patchright Chromium")

    async def new_page(self):
        if not self.browser:
            raise RuntimeError("Browser not launched")

        context = await self.browser.new_context(**BROWSER_CONTEXT_OPTIONS)
        page = await context.new_page()
        page.set_default_timeout(self.timeout)
        return page

    @staticmethod
    async def apply_stealth(page):
        """Inject stealth overrides. Call after goto()."""
        await page.evaluate(STEALTH_SCRIPT)

    async def close(self):
        if self.browser:
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()


@asynccontextmanager
async def get_browser(headless: bool = True, timeout: int = 30000):
    """Context manager for one isolated browser session."""
    browser = StealthBrowser(headless=headless, timeout=timeout)
    try:
        await browser.launch()
        yield browser
    finally:
        await browser.close()


async def render_listing(
    url: str,
    wait_selector: str,
    headless: bool = True,
    timeout: int = 30000,
    max_load_more: int = 10,
) -> str:
    """Load a listing page, expand it with its "load more" control, return the HTML."""
    async with get_browser(headless=headless, timeout=timeout) as browser:
        page = await browser.new_page()
        await page.goto(url, wait_until="networkidle", timeout=timeout)
        await browser.apply_stealth(page)

        try:
            await page.wait_for_selector(wait_selector, timeout=15000)
        except Exception as e:
            logger.warning(f"Listing selector {wait_selector!r} not found on {url}: {e}")

        for _ in range(max_load_more):
            button = None
            for selector in LOAD_MORE_SELECTORS:
                button = await page.query_selector(selector)
                if button:
                    break
            if not button:
                break

            before = len(await page.query_selector_all(wait_selector))
            await button.click()
            await human_delay(3000, 5000)
            after = len(await page.query_selector_all(wait_selector))
            if after <= before:
                break
            logger.debug(f"Load more: {before} -> {after} listings")

        return await page.content()


async def human_delay(min_ms: int = 100, max_ms: int = 500) -> None:
    """Random delay to appear human."""
    await asyncio.sleep(random.uniform(min_ms / 1000, max_ms / 1000))


def looks_blocked(html: str) -> bool:
    """True for a WAF or bot challenge page served instead of the listing."""
    return "awswaf" in html or "challenge" in html


class BrowserConnector(BaseConnector):
    """Connector whose listing pages have to be rendered in a browser.

    Subclasses set wait_selector and call render_page(url). The renderer can
    be injected (tests pass a function returning canned HTML).
    """

    wait_selector: str = "a"

    def __init__(self, *args, render: Callable[[str], str] | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.render = render or self._render_with_browser

    def _render_with_browser(self, url: str) -> str:
        return asyncio.run(render_listing(
            url,
            self.wait_selector,
            headless=self.settings.browser_headless,
            timeout=self.settings.browser_timeout,
        ))

    def render_page(self, url: str) -> str:
        logger.info(f"[{self.name}] Rendering {url}")
        # Each attempt launches a fresh browser; any crash inside it is retried
        return self.retrying(url, lambda: self.render(url), (Exception,), action="browser render")

    def check_not_blocked(self, url: str, html: str, listings: list) -> None:
        if not listings and looks_blocked(html):
            raise FetchError(self.name, url, "blocked by WAF challenge")
