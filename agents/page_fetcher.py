# agents/page_fetcher.py

"""
Page text for the ingestion pipeline and the fetch_content tool.

Two ways to read a page: render it in headless Chromium through Playwright
(the default, needed for recipe sites that build their content in the
browser), or download the HTML with requests and strip it with
BeautifulSoup. PAGE_FETCH_MODE picks one.
"""

import requests
from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError, sync_playwright

from utils.errors import PageFetchError
from utils.logging_config import get_logger

logger = get_logger(__name__)

FETCH_MODE_BROWSER = "browser"
FETCH_MODE_STATIC = "static"

# Elements that never hold recipe text
_NOISE_TAGS = ["script", "style", "noscript", "iframe", "svg", "nav", "footer", "header", "form"]


def _visible_lines(text: str) -> str:
    lines = (line.strip() for line in (text or "").splitlines())
    return "\n".join(line for line in lines if line)


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_NOISE_TAGS):
        tag.decompose()
    root = soup.body or soup
    return _visible_lines(root.get_text("\n"))


class PageFetcher:
    """What the extractor and the fetch_content tool need: a URL in, readable text out."""

    def fetch_text(self, url: str) -> str:
        raise NotImplementedError


class BrowserPageFetcher(PageFetcher):
    """
    Renders the page in headless Chromium and returns the body's visible text.

    Navigation is bounded by `timeout` seconds. After the page loads the
    fetcher waits `settle_seconds` so client-side scripts can fill in the
    content. Any Playwright failure, a navigation timeout
    included, is raised as PageFetchError.
    """

    def __init__(self, user_agent: str, timeout: float = 30.0, settle_seconds: float = 2.0,
                 playwright_factory=sync_playwright):
        self.user_agent = user_agent
        self.timeout = timeout
        self.settle_seconds = settle_seconds
        self.playwright_factory = playwright_factory

    def fetch_text(self, url: str) -> str:
        logger.info("Rendering %s", url)
        timeout_ms = self.timeout * 1000
        try:
            with self.playwright_factory() as playwright:
                browser = playwright.chromium.launch(headless=True)
                try:
                    page = browser.new_page(user_agent=self.user_agent)
                    response = page.goto(url, timeout=timeout_ms, wait_until="domcontentloaded")
                    if response is not None and not response.ok:
                        raise PageFetchError(f"Could not fetch {url}: HTTP {response.status}")
                    page.wait_for_timeout(self.settle_seconds * 1000)
                    raw_text = page.inner_text("body", timeout=timeout_ms)
                finally:
                    browser.close()
        except PlaywrightError as e:
            raise PageFetchError(f"Could not render {url}: {e}") from e

        text = _visible_lines(raw_text)
        if not text:
            raise PageFetchError(f"No readable text at {url}")
        logger.debug("Rendered %s (%d chars)", url, len(text))
        return text


class StaticPageFetcher(PageFetcher):
    """Downloads the HTML and returns its visible text. Pages rendered by scripts come back mostly empty."""

    def __init__(self, user_agent: str, timeout: float = 30.0, session=None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept-Language": "en-US,en;q=0.9",
        })

    def fetch_text(self, url: str) -> str:
        logger.info("Fetching %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise PageFetchError(f"Could not fetch {url}: {e}") from e

        text = html_to_text(response.text)
        if not text:
            raise PageFetchError(f"No readable text at {url}")
        return text


def make_page_fetcher(ingestion_config) -> PageFetcher:
    mode = (ingestion_config.fetch_mode or FETCH_MODE_BROWSER).strip().lower()
    if mode == FETCH_MODE_BROWSER:
        return BrowserPageFetcher(
            ingestion_config.user_agent,
            timeout=ingestion_config.page_fetch_timeout,
            settle_seconds=ingestion_config.settle_seconds,
        )
    if mode == FETCH_MODE_STATIC:
        return StaticPageFetcher(ingestion_config.user_agent, timeout=ingestion_config.page_fetch_timeout)
    raise ValueError(f"Unknown PAGE_FETCH_MODE: {ingestion_config.fetch_mode}")
