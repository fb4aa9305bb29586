from types import SimpleNamespace

import pytest
import requests
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from agents.mailer import RESEND_API_URL, ResendMailer
from agents.page_fetcher import BrowserPageFetcher, StaticPageFetcher, html_to_text, make_page_fetcher
from utils.config import IngestionConfig
from utils.errors import MailDeliveryError, PageFetchError

PAGE = """
<html>
  <head><title>Cozonac</title><style>body { color: red; }</style></head>
  <body>
    <nav>Home | Recipes</nav>
    <h1>Cozonac</h1>
    <ul><li>500g faina</li><li>7g drojdie</li></ul>
    <script>trackVisitor();</script>
    <footer>Copyright</footer>
  </body>
</html>
"""


class FakeHttpSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.requests = []

    def _respond(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def get(self, url, **kwargs):
        return self._respond("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._respond("POST", url, **kwargs)


def ok_response(text="", payload=None):
    return SimpleNamespace(text=text, raise_for_status=lambda: None, json=lambda: payload or {})


def test_html_to_text_keeps_only_visible_content():
    assert html_to_text(PAGE) == "Cozonac\n500g faina\n7g drojdie"


def test_fetcher_sends_user_agent_and_timeout():
    session = FakeHttpSession(response=ok_response(PAGE))
    fetcher = StaticPageFetcher("TestAgent/1.0", timeout=5, session=session)

    assert fetcher.fetch_text("https://example.com/cozonac").startswith("Cozonac")
    assert session.headers["User-Agent"] == "TestAgent/1.0"
    assert session.requests[0][2]["timeout"] == 5


def test_fetcher_wraps_request_errors():
    session = FakeHttpSession(error=requests.ConnectionError("connection refused"))
    fetcher = StaticPageFetcher("TestAgent/1.0", session=session)

    with pytest.raises(PageFetchError, match="connection refused"):
        fetcher.fetch_text("https://example.com")


def test_fetcher_rejects_empty_pages():
    fetcher = StaticPageFetcher("TestAgent/1.0", session=FakeHttpSession(response=ok_response("<html></html>")))

    with pytest.raises(PageFetchError):
        fetcher.fetch_text("https://example.com")


class FakePage:
    def __init__(self, body_text, status=200, goto_error=None):
        self.body_text = body_text
        self.status = status
        self.goto_error = goto_error
        self.calls = []

    def goto(self, url, timeout=None, wait_until=None):
        self.calls.append(("goto", url, timeout, wait_until))
        if self.goto_error is not None:
            raise self.goto_error
        return SimpleNamespace(ok=self.status < 400, status=self.status)

    def wait_for_timeout(self, timeout):
        self.calls.append(("wait", timeout))

    def inner_text(self, selector, timeout=None):
        self.calls.append(("inner_text", selector))
        return self.body_text


class FakeBrowser:
    def __init__(self, page):
        self.page = page
        self.page_options = None
        self.closed = False

    def new_page(self, **options):
        self.page_options = options
        return self.page

    def close(self):
        self.closed = True


class FakePlaywright:
    """Stands in for sync_playwright(): a context manager exposing chromium.launch()."""

    def __init__(self, browser):
        self.browser = browser
        self.launch_options = None
        self.chromium = SimpleNamespace(launch=self.launch)

    def launch(self, **options):
        self.launch_options = options
        return self.browser

    def __call__(self):
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


def browser_fetcher(page, **kwargs):
    playwright = FakePlaywright(FakeBrowser(page))
    return BrowserPageFetcher("TestAgent/1.0", playwright_factory=playwright, **kwargs), playwright


def test_browser_fetcher_renders_and_waits_before_reading():
    page = FakePage("  Cozonac \n\n500g faina\n  7g drojdie  ")
    fetcher, playwright = browser_fetcher(page, timeout=10, settle_seconds=2)

    assert fetcher.fetch_text("https://example.com/cozonac") == "Cozonac\n500g faina\n7g drojdie"
    assert playwright.launch_options == {"headless": True}
    assert playwright.browser.page_options == {"user_agent": "TestAgent/1.0"}
    assert page.calls == [
        ("goto", "https://example.com/cozonac", 10000, "domcontentloaded"),
        ("wait", 2000),
        ("inner_text", "body"),
    ]
    assert playwright.browser.closed


def test_browser_fetcher_wraps_navigation_timeouts():
    page = FakePage("", goto_error=PlaywrightTimeoutError("Timeout 10000ms exceeded."))
    fetcher, playwright = browser_fetcher(page, timeout=10)

    with pytest.raises(PageFetchError, match="Timeout 10000ms exceeded"):
        fetcher.fetch_text("https://slow.example.com")
    assert playwright.browser.closed


@pytest.mark.parametrize(
    "page",
    (
        FakePage("Not found", status=404),
        FakePage("   \n  "),
    ),
)
def test_browser_fetcher_rejects_error_and_empty_pages(page):
    fetcher, _ = browser_fetcher(page)

    with pytest.raises(PageFetchError):
        fetcher.fetch_text("https://example.com")


def ingestion_config(fetch_mode):
    return IngestionConfig(rate_delay_seconds=2.0, page_fetch_timeout=15, chunk_size=1200, chunk_overlap=200,
                           user_agent="TestAgent/1.0", fetch_mode=fetch_mode, settle_seconds=1.5)


def test_make_page_fetcher_picks_the_configured_mode():
    browser = make_page_fetcher(ingestion_config("browser"))
    assert isinstance(browser, BrowserPageFetcher)
    assert (browser.timeout, browser.settle_seconds) == (15, 1.5)

    assert isinstance(make_page_fetcher(ingestion_config(" Static ")), StaticPageFetcher)
    with pytest.raises(ValueError):
        make_page_fetcher(ingestion_config("carrier-pigeon"))


def test_mailer_posts_to_resend():
    session = FakeHttpSession(response=ok_response(payload={"id": "email-123"}))
    mailer = ResendMailer("re_key", "ChefBot <chef@example.com>", session=session)

    assert mailer.send("anna@example.com", "Soup", "Boil lentils") == "Email sent to anna@example.com (id: email-123)"
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("POST", RESEND_API_URL)
    assert kwargs["json"] == {
        "from": "ChefBot <chef@example.com>",
        "to": ["anna@example.com"],
        "subject": "Soup",
        "text": "Boil lentils",
    }
    assert kwargs["headers"]["Authorization"] == "Bearer re_key"


def test_mailer_errors():
    session = FakeHttpSession(error=requests.Timeout("timed out"))

    with pytest.raises(MailDeliveryError):
        ResendMailer("re_key", "chef@example.com", session=session).send("a@b.co", "s", "t")
    with pytest.raises(ValueError):
        ResendMailer("", "chef@example.com")
