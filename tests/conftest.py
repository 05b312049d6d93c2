"""
PagePilot - Test Configuration

Shared fixtures: a scriptable fake Playwright stack (driver -> browser -> page)
so the session, registry and capabilities run without a real browser.
"""

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from pagepilot.config import BrowserSettings
from pagepilot.session import BrowserSession

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


# ═══════════════════════════════════════════════════════════════════════════
# Fake Playwright
# ═══════════════════════════════════════════════════════════════════════════


class FakeElement:
    def __init__(self, box):
        self._box = box

    async def bounding_box(self):
        return self._box


class FakeMouse:
    def __init__(self):
        self.clicks: list[tuple] = []

    async def click(self, x, y):
        self.clicks.append((x, y))


class FakePage:
    """Records calls; elements maps selector -> bounding box (or None if hidden)."""

    def __init__(self, elements: dict | None = None, url: str = "about:blank"):
        self.url = url
        self.elements = dict(elements or {})
        self.values: dict[str, str] = {}
        self.clicks: list[tuple] = []
        self.waits: list[tuple] = []
        self.goto_calls: list[tuple] = []
        self.load_states: list[str] = []
        self.settle_waits: list[int] = []
        self.scroll_y = 0
        self.mouse = FakeMouse()
        self.page_title = "Example Domain"

        # Errors to raise on demand
        self.goto_error: Exception | None = None
        self.screenshot_error: Exception | None = None
        self.click_error: Exception | None = None
        self.query_error: Exception | None = None

    async def screenshot(self, type="png"):
        if self.screenshot_error:
            raise self.screenshot_error
        return PNG_BYTES

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append((url, wait_until, timeout))
        if self.goto_error:
            raise self.goto_error
        self.url = url

    async def wait_for_load_state(self, state):
        self.load_states.append(state)

    async def wait_for_timeout(self, ms):
        self.settle_waits.append(ms)

    async def title(self):
        return self.page_title

    async def wait_for_selector(self, selector, timeout=None):
        self.waits.append((selector, timeout))
        if selector not in self.elements:
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded.\n=== logs ===\nwaiting for locator('{selector}')")
        return FakeElement(self.elements[selector])

    async def click(self, selector, click_count=1):
        if self.click_error:
            raise self.click_error
        self.clicks.append((selector, click_count))

    async def fill(self, selector, text):
        self.values[selector] = text

    async def evaluate(self, script, arg=None):
        if "scrollBy" in script:
            self.scroll_y = max(0, self.scroll_y + arg)
            return None
        if "scrollY" in script:
            return self.scroll_y
        raise AssertionError(f"unexpected script: {script}")

    async def query_selector(self, selector):
        if self.query_error:
            raise self.query_error
        if selector not in self.elements:
            return None
        return FakeElement(self.elements[selector])


class FakeBrowser:
    def __init__(self, first_page: FakePage):
        self._first_page = first_page
        self.pages: list[FakePage] = []
        self.close_calls = 0
        self.new_page_error: Exception | None = None

    async def new_page(self):
        if self.new_page_error:
            raise self.new_page_error
        page = self._first_page if not self.pages else FakePage()
        self.pages.append(page)
        return page

    async def close(self):
        self.close_calls += 1


class FakeChromium:
    def __init__(self, browser: FakeBrowser):
        self.browser = browser
        self.launch_kwargs: dict | None = None
        self.launch_error: Exception | None = None

    async def launch(self, **kwargs):
        self.launch_kwargs = kwargs
        if self.launch_error:
            raise self.launch_error
        return self.browser


class FakePlaywright:
    def __init__(self, page: FakePage):
        self.page = page
        self.browser = FakeBrowser(page)
        self.chromium = FakeChromium(self.browser)
        self.start_calls = 0
        self.stop_calls = 0

    async def stop(self):
        self.stop_calls += 1

    def factory(self):
        """Stands in for async_playwright(): returns an object with start()."""
        fake = self

        class _Starter:
            async def start(self):
                fake.start_calls += 1
                return fake

        return _Starter()


# ═══════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def settings():
    return BrowserSettings(headless=False, selector_timeout_ms=10_000, settle_delay_ms=2_000)


@pytest.fixture
def fake_page():
    return FakePage(elements={
        "#signup": {"x": 10.0, "y": 20.0, "width": 80.0, "height": 30.0},
        "#first-name": {"x": 10.0, "y": 60.0, "width": 200.0, "height": 24.0},
        "#hidden": None,
    })


@pytest.fixture
def fake_playwright(fake_page):
    return FakePlaywright(fake_page)


@pytest.fixture
def session(settings, fake_playwright):
    """Unacquired session wired to the fake Playwright stack."""
    return BrowserSession(settings, playwright_factory=fake_playwright.factory)


@pytest.fixture
def session_factory(fake_playwright):
    """Factory with the Agent's session_factory signature."""
    def _make(settings):
        return BrowserSession(settings, playwright_factory=fake_playwright.factory)
    return _make
