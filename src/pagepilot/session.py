"""
PagePilot - Browser Session (Playwright)

Owns exactly one browser instance and one active page.

Lifecycle:
- acquire(): start Playwright, launch Chromium, open the active page
- active_page(): the only page capabilities may address
- release(): close everything; idempotent, safe on every exit path

Usage:
    async with BrowserSession(settings) as session:
        page = session.active_page()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from playwright.async_api import Browser, Page, Playwright, async_playwright

from pagepilot.config import BrowserSettings
from pagepilot.errors import LaunchError, SessionNotReady

logger = logging.getLogger("pagepilot.session")


class BrowserSession:
    """Single-browser, single-active-page session."""

    def __init__(
        self,
        settings: BrowserSettings | None = None,
        playwright_factory: Callable = async_playwright,
    ):
        self.settings = settings or BrowserSettings()
        self._playwright_factory = playwright_factory
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None
        self._extra_pages: list[Page] = []
        self._lock: asyncio.Lock | None = None  # Lazily initialised

    def _get_lock(self) -> asyncio.Lock:
        """Lazy init for the lifecycle lock (avoids binding to wrong event loop)."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def is_ready(self) -> bool:
        return self._page is not None

    @property
    def page_count(self) -> int:
        if self._page is None:
            return 0
        return 1 + len(self._extra_pages)

    # ── Lifecycle ──

    async def acquire(self) -> Page:
        """Launch the browser and open the active page. No-op if already acquired."""
        async with self._get_lock():
            if self._page is not None:
                return self._page

            try:
                self._playwright = await self._playwright_factory().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.settings.headless,
                    chromium_sandbox=True,
                    env={},
                    args=list(self.settings.launch_args),
                )
                self._page = await self._browser.new_page()
            except Exception as e:
                logger.error(f"Browser launch failed: {e}", exc_info=True)
                await self._teardown()
                raise LaunchError(
                    f"Browser launch failed: {e}. Run: playwright install chromium"
                ) from e

            logger.info(f"Browser session acquired (headless={self.settings.headless})")
            return self._page

    async def release(self):
        """Close browser and stop Playwright. Calling it twice is harmless."""
        async with self._get_lock():
            if self._playwright is None and self._browser is None:
                logger.debug("release() with no active session, nothing to do")
                return
            await self._teardown()
            logger.info("Browser session released")

    async def _teardown(self):
        """Drop all handles first so a failing close can't be retried."""
        browser, playwright = self._browser, self._playwright
        self._page = None
        self._extra_pages = []
        self._browser = None
        self._playwright = None

        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.warning(f"Browser close failed: {e}")

        # Stopping the driver is where Playwright leaks futures on shutdown
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.warning(f"Playwright stop failed: {e}")

    # ── Access ──

    def active_page(self) -> Page:
        if self._page is None:
            raise SessionNotReady()
        return self._page

    def browser(self) -> Browser:
        if self._browser is None or self._page is None:
            raise SessionNotReady()
        return self._browser

    async def open_page(self) -> Page:
        """Open an additional page. The active page stays the same."""
        page = await self.browser().new_page()
        self._extra_pages.append(page)
        logger.debug(f"Opened extra page ({self.page_count} total)")
        return page

    # ── Context manager ──

    async def __aenter__(self) -> "BrowserSession":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.release()
        return False


__all__ = ["BrowserSession"]
