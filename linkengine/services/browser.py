"""Headless browser capability used by the scraping engine.

The engine only needs a handful of page operations, captured by
``BrowserPage``. ``PlaywrightBrowser`` is the production implementation;
tests drive the engine with an in-memory page instead.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Protocol

from fake_useragent import UserAgent
from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

from linkengine.core.config import settings

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-accelerated-2d-canvas',
    '--no-first-run',
    '--no-zygote',
    '--disable-gpu',
]

class BrowserPage(Protocol):
    async def goto(self, url: str, timeout: int) -> Optional[int]:
        """Navigate and return the HTTP status, if known"""

    async def wait_for_selector(self, selector: str, timeout: int) -> None: ...

    async def wait_for_timeout(self, timeout: int) -> None: ...

    async def content(self) -> str: ...

    async def close(self) -> None: ...

class BrowserProvider(Protocol):
    def new_page(self) -> "AsyncIterator[BrowserPage]":
        """Async context manager yielding one page, closed on exit"""

class PlaywrightPage:
    def __init__(self, page: Page):
        self._page = page

    async def goto(self, url: str, timeout: int) -> Optional[int]:
        response = await self._page.goto(url, wait_until='domcontentloaded', timeout=timeout)
        return response.status if response else None

    async def wait_for_selector(self, selector: str, timeout: int) -> None:
        await self._page.wait_for_selector(selector, timeout=timeout)

    async def wait_for_timeout(self, timeout: int) -> None:
        await self._page.wait_for_timeout(timeout)

    async def content(self) -> str:
        return await self._page.content()

    async def close(self) -> None:
        await self._page.close()

class PlaywrightBrowser:
    """Chromium launched on first use and shut down when the scope exits"""

    def __init__(self, headless: bool = settings.HEADLESS_BROWSER, user_agent: Optional[str] = None):
        self.headless = headless
        self.user_agent = user_agent
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    async def __aenter__(self) -> "PlaywrightBrowser":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _resolve_user_agent(self) -> str:
        if self.user_agent:
            return self.user_agent
        if settings.ROTATE_USER_AGENTS:
            return UserAgent().random
        return settings.USER_AGENT

    async def _ensure_context(self) -> BrowserContext:
        if self._context is None:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=CHROMIUM_ARGS,
            )
            self._context = await self._browser.new_context(
                user_agent=self._resolve_user_agent(),
                viewport={'width': 1920, 'height': 1080},
            )
        return self._context

    @asynccontextmanager
    async def new_page(self) -> AsyncIterator[BrowserPage]:
        context = await self._ensure_context()
        page = await context.new_page()
        page.on('pageerror', lambda error: logger.warning(f"Page error on {page.url}: {error}"))
        page.on(
            'requestfailed',
            lambda request: logger.debug(f"Request failed on {page.url}: {request.url} {request.failure}"),
        )
        wrapped = PlaywrightPage(page)
        try:
            yield wrapped
        finally:
            await wrapped.close()

    async def close(self) -> None:
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
