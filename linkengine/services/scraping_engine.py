import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from linkengine.core.config import settings
from linkengine.core.exceptions import NavigationException, ExtractionException
from linkengine.schemas.scrape_job import ScrapeOptions
from linkengine.schemas.scrape_result import ScrapeResult
from linkengine.services.browser import BrowserPage, BrowserProvider
from linkengine.services.content_extractor import ContentExtractor, UNTITLED

logger = logging.getLogger(__name__)

# Settle delay after navigation so client-side rendering can finish (ms)
SETTLE_DELAYS_MS = {
    'documentation': 4000,
    'blog': 3000,
    'news': 2000,
}
DEFAULT_SETTLE_DELAY_MS = 2000

class ScrapingEngine:
    """Drives one browser page per job through navigation, waits and extraction.

    Only navigation exhaustion and unexpected pipeline errors fail a scrape.
    A missing selector or a failing extraction sub-task degrades the result.
    """

    def __init__(
        self,
        browser: BrowserProvider,
        extractor: Optional[ContentExtractor] = None,
        navigation_timeout: int = settings.NAVIGATION_TIMEOUT_MS,
        navigation_attempts: int = settings.NAVIGATION_ATTEMPTS,
        retry_delay: int = settings.NAVIGATION_RETRY_DELAY_MS,
        selector_timeout: int = settings.SELECTOR_TIMEOUT_MS,
    ):
        self.browser = browser
        self.extractor = extractor or ContentExtractor()
        self.navigation_timeout = navigation_timeout
        self.navigation_attempts = max(1, navigation_attempts)
        self.retry_delay = retry_delay
        self.selector_timeout = selector_timeout

    async def scrape(self, url: str, kind: str = "unknown", options: Optional[ScrapeOptions] = None) -> ScrapeResult:
        options = options or ScrapeOptions()

        async with self.browser.new_page() as page:
            try:
                status_code = await self._navigate(page, url)

                if options.wait_for_selector:
                    await self._wait_for_selector(page, url, options.wait_for_selector, options.max_wait_time)

                await page.wait_for_timeout(self.get_wait_time_for_kind(kind))

                html = await page.content()
                return await self._extract(html, url, kind, options, status_code)

            except NavigationException:
                raise
            except Exception as e:
                logger.error(f"Scraping failed for {url}: {str(e)}")
                raise ExtractionException(f"Failed to scrape {url}: {str(e)}") from e

    async def _navigate(self, page: BrowserPage, url: str) -> Optional[int]:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.navigation_attempts + 1):
            try:
                return await page.goto(url, timeout=self.navigation_timeout)
            except Exception as e:
                last_error = e
                remaining = self.navigation_attempts - attempt
                if remaining == 0:
                    break
                logger.warning(f"Navigation to {url} failed, retrying... ({remaining} attempts left)")
                await page.wait_for_timeout(self.retry_delay)

        logger.error(f"Navigation to {url} failed after {self.navigation_attempts} attempts: {last_error}")
        raise NavigationException(f"Failed to scrape {url}: {str(last_error)}")

    async def _wait_for_selector(self, page: BrowserPage, url: str, selector: str, timeout: Optional[int]) -> None:
        try:
            await page.wait_for_selector(selector, timeout=timeout or self.selector_timeout)
        except Exception:
            logger.warning(f"Selector {selector} not found on {url}, continuing...")

    async def _run_extractor(self, name: str, url: str, default: Any, func: Callable, *args) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except Exception as e:
            logger.warning(f"{name} extraction failed for {url}: {str(e)}")
            return default

    async def _extract(
        self,
        html: str,
        url: str,
        kind: str,
        options: ScrapeOptions,
        status_code: Optional[int],
    ) -> ScrapeResult:
        soup = self.extractor.parse(html)
        extractor = self.extractor

        async def _skipped() -> list:
            return []

        title, content, metadata, images, links, video_links = await asyncio.gather(
            self._run_extractor("Title", url, UNTITLED, extractor.extract_title, soup),
            self._run_extractor("Content", url, None, extractor.extract_content, html, kind),
            self._run_extractor("Metadata", url, {}, extractor.extract_metadata, soup),
            self._run_extractor("Image", url, [], extractor.extract_images, soup, url)
            if options.extract_images else _skipped(),
            self._run_extractor("Link", url, [], extractor.extract_links, soup)
            if options.extract_links else _skipped(),
            self._run_extractor("Video link", url, [], extractor.extract_video_links, soup),
        )

        if content is None:
            # Structured extraction failed: fall back to the raw body text
            body = soup.body or soup
            content = body.get_text(" ")

        text_content = extractor.clean_text(content)
        word_count = extractor.count_words(text_content)
        reading_time = extractor.reading_time(word_count)

        return ScrapeResult(
            title=title or UNTITLED,
            content=text_content,
            url=url,
            metadata={
                **metadata,
                'kind': kind,
                'scraped_at': datetime.utcnow().isoformat(),
                'word_count': word_count,
                'reading_time': reading_time,
                'status_code': status_code if status_code is not None else 200,
            },
            images=images,
            links=links,
            video_links=video_links,
            word_count=word_count,
            reading_time=reading_time,
        )

    @staticmethod
    def get_wait_time_for_kind(kind: str) -> int:
        return SETTLE_DELAYS_MS.get(kind, DEFAULT_SETTLE_DELAY_MS)
