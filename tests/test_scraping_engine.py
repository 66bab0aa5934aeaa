"""Tests for the scraping pipeline against an in-memory browser."""

import pytest

from linkengine.core.exceptions import NavigationException
from linkengine.schemas.scrape_job import ScrapeOptions
from linkengine.services.content_extractor import ContentExtractor
from linkengine.services.scraping_engine import ScrapingEngine
from tests.fakes import FakeBrowser, FakePage

PAGE = """
<html><head><title>Guide</title><meta name="description" content="How it works"></head>
<body><main>
  <h1>Guide</h1>
  <p>This guide explains how the widget pipeline works end to end.</p>
  <img src="/a.png">
  <a href="https://example.com/docs/next">Next</a>
</main></body></html>
"""


def _engine(page, extractor=None):
    return ScrapingEngine(
        FakeBrowser(page),
        extractor,
        navigation_timeout=1000,
        navigation_attempts=3,
        retry_delay=5,
        selector_timeout=50,
    )


class BrokenTitleExtractor(ContentExtractor):
    def extract_title(self, soup):
        raise ValueError("boom")


class TestNavigation:

    async def test_successful_scrape(self):
        page = FakePage(PAGE)

        result = await _engine(page).scrape("https://example.com/guide", "blog")

        assert result.title == "Guide"
        assert result.url == "https://example.com/guide"
        assert "# Guide" in result.content
        assert result.images == ["https://example.com/a.png"]
        assert result.links == ["https://example.com/docs/next"]
        assert result.word_count > 0
        assert result.reading_time == 1
        assert result.metadata["description"] == "How it works"
        assert result.metadata["kind"] == "blog"
        assert result.metadata["status_code"] == 200
        assert page.closed

    async def test_transient_navigation_failures_are_retried(self):
        page = FakePage(PAGE, goto_failures=2)

        result = await _engine(page).scrape("https://example.com/guide")

        assert result.title == "Guide"
        assert page.goto_calls == 3
        # two retry pauses, then the settle delay
        assert page.waits == [5, 5, 2000]

    async def test_exhausted_navigation_fails_and_closes_page(self):
        page = FakePage(PAGE, goto_failures=3)

        with pytest.raises(NavigationException) as exc_info:
            await _engine(page).scrape("https://example.com/guide")

        assert "Failed to scrape https://example.com/guide" in str(exc_info.value)
        assert page.goto_calls == 3
        assert page.closed


class TestWaits:

    @pytest.mark.parametrize("kind,delay", [
        ("documentation", 4000), ("blog", 3000), ("news", 2000), ("wiki", 2000),
    ])
    async def test_settle_delay_by_kind(self, kind, delay):
        page = FakePage(PAGE)

        await _engine(page).scrape("https://example.com/guide", kind)

        assert page.waits == [delay]

    async def test_missing_selector_is_not_fatal(self):
        page = FakePage(PAGE, selector_error=TimeoutError("selector timeout"))
        options = ScrapeOptions(wait_for_selector="main", max_wait_time=10000)

        result = await _engine(page).scrape("https://example.com/guide", "documentation", options)

        assert result.title == "Guide"
        assert page.selectors == [("main", 10000)]

    async def test_selector_wait_defaults_to_engine_timeout(self):
        page = FakePage(PAGE)

        await _engine(page).scrape("https://example.com/guide", options=ScrapeOptions(wait_for_selector="article"))

        assert page.selectors == [("article", 50)]


class TestDegradation:

    async def test_failing_sub_task_falls_back_to_default(self):
        page = FakePage(PAGE)

        result = await _engine(page, BrokenTitleExtractor()).scrape("https://example.com/guide")

        assert result.title == "Untitled"
        assert result.links == ["https://example.com/docs/next"]

    async def test_disabled_extractors_return_empty_lists(self):
        page = FakePage(PAGE)
        options = ScrapeOptions(extract_images=False, extract_links=False)

        result = await _engine(page).scrape("https://example.com/guide", options=options)

        assert result.images == []
        assert result.links == []

    async def test_missing_status_code_defaults_to_200(self):
        page = FakePage(PAGE, status=None)

        result = await _engine(page).scrape("https://example.com/guide")

        assert result.metadata["status_code"] == 200
