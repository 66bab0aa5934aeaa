"""Tests for the link registry."""

from datetime import datetime, timedelta

import pytest

from linkengine.core.exceptions import LinkNotFoundException
from linkengine.schemas.link import LinkUpdate
from linkengine.services.link_discovery import LinkDiscoveryService
from linkengine.services.link_registry import LinkRegistry, canonical_url


class TestCacheLink:

    async def test_new_link_is_scheduled_one_interval_out(self, db):
        registry = LinkRegistry(db)
        before = datetime.utcnow()

        link = await registry.cache_link(
            "https://example.com/docs/start", "documentation", 0.9,
            discovered_from="https://example.com/", context="docs",
        )

        assert link.id is not None
        assert link.domain == "example.com"
        assert link.status == "active"
        assert link.priority == 9
        assert link.scrape_interval == 604800
        assert link.next_scrape >= before + timedelta(seconds=604800)
        assert link.discovered_from == "https://example.com/"
        assert link.link_metadata["confidence"] == 0.9

    async def test_news_interval(self, db):
        link = await LinkRegistry(db).cache_link("https://example.com/news/today", "news", 0.8)

        assert link.scrape_interval == 3600

    async def test_rediscovery_keeps_one_record_with_max_priority(self, db):
        registry = LinkRegistry(db)

        first = await registry.cache_link("https://example.com/blog/a", "blog", 0.6)
        second = await registry.cache_link("https://example.com/blog/a", "blog", 0.9)

        assert second.id == first.id
        assert second.priority == 9
        _, total = await registry.list_links()
        assert total == 1

    async def test_rediscovery_never_lowers_priority(self, db):
        registry = LinkRegistry(db)

        await registry.cache_link("https://example.com/blog/a", "blog", 0.9)
        link = await registry.cache_link("https://example.com/blog/a", "blog", 0.3)

        assert link.priority == 9

    async def test_unknown_rediscovery_keeps_known_type(self, db):
        registry = LinkRegistry(db)

        await registry.cache_link("https://example.com/docs/a", "documentation", 0.9)
        link = await registry.cache_link("https://example.com/docs/a", "unknown", 0.5)

        assert link.content_type == "documentation"

    async def test_unknown_type_falls_back_to_detection(self, db):
        link = await LinkRegistry(db).cache_link("https://stackoverflow.com/questions/1", "unknown", 0.5)

        assert link.content_type == "stackoverflow"


class TestUrlKeys:

    @pytest.mark.parametrize("url,key", [
        ("https://example.com", "https://example.com/"),
        ("https://Example.COM/Docs/x", "https://example.com/Docs/x"),
        ("https://example.com/a b", "https://example.com/a%20b"),
        ("https://example.com/a%20b", "https://example.com/a%20b"),
        ("HTTP://localhost:3000/x?q=a b", "http://localhost:3000/x?q=a%20b"),
    ])
    def test_canonical_url(self, url, key):
        assert canonical_url(url) == key

    async def test_manual_then_discovered_url_shares_one_record(self, db):
        registry = LinkRegistry(db)
        created = await registry.create_link("https://Example.com")

        await LinkDiscoveryService(db).discover_and_cache_links("https://example.com/feed", ["https://example.com/"])

        links, total = await registry.list_links()
        assert total == 1
        assert links[0].id == created.id
        assert links[0].url == "https://example.com/"
        assert (await registry.get_link_by_url("https://EXAMPLE.com")).id == created.id

    async def test_create_links_registers_each_distinct_url_once(self, db):
        registry = LinkRegistry(db)
        existing = await registry.create_link("https://example.com/blog/b")

        links = await registry.create_links([
            "https://example.com/docs/a",
            "https://EXAMPLE.com/docs/a",
            "https://example.com/blog/b",
        ])

        assert [l.url for l in links] == ["https://example.com/docs/a", "https://example.com/blog/b"]
        assert links[1].id == existing.id
        _, total = await registry.list_links()
        assert total == 2


class TestDiscovery:

    async def test_low_confidence_and_invalid_links_are_skipped(self, db):
        discovery = LinkDiscoveryService(db)

        results = await discovery.discover_and_cache_links(
            "https://example.com/",
            ["https://example.com/docs/a", "not a url", "https://example.com/about"],
            context="",
            min_confidence=0.6,
        )

        assert [r.url for r in results] == ["https://example.com/docs/a"]
        links, total = await LinkRegistry(db).list_links()
        assert total == 1
        assert links[0].discovered_from == "https://example.com/"

    async def test_batch_is_capped_and_deduplicated(self, db):
        discovery = LinkDiscoveryService(db)
        candidates = ["https://example.com/docs/a", "https://example.com/docs/a"] + [
            f"https://example.com/docs/{i}" for i in range(10)
        ]

        results = await discovery.discover_and_cache_links("https://example.com/", candidates, max_links=3)

        assert len(results) == 3
        assert results[0].url == "https://example.com/docs/a"

    async def test_fallback_content_type_for_unknown_links(self, db):
        discovery = LinkDiscoveryService(db)

        results = await discovery.discover_and_cache_links(
            "https://example.com/", ["https://example.com/about"], content_type="tutorial",
        )

        assert results[0].content_type == "tutorial"
        link = await LinkRegistry(db).get_link_by_url("https://example.com/about")
        assert link.scrape_interval == 2592000


class TestScheduling:

    async def test_manual_link_is_due_immediately(self, db):
        registry = LinkRegistry(db)
        link = await registry.create_link("https://example.com/docs/x")

        assert link.next_scrape is None
        assert link.content_type == "documentation"
        assert [l.id for l in await registry.get_links_for_scraping(10)] == [link.id]

    async def test_due_links_ordered_by_priority_then_due_time(self, db, make_link):
        now = datetime.utcnow()
        low = await make_link("https://example.com/low", priority=1, next_scrape=now - timedelta(hours=5))
        late = await make_link("https://example.com/late", priority=5, next_scrape=now - timedelta(minutes=1))
        early = await make_link("https://example.com/early", priority=5, next_scrape=now - timedelta(hours=1))
        never = await make_link("https://example.com/never", priority=5, next_scrape=None)

        ready = await LinkRegistry(db).get_links_for_scraping(10)

        assert [l.id for l in ready] == [never.id, early.id, late.id, low.id]

    async def test_only_active_due_links_are_selected(self, db, make_link):
        now = datetime.utcnow()
        due = await make_link("https://example.com/due", next_scrape=now - timedelta(minutes=1))
        await make_link("https://example.com/future", next_scrape=now + timedelta(hours=1))
        await make_link("https://example.com/broken", status="error", next_scrape=now - timedelta(hours=1))
        await make_link("https://example.com/off", status="inactive")

        ready = await LinkRegistry(db).get_links_for_scraping(10)

        assert [l.id for l in ready] == [due.id]

    async def test_mark_scheduled_reserves_next_interval(self, db):
        registry = LinkRegistry(db)
        link = await registry.create_link("https://news.example.com/a")
        now = datetime(2024, 1, 1, 12, 0, 0)

        link = await registry.mark_scheduled(link, now)

        assert link.last_scraped == now
        assert link.next_scrape == now + timedelta(seconds=3600)


class TestAdministration:

    async def test_update_link_clears_error_status(self, db, make_link):
        seeded = await make_link("https://example.com/a", status="error", error_count=3)

        link = await LinkRegistry(db).update_link(seeded.id, LinkUpdate(status="active", priority=4))

        assert link.status == "active"
        assert link.priority == 4
        assert link.error_count == 3

    async def test_update_missing_link_raises(self, db):
        with pytest.raises(LinkNotFoundException):
            await LinkRegistry(db).update_link(999, LinkUpdate(priority=1))

    async def test_bulk_update(self, db, make_link, fetch_link):
        a = await make_link("https://example.com/a")
        b = await make_link("https://example.com/b")
        c = await make_link("https://example.com/c")

        updated = await LinkRegistry(db).bulk_update_links([a.id, b.id], LinkUpdate(status="inactive"))

        assert updated == 2
        assert (await fetch_link(a.id)).status == "inactive"
        assert (await fetch_link(b.id)).status == "inactive"
        assert (await fetch_link(c.id)).status == "active"

    async def test_list_links_filters(self, db, make_link):
        await make_link("https://docs.example.com/a", content_type="documentation")
        await make_link("https://blog.other.org/b", content_type="blog")

        links, total = await LinkRegistry(db).list_links(domain="example.com")
        assert total == 1
        assert links[0].url == "https://docs.example.com/a"

        links, total = await LinkRegistry(db).list_links(content_type="blog")
        assert [l.url for l in links] == ["https://blog.other.org/b"]

        links, total = await LinkRegistry(db).list_links(query="OTHER")
        assert total == 1

    async def test_cache_stats(self, db, make_link):
        await make_link("https://example.com/a", content_type="blog")
        await make_link("https://example.com/b", content_type="blog", status="error")
        await make_link("https://other.org/c", content_type="news")

        stats = await LinkRegistry(db).get_cache_stats()

        assert stats["total"] == 3
        assert stats["active"] == 2
        assert stats["error"] == 1
        assert stats["by_content_type"] == {"blog": 2, "news": 1}
        assert stats["by_domain"]["example.com"] == 2
