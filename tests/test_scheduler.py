"""Tests for the link scheduler sweep."""

import asyncio
from datetime import datetime, timedelta

from linkengine.services.scheduler import LinkScheduler


def _scheduler(session_factory, queue, batch_size=10, interval_seconds=3600):
    return LinkScheduler(
        session_factory,
        queue,
        interval_seconds=interval_seconds,
        batch_size=batch_size,
        dispatch_delay=0,
    )


class TestSweep:

    async def test_end_to_end_documentation_link(self, session_factory, queue, make_link, fetch_link):
        link = await make_link("https://example.com/docs/x", content_type="documentation")
        scheduler = _scheduler(session_factory, queue, batch_size=1)
        before = datetime.utcnow()

        dispatched = await scheduler.process_scheduled_links()

        after = datetime.utcnow()
        assert dispatched == 1
        assert queue.urls == ["https://example.com/docs/x"]
        stored = await fetch_link(link.id)
        assert before <= stored.last_scraped <= after
        assert before + timedelta(seconds=604800) <= stored.next_scrape <= after + timedelta(seconds=604800)
        assert stored.next_scrape - stored.last_scraped == timedelta(seconds=604800)

    async def test_higher_priority_link_goes_first(self, session_factory, queue, make_link):
        now = datetime.utcnow()
        await make_link("https://example.com/b", priority=3, next_scrape=now - timedelta(minutes=5))
        await make_link("https://example.com/a", priority=9, next_scrape=now - timedelta(minutes=1))
        scheduler = _scheduler(session_factory, queue, batch_size=1)

        await scheduler.process_scheduled_links()
        assert queue.urls == ["https://example.com/a"]

        await scheduler.process_scheduled_links()
        assert queue.urls == ["https://example.com/a", "https://example.com/b"]

    async def test_dispatched_link_is_not_reselected(self, session_factory, queue, make_link):
        await make_link("https://example.com/a")
        scheduler = _scheduler(session_factory, queue)

        assert await scheduler.process_scheduled_links() == 1
        assert await scheduler.process_scheduled_links() == 0
        assert queue.urls == ["https://example.com/a"]

    async def test_enqueue_failure_does_not_stop_the_sweep(self, session_factory, make_queue, make_link, fetch_link):
        queue = make_queue(fail_for=["https://example.com/a"])
        failing = await make_link("https://example.com/a", priority=9)
        healthy = await make_link("https://example.com/b", priority=1)
        scheduler = _scheduler(session_factory, queue)

        dispatched = await scheduler.process_scheduled_links()

        assert dispatched == 1
        assert queue.urls == ["https://example.com/b"]
        assert (await fetch_link(failing.id)).next_scrape is None
        assert (await fetch_link(healthy.id)).next_scrape is not None

    async def test_overlapping_sweeps_are_skipped(self, session_factory, queue, make_link):
        await make_link("https://example.com/a")
        await make_link("https://example.com/b")
        scheduler = _scheduler(session_factory, queue)

        results = await asyncio.gather(
            scheduler.process_scheduled_links(),
            scheduler.process_scheduled_links(),
        )

        assert sorted(results) == [0, 2]
        assert len(queue.messages) == 2

    async def test_empty_registry(self, session_factory, queue):
        scheduler = _scheduler(session_factory, queue)

        assert await scheduler.process_scheduled_links() == 0
        assert scheduler.last_sweep_at is not None


class TestLifecycle:

    async def test_start_sweeps_immediately_and_stop_cancels_loop(self, session_factory, queue, make_link):
        await make_link("https://example.com/a")
        scheduler = _scheduler(session_factory, queue)

        await scheduler.start()
        try:
            assert scheduler.is_running
            assert queue.urls == ["https://example.com/a"]
        finally:
            await scheduler.stop()

        assert not scheduler.is_running
        assert scheduler._task is None

    async def test_status_reports_last_sweep(self, session_factory, queue, make_link):
        await make_link("https://example.com/a")
        scheduler = _scheduler(session_factory, queue, batch_size=5)

        await scheduler.trigger_processing()
        status = scheduler.get_status()

        assert status["is_running"] is False
        assert status["is_sweeping"] is False
        assert status["batch_size"] == 5
        assert status["last_sweep_dispatched"] == 1
