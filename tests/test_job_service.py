"""Tests for job creation and status reporting."""

import pytest

from linkengine.core.exceptions import JobStateException, QueueException
from linkengine.schemas.scrape_job import JobStatusUpdate
from linkengine.schemas.scrape_result import ScrapeResult
from linkengine.services.job_service import JobService
from linkengine.services.link_registry import LinkRegistry


class TestCreateJob:

    async def test_job_is_persisted_then_enqueued(self, db, queue):
        job = await JobService(db, queue).create_job("https://example.com/a", "blog")

        assert job.status == "pending"
        assert job.kind == "blog"
        assert len(queue.messages) == 1
        message = queue.messages[0]
        assert message.job_id == job.id
        assert message.target_url == "https://example.com/a"

    async def test_enqueue_failure_marks_job_failed(self, db, make_queue):
        queue = make_queue(fail_for=["https://example.com/a"])

        with pytest.raises(QueueException):
            await JobService(db, queue).create_job("https://example.com/a")

        jobs, total = await JobService(db, queue).get_jobs()
        assert total == 1
        assert jobs[0].status == "failed"
        assert jobs[0].error.startswith("Failed to enqueue job")

    async def test_schedule_link_scrape_uses_link_options(self, db, queue):
        registry = LinkRegistry(db)
        link = await registry.create_link("https://example.com/docs/x")

        job = await JobService(db, queue).schedule_link_scrape(link)

        assert job.link_id == link.id
        assert job.kind == "documentation"
        assert job.options == {
            "extractImages": True,
            "extractLinks": True,
            "maxWaitTime": 10000,
            "linkId": link.id,
        }
        payload = queue.messages[0].model_dump(by_alias=True, exclude_none=True)
        assert payload["options"]["linkId"] == link.id
        assert link.next_scrape is not None


class TestUpdateJob:

    async def test_processing_sets_started_at(self, db, queue):
        service = JobService(db, queue)
        job = await service.create_job("https://example.com/a")

        job = await service.update_job(job.id, JobStatusUpdate(status="processing"))

        assert job.status == "processing"
        assert job.started_at is not None
        assert job.completed_at is None

    async def test_completed_stores_result(self, db, queue):
        service = JobService(db, queue)
        job = await service.create_job("https://example.com/a")
        result = ScrapeResult(title="A", content="body text", url="https://example.com/a", word_count=2)

        job = await service.update_job(job.id, JobStatusUpdate(status="completed", result=result))

        assert job.status == "completed"
        assert job.completed_at is not None
        assert job.result["wordCount"] == 2

    async def test_terminal_job_is_immutable(self, db, queue):
        service = JobService(db, queue)
        job = await service.create_job("https://example.com/a")
        await service.update_job(job.id, JobStatusUpdate(status="failed", error="Timeout"))

        with pytest.raises(JobStateException):
            await service.update_job(job.id, JobStatusUpdate(status="completed"))

        job = await service.get_job(job.id)
        assert job.status == "failed"
        assert job.error == "Timeout"

    async def test_missing_job_returns_none(self, db, queue):
        assert await JobService(db, queue).update_job(42, JobStatusUpdate(status="processing")) is None

    async def test_statistics(self, db, queue):
        service = JobService(db, queue)
        await service.create_job("https://example.com/a", "blog")
        job = await service.create_job("https://example.com/b", "news")
        await service.update_job(job.id, JobStatusUpdate(status="completed"))

        stats = await service.get_job_statistics()

        assert stats["total_jobs"] == 2
        assert stats["status_counts"] == {"pending": 1, "completed": 1}
        assert stats["kind_counts"] == {"blog": 1, "news": 1}
        assert stats["recent_jobs_24h"] == 2
