from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc, and_
from typing import List, Optional, Dict, Any
from datetime import datetime, timedelta
import logging

from linkengine.models.link import LinkRecord
from linkengine.models.scrape_job import ScrapeJob, JobStatus
from linkengine.schemas.scrape_job import ScrapeMessage, ScrapeOptions, JobStatusUpdate
from linkengine.services.job_queue import JobQueue
from linkengine.services.link_registry import LinkRegistry
from linkengine.core.exceptions import ScrapingException, QueueException, JobStateException

logger = logging.getLogger(__name__)

SCHEDULED_MAX_WAIT_TIME_MS = 10000

# Option sets offered to clients when creating a job by hand
JOB_PRESETS = [
    {
        "id": "blog-post",
        "name": "Blog Post",
        "description": "Extract blog post content with images and links",
        "kind": "blog",
        "options": {
            "extractImages": True,
            "extractLinks": True,
            "waitForSelector": "article, .post, .entry",
            "maxWaitTime": 5000,
        },
    },
    {
        "id": "news-article",
        "name": "News Article",
        "description": "Extract news article content quickly",
        "kind": "news",
        "options": {
            "extractImages": True,
            "extractLinks": False,
            "waitForSelector": "article, .story",
            "maxWaitTime": 3000,
        },
    },
    {
        "id": "documentation",
        "name": "Documentation",
        "description": "Extract technical documentation with full content",
        "kind": "documentation",
        "options": {
            "extractImages": True,
            "extractLinks": True,
            "waitForSelector": "main, .content, .documentation",
            "maxWaitTime": 8000,
        },
    },
    {
        "id": "generic-page",
        "name": "Generic Page",
        "description": "Extract any webpage content",
        "kind": "unknown",
        "options": {
            "extractImages": True,
            "extractLinks": True,
            "maxWaitTime": 10000,
        },
    },
]

class JobService:
    def __init__(self, db: AsyncSession, queue: Optional[JobQueue] = None):
        self.db = db
        self.queue = queue or JobQueue()

    async def create_job(
        self,
        target_url: str,
        kind: str = "unknown",
        options: Optional[ScrapeOptions] = None,
        link_id: Optional[int] = None,
    ) -> ScrapeJob:
        """Create a pending scrape job and hand it to the queue"""
        options = options or ScrapeOptions()
        if link_id is not None:
            options.link_id = link_id

        try:
            job = ScrapeJob(
                target_url=target_url,
                kind=kind,
                status=JobStatus.PENDING.value,
                options=options.model_dump(by_alias=True, exclude_none=True),
                link_id=options.link_id,
            )
            self.db.add(job)
            await self.db.commit()
            await self.db.refresh(job)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create job: {str(e)}")
            raise ScrapingException(f"Failed to create job: {str(e)}")

        message = ScrapeMessage(job_id=job.id, target_url=job.target_url, kind=job.kind, options=options)
        try:
            await self.queue.enqueue(message)
        except Exception as e:
            job.status = JobStatus.FAILED.value
            job.error = f"Failed to enqueue job: {str(e)}"
            job.completed_at = datetime.utcnow()
            await self.db.commit()
            logger.error(f"Failed to enqueue job {job.id} for {target_url}: {str(e)}")
            raise QueueException(f"Failed to enqueue job {job.id}: {str(e)}")

        logger.info(f"Created scrape job {job.id} for URL: {job.target_url} ({job.kind})")
        return job

    async def schedule_link_scrape(self, link: LinkRecord, now: Optional[datetime] = None) -> ScrapeJob:
        """Queue a scrape for a registry link and reserve its next interval"""
        options = ScrapeOptions(
            extract_images=True,
            extract_links=True,
            max_wait_time=SCHEDULED_MAX_WAIT_TIME_MS,
            link_id=link.id,
        )
        job = await self.create_job(link.url, link.content_type, options)
        await LinkRegistry(self.db).mark_scheduled(link, now)
        return job

    async def get_job(self, job_id: int) -> Optional[ScrapeJob]:
        """Get a specific job by ID"""
        result = await self.db.execute(select(ScrapeJob).where(ScrapeJob.id == job_id))
        return result.scalar_one_or_none()

    async def get_jobs(
        self,
        skip: int = 0,
        limit: int = 100,
        status: Optional[str] = None,
        kind: Optional[str] = None
    ) -> tuple[List[ScrapeJob], int]:
        """Get jobs with pagination and filters"""
        query = select(ScrapeJob)
        count_query = select(func.count(ScrapeJob.id))

        # Apply filters
        filters = []
        if status:
            filters.append(ScrapeJob.status == status)
        if kind:
            filters.append(ScrapeJob.kind == kind)

        if filters:
            query = query.where(and_(*filters))
            count_query = count_query.where(and_(*filters))

        total_result = await self.db.execute(count_query)
        total = total_result.scalar()

        query = query.order_by(desc(ScrapeJob.created_at), desc(ScrapeJob.id)).offset(skip).limit(limit)
        result = await self.db.execute(query)
        jobs = list(result.scalars().all())

        return jobs, total

    async def update_job(self, job_id: int, job_update: JobStatusUpdate) -> Optional[ScrapeJob]:
        """Replace the reported fields of a job; completed and failed jobs are immutable"""
        job = await self.get_job(job_id)
        if not job:
            return None

        if job.is_terminal:
            raise JobStateException(f"Job {job_id} is already {job.status}")

        update_data = job_update.model_dump(exclude_unset=True)
        now = datetime.utcnow()

        if 'status' in update_data and update_data['status'] is not None:
            status = job_update.status.value
            job.status = status
            if status == JobStatus.PROCESSING.value and job.started_at is None:
                job.started_at = now
            if status in (JobStatus.COMPLETED.value, JobStatus.FAILED.value):
                job.completed_at = now
        if 'result' in update_data:
            job.result = job_update.result.model_dump(by_alias=True) if job_update.result else None
        if 'error' in update_data:
            job.error = job_update.error
        job.updated_at = now

        try:
            await self.db.commit()
            await self.db.refresh(job)
            return job
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to update job {job_id}: {str(e)}")
            raise ScrapingException(f"Failed to update job: {str(e)}")

    async def get_job_statistics(self) -> Dict[str, Any]:
        """Get job statistics"""
        status_result = await self.db.execute(
            select(ScrapeJob.status, func.count(ScrapeJob.id))
            .group_by(ScrapeJob.status)
        )
        status_counts = dict(status_result.all())

        kind_result = await self.db.execute(
            select(ScrapeJob.kind, func.count(ScrapeJob.id))
            .group_by(ScrapeJob.kind)
        )
        kind_counts = dict(kind_result.all())

        # Recent activity (last 24 hours)
        yesterday = datetime.utcnow() - timedelta(days=1)
        recent_result = await self.db.execute(
            select(func.count(ScrapeJob.id))
            .where(ScrapeJob.created_at >= yesterday)
        )
        recent_jobs = recent_result.scalar()

        return {
            'total_jobs': sum(status_counts.values()),
            'status_counts': status_counts,
            'kind_counts': kind_counts,
            'recent_jobs_24h': recent_jobs,
        }
