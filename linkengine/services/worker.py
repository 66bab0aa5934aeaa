import time
import logging
from typing import Any

from pydantic import ValidationError

from linkengine.core.config import settings
from linkengine.models.link import ContentType
from linkengine.models.scrape_job import JobStatus
from linkengine.schemas.scrape_job import ScrapeMessage
from linkengine.services.callbacks import ApiCallbackClient
from linkengine.services.scraping_engine import ScrapingEngine

logger = logging.getLogger(__name__)

class ScrapeWorker:
    """Runs one queued job from claim to final report.

    The job's status is decided by the scrape alone. Status reports, link
    feedback, discovery and ingestion go through the callback client, which
    never raises.
    """

    def __init__(self, engine: ScrapingEngine, callbacks: ApiCallbackClient, ingestion_enabled: bool = settings.INGESTION_ENABLED):
        self.engine = engine
        self.callbacks = callbacks
        self.ingestion_enabled = ingestion_enabled

    async def process(self, payload: Any) -> JobStatus:
        try:
            message = ScrapeMessage.model_validate(payload)
        except ValidationError as e:
            job_id = payload.get('jobId', payload.get('job_id')) if isinstance(payload, dict) else None
            logger.error(f"Rejected malformed job message (job {job_id}): {e}")
            if isinstance(job_id, int):
                await self.callbacks.report_job_status(job_id, JobStatus.FAILED.value, error=f"Invalid job message: {e}")
            return JobStatus.FAILED

        job_id = message.job_id
        url = message.target_url
        kind = message.kind
        options = message.options.model_copy()
        link_id = options.link_id

        logger.info(f"Processing job {job_id} for {url} ({kind})")
        await self.callbacks.report_job_status(job_id, JobStatus.PROCESSING.value)

        if not options.wait_for_selector and kind == ContentType.DOCUMENTATION.value:
            options.wait_for_selector = 'main'

        started = time.monotonic()
        try:
            result = await self.engine.scrape(url, kind, options)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.error(f"Job {job_id} failed: {error}")
            await self.callbacks.report_job_status(job_id, JobStatus.FAILED.value, error=error)
            if link_id is not None:
                await self.callbacks.update_link_after_scraping(
                    link_id, job_id, error=error, duration=time.monotonic() - started
                )
            return JobStatus.FAILED

        duration = time.monotonic() - started
        await self.callbacks.report_job_status(job_id, JobStatus.COMPLETED.value, result=result)
        await self.callbacks.discover_links(url, result)

        if link_id is not None:
            await self.callbacks.update_link_after_scraping(link_id, job_id, result=result, duration=duration)
            if self.ingestion_enabled:
                await self.callbacks.ingest(link_id)

        logger.info(f"Job {job_id} completed successfully ({result.word_count} words, {duration:.1f}s)")
        return JobStatus.COMPLETED
