import asyncio
import logging

from linkengine.celery_app import celery_app, SCRAPE_TASK_NAME
from linkengine.services.browser import PlaywrightBrowser
from linkengine.services.callbacks import ApiCallbackClient
from linkengine.services.scraping_engine import ScrapingEngine
from linkengine.services.worker import ScrapeWorker

logger = logging.getLogger(__name__)

@celery_app.task(bind=True, name=SCRAPE_TASK_NAME, acks_late=True)
def execute_scrape_job(self, message: dict):
    """Consume one scrape message: scrape the page and report back to the API"""
    job_id = message.get('jobId') if isinstance(message, dict) else None
    try:
        self.update_state(state='PROGRESS', meta={'job_id': job_id, 'status': 'processing'})

        async def _execute():
            # One browser scope per job, closed on every exit path
            async with PlaywrightBrowser() as browser, ApiCallbackClient() as callbacks:
                worker = ScrapeWorker(ScrapingEngine(browser), callbacks)
                return await worker.process(message)

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            status = loop.run_until_complete(_execute())
        finally:
            loop.close()

        return {'job_id': job_id, 'status': status.value}

    except Exception as e:
        logger.error(f"Task failed for job {job_id}: {str(e)}")
        self.update_state(
            state='FAILURE',
            meta={'job_id': job_id, 'error': str(e)}
        )
        raise
