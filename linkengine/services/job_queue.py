import asyncio
import logging
from typing import Optional

from celery import Celery

from linkengine.celery_app import celery_app, SCRAPE_TASK_NAME, SCRAPE_QUEUE
from linkengine.schemas.scrape_job import ScrapeMessage

logger = logging.getLogger(__name__)

class JobQueue:
    """Producer side of the durable scrape queue.

    Messages are published by task name so producers never import the worker
    code (and its browser dependency).
    """

    def __init__(self, app: Optional[Celery] = None, queue: str = SCRAPE_QUEUE):
        self.app = app or celery_app
        self.queue = queue

    async def enqueue(self, message: ScrapeMessage) -> str:
        payload = message.model_dump(by_alias=True, exclude_none=True)
        async_result = await asyncio.to_thread(
            self.app.send_task,
            SCRAPE_TASK_NAME,
            args=[payload],
            queue=self.queue,
        )
        logger.debug(f"Enqueued job {message.job_id} as task {async_result.id}")
        return async_result.id
