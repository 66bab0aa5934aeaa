"""Recurring sweep that hands due links to the scrape queue.

One sweep selects up to ``batch_size`` active links whose ``next_scrape`` has
passed (or was never set), highest priority first, and queues a job for each.
The link's next interval is reserved as soon as its job is queued, so a slow
worker never causes the same link to be dispatched twice.

The in-process sweep guard only prevents overlapping sweeps inside one
process. Running a scheduler in several API replicas dispatches the same links
more than once; the hosting process decides how many schedulers exist.
"""

import asyncio
import logging
from contextlib import suppress
from datetime import datetime
from typing import Dict, Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from linkengine.core.config import settings
from linkengine.services.job_queue import JobQueue
from linkengine.services.job_service import JobService
from linkengine.services.link_registry import LinkRegistry

logger = logging.getLogger(__name__)

class LinkScheduler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        queue: JobQueue,
        interval_seconds: float = settings.SCHEDULER_INTERVAL_SECONDS,
        batch_size: int = settings.SCHEDULER_BATCH_SIZE,
        dispatch_delay: float = settings.SCHEDULER_DISPATCH_DELAY_SECONDS,
    ):
        self.session_factory = session_factory
        self.queue = queue
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self.dispatch_delay = dispatch_delay

        self.is_running = False
        self._sweeping = False
        self._task: Optional[asyncio.Task] = None
        self.last_sweep_at: Optional[datetime] = None
        self.last_sweep_dispatched = 0

    @property
    def is_sweeping(self) -> bool:
        return self._sweeping

    async def start(self) -> None:
        """Run one sweep now, then keep sweeping every interval until stopped"""
        if self.is_running:
            return

        self.is_running = True
        logger.info(
            f"Link scheduler started (every {self.interval_seconds}s, batch {self.batch_size})"
        )

        await self.process_scheduled_links()
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        self.is_running = False
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("Link scheduler stopped")

    async def _run_loop(self) -> None:
        while self.is_running:
            await asyncio.sleep(self.interval_seconds)
            if self.is_running:
                await self.process_scheduled_links()

    async def trigger_processing(self) -> int:
        logger.info("Manual trigger: processing scheduled links")
        return await self.process_scheduled_links()

    async def process_scheduled_links(self) -> int:
        """Run one sweep; returns the number of links dispatched"""
        if self._sweeping:
            logger.warning("Sweep already in progress, skipping")
            return 0

        self._sweeping = True
        dispatched = 0
        try:
            async with self.session_factory() as db:
                registry = LinkRegistry(db)
                job_service = JobService(db, self.queue)

                ready_links = await registry.get_links_for_scraping(self.batch_size)
                if not ready_links:
                    logger.info("No links ready for scraping")
                    return 0

                logger.info(f"Processing {len(ready_links)} links for scraping")

                # A rollback expires loaded rows, so each link is re-read by id
                candidates = [(link.id, link.url) for link in ready_links]
                for index, (link_id, url) in enumerate(candidates):
                    try:
                        link = await registry.get_link(link_id)
                        if link is None:
                            continue
                        job = await job_service.schedule_link_scrape(link, datetime.utcnow())
                        dispatched += 1
                        logger.info(f"Scheduled scraping for {url} (job: {job.id})")
                    except Exception as e:
                        await db.rollback()
                        logger.error(f"Failed to schedule scraping for {url}: {str(e)}")

                    if self.dispatch_delay and index < len(candidates) - 1:
                        await asyncio.sleep(self.dispatch_delay)

            return dispatched

        except Exception as e:
            logger.error(f"Failed to process scheduled links: {str(e)}", exc_info=True)
            return dispatched
        finally:
            self._sweeping = False
            self.last_sweep_at = datetime.utcnow()
            self.last_sweep_dispatched = dispatched

    def get_status(self) -> Dict[str, Any]:
        return {
            'is_running': self.is_running,
            'is_sweeping': self._sweeping,
            'interval_seconds': int(self.interval_seconds),
            'batch_size': self.batch_size,
            'last_sweep_at': self.last_sweep_at,
            'last_sweep_dispatched': self.last_sweep_dispatched,
        }
