from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from typing import Optional
from datetime import datetime
import logging

from linkengine.core.config import settings
from linkengine.core.exceptions import LinkNotFoundException
from linkengine.models.link import LinkRecord
from linkengine.schemas.scrape_result import ScrapeResult
from linkengine.services.link_classifier import LinkClassifier
from linkengine.services.link_discovery import LinkDiscoveryService
from linkengine.services.link_registry import LinkRegistry

logger = logging.getLogger(__name__)

class FeedbackUpdater:
    """Applies a finished job's outcome back onto its owning link.

    A success bumps successCount, clears lastError and forces the link back to
    active, then feeds the extracted links into discovery. A failure bumps
    errorCount and moves the link to error once the threshold is reached.
    Outcomes are keyed by job id: a redelivered job that already has a
    history entry for the link leaves the counters untouched.
    """

    def __init__(self, db: AsyncSession, classifier: Optional[LinkClassifier] = None):
        self.db = db
        self.classifier = classifier or LinkClassifier()
        self.registry = LinkRegistry(db, self.classifier)
        self.discovery = LinkDiscoveryService(db, self.classifier)

    async def apply(
        self,
        link_id: int,
        job_id: int,
        result: Optional[ScrapeResult] = None,
        error: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> LinkRecord:
        link = await self.registry.get_link(link_id)
        if not link:
            raise LinkNotFoundException(f"Link {link_id} not found")

        if await self.registry.has_scrape_record(link_id, job_id):
            logger.warning(f"Ignoring duplicate outcome for link {link_id} (job {job_id})")
            return link

        if error is None and result is None:
            error = "Scrape finished without a result"

        if duration is None:
            started_at = await self.registry.get_job_started_at(job_id)
            if started_at:
                duration = max(0.0, (datetime.utcnow() - started_at).total_seconds())

        payload = result.model_dump(by_alias=True) if result is not None and error is None else None
        try:
            link = await self.registry.record_outcome(link, job_id, result=payload, error=error, duration=duration)
        except IntegrityError:
            # A concurrent delivery of the same job recorded it first
            logger.warning(f"Duplicate outcome for link {link_id} (job {job_id}) lost the race, skipping")
            await self.db.refresh(link)
            return link

        if error is not None:
            logger.warning(
                f"Link {link_id} scrape failed ({link.error_count} errors, status {link.status}): {error}"
            )
            return link

        logger.info(f"Link {link_id} scraped successfully ({link.success_count} successes)")

        if result.links:
            try:
                await self.discovery.discover_and_cache_links(
                    link.url,
                    result.links,
                    context=result.content,
                    max_links=settings.DISCOVERY_MAX_LINKS,
                    min_confidence=settings.DISCOVERY_MIN_CONFIDENCE,
                )
            except Exception as e:
                logger.warning(f"Link discovery after scrape of {link.url} failed: {str(e)}")

        return link
