from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, desc, and_, or_, case
from sqlalchemy.exc import IntegrityError
from typing import List, Optional, Dict, Any
from datetime import datetime, timedelta
from urllib.parse import quote, urlsplit, urlunsplit
import logging

from linkengine.core.config import settings
from linkengine.core.exceptions import ScrapingException, LinkNotFoundException
from linkengine.models.link import LinkRecord, LinkStatus, ContentType
from linkengine.models.scrape_job import ScrapeJob
from linkengine.models.scrape_history import ScrapeHistoryEntry
from linkengine.schemas.link import LinkUpdate
from linkengine.services.link_classifier import (
    LinkClassifier,
    extract_domain,
    get_scrape_interval,
    priority_from_confidence,
)

logger = logging.getLogger(__name__)

_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = _PATH_SAFE + "?"

def canonical_url(url: str) -> str:
    """Registry key for a URL: lowercased scheme and host, root path for a bare
    domain, and unsafe characters percent-encoded. Already-encoded input is kept."""
    parts = urlsplit(url.strip())
    userinfo, at, host = parts.netloc.rpartition("@")
    netloc = f"{userinfo}{at}{host.lower()}"
    return urlunsplit((
        parts.scheme.lower(),
        netloc,
        quote(parts.path or "/", safe=_PATH_SAFE),
        quote(parts.query, safe=_QUERY_SAFE),
        quote(parts.fragment, safe=_QUERY_SAFE),
    ))

class LinkRegistry:
    """Durable store of one LinkRecord per URL; the source of truth for scheduling state."""

    def __init__(self, db: AsyncSession, classifier: Optional[LinkClassifier] = None):
        self.db = db
        self.classifier = classifier or LinkClassifier()

    async def get_link(self, link_id: int) -> Optional[LinkRecord]:
        result = await self.db.execute(select(LinkRecord).where(LinkRecord.id == link_id))
        return result.scalar_one_or_none()

    async def get_link_by_url(self, url: str) -> Optional[LinkRecord]:
        result = await self.db.execute(select(LinkRecord).where(LinkRecord.url == canonical_url(url)))
        return result.scalar_one_or_none()

    async def cache_link(
        self,
        url: str,
        content_type: str,
        confidence: float,
        title: Optional[str] = None,
        discovered_from: Optional[str] = None,
        context: Optional[str] = None,
    ) -> LinkRecord:
        """Upsert a discovered link; the URL is the natural key"""
        url = canonical_url(url)
        try:
            existing = await self.get_link_by_url(url)
            if existing:
                return await self._apply_rediscovery(existing, content_type, confidence, title)

            domain = extract_domain(url)
            if content_type == ContentType.UNKNOWN.value:
                content_type = self.classifier.detect_content_type(url, domain, title)

            scrape_interval = get_scrape_interval(content_type)
            now = datetime.utcnow()

            link = LinkRecord(
                url=url,
                title=title,
                domain=domain,
                content_type=content_type,
                status=LinkStatus.ACTIVE.value,
                discovered_from=discovered_from,
                scrape_interval=scrape_interval,
                next_scrape=now + timedelta(seconds=scrape_interval),
                priority=priority_from_confidence(confidence),
                success_count=0,
                error_count=0,
                tags=[],
                link_metadata={
                    'confidence': confidence,
                    'context': context,
                    'discovered_at': now.isoformat(),
                },
            )
            self.db.add(link)
            await self.db.commit()
            await self.db.refresh(link)

            logger.info(f"Cached new link {link.id} ({content_type}, priority {link.priority}): {url}")
            return link

        except IntegrityError:
            # Lost a race with a concurrent discovery of the same URL
            await self.db.rollback()
            existing = await self.get_link_by_url(url)
            if existing is None:
                raise
            return await self._apply_rediscovery(existing, content_type, confidence, title)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to cache link {url}: {str(e)}")
            raise ScrapingException(f"Failed to cache link: {str(e)}")

    async def _apply_rediscovery(
        self,
        link: LinkRecord,
        content_type: str,
        confidence: float,
        title: Optional[str],
    ) -> LinkRecord:
        if title:
            link.title = title
        if content_type and content_type != ContentType.UNKNOWN.value:
            link.content_type = content_type
        # Priority only ever rises on rediscovery
        link.priority = max(link.priority or 0, priority_from_confidence(confidence))
        link.updated_at = datetime.utcnow()

        await self.db.commit()
        await self.db.refresh(link)
        return link

    async def create_link(
        self,
        url: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> LinkRecord:
        """Register a link by hand; it is due immediately"""
        url = canonical_url(url)
        existing = await self.get_link_by_url(url)
        if existing:
            return existing

        try:
            domain = extract_domain(url)
            content_type = self.classifier.detect_content_type(url, domain, title)
            link = LinkRecord(
                url=url,
                title=title,
                description=description,
                domain=domain,
                content_type=content_type,
                status=LinkStatus.ACTIVE.value,
                scrape_interval=get_scrape_interval(content_type),
                next_scrape=None,
                priority=0,
                success_count=0,
                error_count=0,
                tags=[],
            )
            self.db.add(link)
            await self.db.commit()
            await self.db.refresh(link)

            logger.info(f"Created link {link.id} for URL: {url}")
            return link

        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create link {url}: {str(e)}")
            raise ScrapingException(f"Failed to create link: {str(e)}")

    async def create_links(self, urls: List[str]) -> List[LinkRecord]:
        """Register several URLs by hand, one record per distinct URL in request order"""
        links: List[LinkRecord] = []
        seen = set()
        for url in urls:
            key = canonical_url(url)
            if key in seen:
                continue
            seen.add(key)
            links.append(await self.create_link(key))

        logger.info(f"Registered {len(links)} links from a bulk request of {len(urls)}")
        return links

    async def list_links(
        self,
        query: Optional[str] = None,
        content_type: Optional[str] = None,
        domain: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[List[LinkRecord], int]:
        """Get links with pagination and filters"""
        filters = []
        if query:
            pattern = f"%{query.lower()}%"
            filters.append(or_(
                func.lower(LinkRecord.title).like(pattern),
                func.lower(LinkRecord.description).like(pattern),
                func.lower(LinkRecord.url).like(pattern),
            ))
        if content_type:
            filters.append(LinkRecord.content_type == content_type)
        if domain:
            filters.append(func.lower(LinkRecord.domain).like(f"%{domain.lower()}%"))
        if status:
            filters.append(LinkRecord.status == status)

        query_stmt = select(LinkRecord)
        count_stmt = select(func.count(LinkRecord.id))
        if filters:
            query_stmt = query_stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar()

        query_stmt = query_stmt.order_by(desc(LinkRecord.priority), desc(LinkRecord.created_at)).offset(skip).limit(limit)
        result = await self.db.execute(query_stmt)
        return list(result.scalars().all()), total

    async def get_links_for_scraping(self, limit: int = 10, now: Optional[datetime] = None) -> List[LinkRecord]:
        """Active links that are due, highest priority first, earliest due first within a priority"""
        now = now or datetime.utcnow()
        result = await self.db.execute(
            select(LinkRecord)
            .where(
                and_(
                    LinkRecord.status == LinkStatus.ACTIVE.value,
                    or_(LinkRecord.next_scrape <= now, LinkRecord.next_scrape.is_(None)),
                )
            )
            .order_by(desc(LinkRecord.priority), LinkRecord.next_scrape.asc().nulls_first(), LinkRecord.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_scheduled(self, link: LinkRecord, now: Optional[datetime] = None) -> LinkRecord:
        """Reserve the next interval for a link as soon as its job is queued"""
        now = now or datetime.utcnow()
        link.last_scraped = now
        link.next_scrape = now + timedelta(seconds=link.scrape_interval or get_scrape_interval(link.content_type))
        link.updated_at = now
        await self.db.commit()
        await self.db.refresh(link)
        return link

    async def has_scrape_record(self, link_id: int, job_id: int) -> bool:
        result = await self.db.execute(
            select(func.count(ScrapeHistoryEntry.id)).where(
                and_(ScrapeHistoryEntry.link_id == link_id, ScrapeHistoryEntry.job_id == job_id)
            )
        )
        return result.scalar() > 0

    async def record_outcome(
        self,
        link: LinkRecord,
        job_id: int,
        result: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> LinkRecord:
        """Apply one scrape outcome to the link and append its history entry.

        Counter updates are issued as SQL increments so concurrent outcomes for
        the same link never overwrite each other.
        """
        now = datetime.utcnow()
        values: Dict[str, Any] = {'updated_at': now}

        if error is not None:
            threshold = settings.LINK_ERROR_THRESHOLD
            values.update(
                error_count=LinkRecord.error_count + 1,
                last_error=error,
                status=case(
                    (LinkRecord.error_count + 1 >= threshold, LinkStatus.ERROR.value),
                    else_=LinkStatus.ACTIVE.value,
                ),
            )
        else:
            values.update(
                success_count=LinkRecord.success_count + 1,
                last_error=None,
                status=LinkStatus.ACTIVE.value,
            )
            if result and result.get('title'):
                values['title'] = result['title'][:500]
            description = ((result or {}).get('metadata') or {}).get('description')
            if description:
                values['description'] = description

        try:
            await self.db.execute(
                update(LinkRecord)
                .where(LinkRecord.id == link.id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            self.db.add(ScrapeHistoryEntry(
                link_id=link.id,
                job_id=job_id,
                status='failed' if error is not None else 'completed',
                result=None if error is not None else result,
                error=error,
                scraped_at=now,
                duration=duration,
            ))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(link)
        return link

    async def update_link(self, link_id: int, link_update: LinkUpdate) -> LinkRecord:
        """Administrative edit; the only way a link leaves the error state"""
        link = await self.get_link(link_id)
        if not link:
            raise LinkNotFoundException(f"Link {link_id} not found")

        update_data = link_update.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(link, field, value.value if hasattr(value, 'value') else value)
        link.updated_at = datetime.utcnow()

        try:
            await self.db.commit()
            await self.db.refresh(link)
            return link
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to update link {link_id}: {str(e)}")
            raise ScrapingException(f"Failed to update link: {str(e)}")

    async def bulk_update_links(self, link_ids: List[int], link_update: LinkUpdate) -> int:
        update_data = {
            field: value.value if hasattr(value, 'value') else value
            for field, value in link_update.model_dump(exclude_unset=True).items()
        }
        if not update_data or not link_ids:
            return 0
        update_data['updated_at'] = datetime.utcnow()

        try:
            result = await self.db.execute(
                update(LinkRecord)
                .where(LinkRecord.id.in_(link_ids))
                .values(**update_data)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            return result.rowcount
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Bulk update failed: {str(e)}")
            raise ScrapingException(f"Failed to update links: {str(e)}")

    async def get_scrape_history(self, link_id: int, skip: int = 0, limit: int = 50) -> List[ScrapeHistoryEntry]:
        result = await self.db.execute(
            select(ScrapeHistoryEntry)
            .where(ScrapeHistoryEntry.link_id == link_id)
            .order_by(desc(ScrapeHistoryEntry.scraped_at), desc(ScrapeHistoryEntry.id))
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_job_started_at(self, job_id: int) -> Optional[datetime]:
        result = await self.db.execute(select(ScrapeJob.started_at).where(ScrapeJob.id == job_id))
        return result.scalar_one_or_none()

    async def get_cache_stats(self) -> Dict[str, Any]:
        """Get link registry statistics"""
        status_result = await self.db.execute(
            select(LinkRecord.status, func.count(LinkRecord.id)).group_by(LinkRecord.status)
        )
        status_counts = dict(status_result.all())

        type_result = await self.db.execute(
            select(LinkRecord.content_type, func.count(LinkRecord.id)).group_by(LinkRecord.content_type)
        )

        domain_count = func.count(LinkRecord.id)
        domain_result = await self.db.execute(
            select(LinkRecord.domain, domain_count)
            .group_by(LinkRecord.domain)
            .order_by(desc(domain_count))
            .limit(10)
        )

        return {
            'total': sum(status_counts.values()),
            'active': status_counts.get(LinkStatus.ACTIVE.value, 0),
            'inactive': status_counts.get(LinkStatus.INACTIVE.value, 0),
            'error': status_counts.get(LinkStatus.ERROR.value, 0),
            'blocked': status_counts.get(LinkStatus.BLOCKED.value, 0),
            'by_content_type': dict(type_result.all()),
            'by_domain': dict(domain_result.all()),
        }
