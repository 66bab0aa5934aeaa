from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional, Sequence
import logging

from linkengine.models.link import ContentType
from linkengine.schemas.scrape_result import LinkDiscoveryResult
from linkengine.services.link_classifier import LinkClassifier
from linkengine.services.link_registry import LinkRegistry, canonical_url

logger = logging.getLogger(__name__)

class LinkDiscoveryService:
    """Turns links extracted from a page into scored, typed registry entries."""

    def __init__(self, db: AsyncSession, classifier: Optional[LinkClassifier] = None):
        self.classifier = classifier or LinkClassifier()
        self.registry = LinkRegistry(db, self.classifier)

    async def discover_and_cache_links(
        self,
        source_url: str,
        links: Sequence[str],
        context: Optional[str] = None,
        max_links: int = 50,
        min_confidence: float = 0.3,
        content_type: Optional[str] = None,
    ) -> List[LinkDiscoveryResult]:
        """Score up to max_links candidates and upsert the ones at or above min_confidence"""
        discovered: List[LinkDiscoveryResult] = []
        fallback_type = content_type or ContentType.UNKNOWN.value

        seen = set()
        for url in links:
            if len(seen) >= max_links:
                break
            key = canonical_url(url)
            if key in seen:
                continue
            seen.add(key)

            try:
                link_info = self.classifier.analyze_link(url, context)
                if link_info.confidence < min_confidence:
                    continue

                if link_info.content_type in (None, ContentType.UNKNOWN.value):
                    link_info.content_type = fallback_type

                await self.registry.cache_link(
                    url=url,
                    content_type=link_info.content_type,
                    confidence=link_info.confidence,
                    title=link_info.title,
                    discovered_from=source_url,
                    context=link_info.context,
                )
                discovered.append(link_info)
            except Exception as e:
                logger.warning(f"Failed to analyze link {url}: {str(e)}")

        logger.info(f"Discovered {len(discovered)} of {len(seen)} candidate links from {source_url}")
        return discovered
