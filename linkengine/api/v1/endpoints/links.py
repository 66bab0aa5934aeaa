from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import math

from linkengine.api.deps import get_job_queue
from linkengine.core.database import get_db
from linkengine.core.exceptions import LinkNotFoundException
from linkengine.services.feedback import FeedbackUpdater
from linkengine.services.job_queue import JobQueue
from linkengine.services.job_service import JobService
from linkengine.services.link_discovery import LinkDiscoveryService
from linkengine.services.link_registry import LinkRegistry
from linkengine.schemas.link import (
    LinkCreate,
    LinkBulkCreate,
    LinkUpdate,
    LinkBulkUpdate,
    LinkScrapeUpdate,
    LinkResponse,
    LinkList,
    LinkStats,
    ScrapeHistoryResponse
)
from linkengine.schemas.scrape_job import ScrapeJobResponse
from linkengine.schemas.scrape_result import DiscoveryRequest, LinkDiscoveryResult

router = APIRouter()

@router.get("/", response_model=LinkList)
async def get_links(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    query: Optional[str] = Query(None, description="Text to match in title, description or URL"),
    content_type: Optional[str] = Query(None, description="Filter by content type"),
    domain: Optional[str] = Query(None, description="Filter by domain substring"),
    status: Optional[str] = Query(None, description="Filter by link status"),
    db: AsyncSession = Depends(get_db)
):
    """Get links with pagination and filters"""
    registry = LinkRegistry(db)
    links, total = await registry.list_links(
        query=query,
        content_type=content_type,
        domain=domain,
        status=status,
        skip=(page - 1) * size,
        limit=size
    )

    return LinkList(
        links=[LinkResponse.model_validate(link) for link in links],
        total=total,
        page=page,
        size=size,
        pages=math.ceil(total / size) if total > 0 else 0
    )

@router.get("/stats", response_model=LinkStats)
async def get_link_stats(db: AsyncSession = Depends(get_db)):
    """Get link registry statistics"""
    registry = LinkRegistry(db)
    return LinkStats(**await registry.get_cache_stats())

@router.get("/ready", response_model=List[LinkResponse])
async def get_ready_links(
    limit: int = Query(10, ge=1, le=100, description="Maximum links to return"),
    db: AsyncSession = Depends(get_db)
):
    """Links that the next sweep would pick, in dispatch order"""
    registry = LinkRegistry(db)
    links = await registry.get_links_for_scraping(limit)
    return [LinkResponse.model_validate(link) for link in links]

@router.post("/", response_model=LinkResponse)
async def create_link(link_data: LinkCreate, db: AsyncSession = Depends(get_db)):
    """Register a link by hand"""
    registry = LinkRegistry(db)
    link = await registry.create_link(str(link_data.url), link_data.title, link_data.description)
    return LinkResponse.model_validate(link)

@router.post("/bulk", response_model=List[LinkResponse])
async def create_links(bulk: LinkBulkCreate, db: AsyncSession = Depends(get_db)):
    """Register several links by hand in one call"""
    registry = LinkRegistry(db)
    links = await registry.create_links([str(url) for url in bulk.urls])
    return [LinkResponse.model_validate(link) for link in links]

@router.post("/discover", response_model=List[LinkDiscoveryResult])
async def discover_links(request: DiscoveryRequest, db: AsyncSession = Depends(get_db)):
    """Score links extracted from a page and add the relevant ones to the registry"""
    discovery = LinkDiscoveryService(db)
    return await discovery.discover_and_cache_links(
        request.source_url,
        request.content.links,
        context=request.content.content,
        max_links=request.options.max_links,
        min_confidence=request.options.min_confidence,
        content_type=request.options.content_type,
    )

@router.post("/bulk-update")
async def bulk_update_links(bulk: LinkBulkUpdate, db: AsyncSession = Depends(get_db)):
    """Apply the same administrative update to several links"""
    registry = LinkRegistry(db)
    updates = LinkUpdate(**bulk.model_dump(exclude_unset=True, exclude={"link_ids"}))
    updated = await registry.bulk_update_links(bulk.link_ids, updates)
    return {"updated": updated}

@router.get("/{link_id}", response_model=LinkResponse)
async def get_link(link_id: int, db: AsyncSession = Depends(get_db)):
    """Get a specific link by ID"""
    registry = LinkRegistry(db)
    link = await registry.get_link(link_id)

    if not link:
        raise HTTPException(status_code=404, detail="Link not found")

    return LinkResponse.model_validate(link)

@router.put("/{link_id}", response_model=LinkResponse)
async def update_link(link_id: int, link_update: LinkUpdate, db: AsyncSession = Depends(get_db)):
    """Administrative edit of a link"""
    registry = LinkRegistry(db)
    link = await registry.update_link(link_id, link_update)
    return LinkResponse.model_validate(link)

@router.post("/{link_id}/scrape", response_model=ScrapeJobResponse)
async def scrape_link(
    link_id: int,
    db: AsyncSession = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue)
):
    """Queue a scrape for a link now instead of waiting for the next sweep"""
    link = await LinkRegistry(db).get_link(link_id)
    if not link:
        raise LinkNotFoundException(f"Link {link_id} not found")

    job = await JobService(db, queue).schedule_link_scrape(link)
    return ScrapeJobResponse.model_validate(job)

@router.post("/{link_id}/update-scrape", response_model=LinkResponse)
async def update_link_after_scrape(
    link_id: int,
    update: LinkScrapeUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Post-scrape feedback from a worker"""
    updater = FeedbackUpdater(db)
    link = await updater.apply(link_id, update.job_id, update.result, update.error, update.duration)
    return LinkResponse.model_validate(link)

@router.get("/{link_id}/scrapes", response_model=List[ScrapeHistoryResponse])
async def get_link_scrapes(
    link_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db)
):
    """Scrape history of a link, newest first"""
    registry = LinkRegistry(db)
    history = await registry.get_scrape_history(link_id, skip=offset, limit=limit)
    return [ScrapeHistoryResponse.model_validate(entry) for entry in history]
