from pydantic import BaseModel, ConfigDict, HttpUrl, Field, AliasChoices
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum

from linkengine.schemas.scrape_result import ScrapeResult

class LinkStatusEnum(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"
    BLOCKED = "blocked"

class LinkCreate(BaseModel):
    url: HttpUrl = Field(..., description="URL to register")
    title: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None

class LinkBulkCreate(BaseModel):
    urls: List[HttpUrl] = Field(..., min_length=1, description="URLs to register")

class LinkUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    status: Optional[LinkStatusEnum] = None
    priority: Optional[int] = Field(None, ge=0, le=10)
    scrape_interval: Optional[int] = Field(None, ge=60, description="Seconds between scrapes")
    tags: Optional[List[str]] = None

class LinkBulkUpdate(LinkUpdate):
    link_ids: List[int] = Field(..., min_length=1)

class LinkScrapeUpdate(BaseModel):
    """Post-scrape feedback sent by the worker: {jobId, result?, error?}"""
    job_id: int
    result: Optional[ScrapeResult] = None
    error: Optional[str] = None
    duration: Optional[float] = Field(None, ge=0)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class LinkResponse(BaseModel):
    id: int
    url: str
    domain: str
    title: Optional[str] = None
    description: Optional[str] = None

    content_type: str
    status: str
    priority: int
    scrape_interval: int
    last_scraped: Optional[datetime] = None
    next_scrape: Optional[datetime] = None

    success_count: int
    error_count: int
    last_error: Optional[str] = None

    tags: Optional[List[str]] = None
    discovered_from: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias=AliasChoices("link_metadata", "metadata"))

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class LinkList(BaseModel):
    links: List[LinkResponse]
    total: int
    page: int
    size: int
    pages: int

class LinkStats(BaseModel):
    total: int
    active: int
    inactive: int
    error: int
    blocked: int
    by_content_type: Dict[str, int]
    by_domain: Dict[str, int]

class ScrapeHistoryResponse(BaseModel):
    id: int
    link_id: int
    job_id: int
    status: str
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    scraped_at: datetime
    duration: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)

class SchedulerStatus(BaseModel):
    is_running: bool
    is_sweeping: bool
    interval_seconds: int
    batch_size: int
    last_sweep_at: Optional[datetime] = None
    last_sweep_dispatched: int = 0
