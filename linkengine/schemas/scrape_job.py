from pydantic import BaseModel, ConfigDict, HttpUrl, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum

from linkengine.schemas.scrape_result import ScrapeResult

class JobStatusEnum(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

class ScrapeOptions(BaseModel):
    extract_images: bool = True
    extract_links: bool = True
    wait_for_selector: Optional[str] = None
    max_wait_time: Optional[int] = Field(None, ge=0, description="Selector wait budget in milliseconds")
    link_id: Optional[int] = Field(None, description="Owning link for scheduled scrapes")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class ScrapeMessage(BaseModel):
    """Queue payload: {jobId, targetUrl, kind, options}"""
    job_id: int
    target_url: str
    kind: str = "unknown"
    options: ScrapeOptions = Field(default_factory=ScrapeOptions)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class ScrapeJobCreate(BaseModel):
    target_url: HttpUrl = Field(..., description="URL to scrape")
    kind: str = Field(default="unknown", description="Content type used for extraction selectors")
    options: ScrapeOptions = Field(default_factory=ScrapeOptions)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class JobStatusUpdate(BaseModel):
    """Job status report sent by the worker; fields replace stored values"""
    status: Optional[JobStatusEnum] = None
    result: Optional[ScrapeResult] = None
    error: Optional[str] = None

class ScrapeJobResponse(BaseModel):
    id: int
    target_url: str
    kind: str
    status: str

    options: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    link_id: Optional[int] = None

    # Timestamps
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class ScrapeJobList(BaseModel):
    jobs: List[ScrapeJobResponse]
    total: int
    page: int
    size: int
    pages: int
