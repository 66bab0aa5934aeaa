from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any, List

class ScrapeResult(BaseModel):
    """Structured extraction payload produced by the scraping pipeline"""
    title: str = "Untitled"
    content: str = ""
    url: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    images: List[str] = Field(default_factory=list)
    links: List[str] = Field(default_factory=list)
    video_links: List[str] = Field(default_factory=list)
    word_count: int = Field(default=0, ge=0)
    reading_time: int = Field(default=0, ge=0, description="Minutes at 200 words per minute")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class DiscoveryContent(BaseModel):
    """The part of a scraped page discovery needs; extra fields are ignored"""
    content: str = ""
    links: List[str] = Field(default_factory=list)

class DiscoveryOptions(BaseModel):
    max_links: int = Field(default=50, ge=1, le=500)
    min_confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    content_type: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class DiscoveryRequest(BaseModel):
    source_url: str = Field(..., description="Page the links were extracted from")
    content: DiscoveryContent
    options: DiscoveryOptions = Field(default_factory=DiscoveryOptions)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class LinkDiscoveryResult(BaseModel):
    url: str
    title: Optional[str] = None
    context: Optional[str] = None
    confidence: float
    content_type: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
