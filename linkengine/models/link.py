from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Index
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from linkengine.core.database import Base

class LinkStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"
    BLOCKED = "blocked"

class ContentType(str, enum.Enum):
    BLOG = "blog"
    NEWS = "news"
    DOCUMENTATION = "documentation"
    API = "api"
    TUTORIAL = "tutorial"
    WIKI = "wiki"
    FORUM = "forum"
    GITHUB = "github"
    STACKOVERFLOW = "stackoverflow"
    UNKNOWN = "unknown"

class LinkRecord(Base):
    __tablename__ = "link_cache"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String(2048), nullable=False, unique=True)
    domain = Column(String(255), nullable=False, index=True)
    title = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)

    # Classification
    content_type = Column(String(20), default=ContentType.UNKNOWN.value, index=True)
    status = Column(String(20), default=LinkStatus.ACTIVE.value)
    priority = Column(Integer, default=0, index=True)

    # Scheduling
    scrape_interval = Column(Integer, default=86400)  # seconds
    last_scraped = Column(DateTime, nullable=True)
    next_scrape = Column(DateTime, nullable=True)

    # Outcome counters
    success_count = Column(Integer, default=0)
    error_count = Column(Integer, default=0)
    last_error = Column(Text, nullable=True)

    tags = Column(JSON, default=list)
    discovered_from = Column(String(2048), nullable=True)  # lookup only, no FK
    link_metadata = Column("metadata", JSON, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    scrapes = relationship("ScrapeHistoryEntry", back_populates="link", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_link_cache_status_next_scrape', status, next_scrape),
    )
