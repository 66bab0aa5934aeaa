from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Float, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from linkengine.core.database import Base

class ScrapeHistoryEntry(Base):
    __tablename__ = "link_scrapes"

    id = Column(Integer, primary_key=True, index=True)
    link_id = Column(Integer, ForeignKey("link_cache.id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("scrape_jobs.id"), nullable=False, index=True)

    # Outcome
    status = Column(String(20), nullable=False)
    result = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)

    # Timing
    scraped_at = Column(DateTime, default=datetime.utcnow, index=True)
    duration = Column(Float, nullable=True)  # seconds

    # Relationships
    link = relationship("LinkRecord", back_populates="scrapes")
    job = relationship("ScrapeJob", back_populates="history")

    # One entry per job per link; duplicate deliveries collapse onto it
    __table_args__ = (
        UniqueConstraint('link_id', 'job_id', name='uq_link_scrapes_link_job'),
        Index('idx_link_scrapes_link_scraped', link_id, scraped_at),
    )
