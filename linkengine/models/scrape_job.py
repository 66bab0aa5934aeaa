from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from linkengine.core.database import Base

class JobStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

TERMINAL_JOB_STATUSES = (JobStatus.COMPLETED.value, JobStatus.FAILED.value)

class ScrapeJob(Base):
    __tablename__ = "scrape_jobs"

    id = Column(Integer, primary_key=True, index=True)
    target_url = Column(String(2048), nullable=False, index=True)
    kind = Column(String(20), nullable=False, default="unknown")
    status = Column(String(20), default=JobStatus.PENDING.value, index=True)

    # Dispatch options as sent on the queue
    options = Column(JSON, nullable=True)

    # Results
    result = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)

    # Owning link for scheduled scrapes
    link_id = Column(Integer, ForeignKey("link_cache.id", ondelete="SET NULL"), nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    history = relationship("ScrapeHistoryEntry", back_populates="job")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES
