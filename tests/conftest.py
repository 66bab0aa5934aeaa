import os

# Settings are read at import time; point them at throwaway infrastructure first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./linkengine-test.db")
os.environ.setdefault("DATABASE_ECHO", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

from datetime import datetime
from typing import Optional
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from linkengine.core.database import Base
from linkengine.models.link import LinkRecord, LinkStatus, ContentType
from linkengine.models.scrape_job import ScrapeJob, JobStatus
from linkengine.models.scrape_history import ScrapeHistoryEntry  # noqa: F401  registers the table
from linkengine.services.callbacks import ApiCallbackClient
from linkengine.services.link_classifier import extract_domain, get_scrape_interval
from tests.fakes import FakeQueue


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'linkengine.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def queue():
    return FakeQueue()


@pytest.fixture
def make_queue():
    return FakeQueue


@pytest.fixture
def callbacks():
    client = AsyncMock(spec=ApiCallbackClient)
    client.report_job_status.return_value = True
    client.update_link_after_scraping.return_value = True
    client.discover_links.return_value = True
    client.ingest.return_value = True
    return client


@pytest.fixture
def make_link(session_factory):
    """Seed a link in its own session so it is committed before the code under test runs."""

    async def _make(
        url: str,
        content_type: str = ContentType.UNKNOWN.value,
        priority: int = 0,
        next_scrape: Optional[datetime] = None,
        status: str = LinkStatus.ACTIVE.value,
        error_count: int = 0,
        last_error: Optional[str] = None,
    ) -> LinkRecord:
        async with session_factory() as session:
            link = LinkRecord(
                url=url,
                domain=extract_domain(url),
                content_type=content_type,
                status=status,
                priority=priority,
                scrape_interval=get_scrape_interval(content_type),
                next_scrape=next_scrape,
                success_count=0,
                error_count=error_count,
                last_error=last_error,
                tags=[],
            )
            session.add(link)
            await session.commit()
            await session.refresh(link)
            return link

    return _make


@pytest.fixture
def make_job(session_factory):
    async def _make(
        target_url: str = "https://example.com/page",
        status: str = JobStatus.PENDING.value,
        link_id: Optional[int] = None,
        started_at: Optional[datetime] = None,
    ) -> ScrapeJob:
        async with session_factory() as session:
            job = ScrapeJob(
                target_url=target_url,
                kind=ContentType.UNKNOWN.value,
                status=status,
                options={},
                link_id=link_id,
                started_at=started_at,
            )
            session.add(job)
            await session.commit()
            await session.refresh(job)
            return job

    return _make


@pytest.fixture
def fetch_link(session_factory):
    """Read a link back through a fresh session, bypassing any identity map."""

    async def _fetch(link_id: int) -> LinkRecord:
        async with session_factory() as session:
            return await session.get(LinkRecord, link_id)

    return _fetch
