from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import MetaData
from typing import Any, Dict
import logging

from linkengine.core.config import settings

logger = logging.getLogger(__name__)

def _engine_options(database_url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.DATABASE_ECHO}
    if database_url.startswith("sqlite"):
        # Local development and tests; the driver manages its own connections
        return options

    options.update(
        pool_pre_ping=True,
        pool_recycle=300,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
    )
    return options

# Shared by the API handlers and the scheduler sweep
engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# Rows stay readable after commit; the registry keeps using them between statements
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

class Base(DeclarativeBase):
    metadata = MetaData()

async def get_db():
    """Dependency to get database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise

async def create_tables():
    """Create the link, job and history tables if they are missing"""
    try:
        async with engine.begin() as conn:
            # Registers the models on Base.metadata
            from linkengine.models.link import LinkRecord  # noqa: F401
            from linkengine.models.scrape_job import ScrapeJob  # noqa: F401
            from linkengine.models.scrape_history import ScrapeHistoryEntry  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Database tables ready: {', '.join(sorted(Base.metadata.tables))}")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise

async def dispose_engine():
    await engine.dispose()
    logger.info("Database connections closed")
