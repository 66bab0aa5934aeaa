from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from linkengine.api.v1.router import api_router
from linkengine.core.config import settings
from linkengine.core.database import AsyncSessionLocal, create_tables, dispose_engine
from linkengine.core.exceptions import setup_exception_handlers
from linkengine.services.job_queue import JobQueue
from linkengine.services.scheduler import LinkScheduler

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()

    # The one scheduler of this process; replicas should set SCHEDULER_ENABLED=false
    scheduler = LinkScheduler(AsyncSessionLocal, JobQueue())
    app.state.scheduler = scheduler
    if settings.SCHEDULER_ENABLED:
        await scheduler.start()
    else:
        logger.info("Link scheduler disabled")

    yield

    await scheduler.stop()
    await dispose_engine()

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)
app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/health")
async def health():
    return {"status": "ok"}
