from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import math

from linkengine.api.deps import get_job_queue
from linkengine.core.database import get_db
from linkengine.services.job_queue import JobQueue
from linkengine.services.job_service import JobService, JOB_PRESETS
from linkengine.schemas.scrape_job import (
    ScrapeJobCreate,
    JobStatusUpdate,
    ScrapeJobResponse,
    ScrapeJobList
)

router = APIRouter()

@router.post("/", response_model=ScrapeJobResponse, status_code=201)
async def create_job(
    job_data: ScrapeJobCreate,
    db: AsyncSession = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue)
):
    """Create a scrape job and put it on the queue"""
    job_service = JobService(db, queue)
    job = await job_service.create_job(str(job_data.target_url), job_data.kind, job_data.options)
    return ScrapeJobResponse.model_validate(job)

@router.get("/", response_model=ScrapeJobList)
async def get_jobs(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(50, ge=1, le=100, description="Page size"),
    status: Optional[str] = Query(None, description="Filter by job status"),
    kind: Optional[str] = Query(None, description="Filter by content type"),
    db: AsyncSession = Depends(get_db)
):
    """Get jobs with pagination and filters"""
    job_service = JobService(db)
    skip = (page - 1) * size

    jobs, total = await job_service.get_jobs(skip=skip, limit=size, status=status, kind=kind)

    return ScrapeJobList(
        jobs=[ScrapeJobResponse.model_validate(job) for job in jobs],
        total=total,
        page=page,
        size=size,
        pages=math.ceil(total / size) if total > 0 else 0
    )

@router.get("/presets")
async def get_job_presets():
    """Option sets for the common page kinds"""
    return {"presets": JOB_PRESETS}

@router.get("/statistics/overview")
async def get_job_statistics(db: AsyncSession = Depends(get_db)):
    """Get job statistics overview"""
    job_service = JobService(db)
    return await job_service.get_job_statistics()

@router.get("/{job_id}", response_model=ScrapeJobResponse)
async def get_job(job_id: int, db: AsyncSession = Depends(get_db)):
    """Get a specific job by ID"""
    job_service = JobService(db)
    job = await job_service.get_job(job_id)

    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    return ScrapeJobResponse.model_validate(job)

@router.patch("/{job_id}", response_model=ScrapeJobResponse)
async def update_job(
    job_id: int,
    job_update: JobStatusUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Job status report from a worker"""
    job_service = JobService(db)
    job = await job_service.update_job(job_id, job_update)

    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    return ScrapeJobResponse.model_validate(job)
