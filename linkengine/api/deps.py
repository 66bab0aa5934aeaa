from fastapi import HTTPException, Request

from linkengine.services.job_queue import JobQueue
from linkengine.services.scheduler import LinkScheduler

def get_job_queue() -> JobQueue:
    """Dependency to get the scrape queue producer"""
    return JobQueue()

def get_scheduler(request: Request) -> LinkScheduler:
    """Dependency to get the scheduler owned by the application"""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler is not configured")
    return scheduler
