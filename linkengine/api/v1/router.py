from fastapi import APIRouter

from linkengine.api.v1.endpoints import jobs, links, scheduler

api_router = APIRouter()

api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(links.router, prefix="/links", tags=["links"])
api_router.include_router(scheduler.router, prefix="/scheduler", tags=["scheduler"])
