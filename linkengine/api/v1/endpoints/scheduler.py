from fastapi import APIRouter, Depends

from linkengine.api.deps import get_scheduler
from linkengine.schemas.link import SchedulerStatus
from linkengine.services.scheduler import LinkScheduler

router = APIRouter()

@router.get("/status", response_model=SchedulerStatus)
async def get_scheduler_status(scheduler: LinkScheduler = Depends(get_scheduler)):
    """Get scheduler status"""
    return SchedulerStatus(**scheduler.get_status())

@router.post("/trigger")
async def trigger_sweep(scheduler: LinkScheduler = Depends(get_scheduler)):
    """Run one sweep now"""
    dispatched = await scheduler.trigger_processing()
    return {"message": "Sweep finished", "dispatched": dispatched}
