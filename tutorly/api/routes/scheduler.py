"""
Scheduler API Endpoints

GET  /api/v1/scheduler/status                 - Job states and next run times
POST /api/v1/scheduler/reminders/trigger      - Run a reminder cadence now
POST /api/v1/scheduler/sweeps/{sweep}         - Run expiry / completion / enrollment sweep now

All endpoints require the operator token.
"""
import logging
from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, HTTPException, Path, status
from pydantic import BaseModel, Field

from tutorly.api.auth import verify_operator_token
from tutorly.services import scheduler as job_scheduler
from tutorly.services.scheduler import JobAlreadyRunning

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/scheduler",
    tags=["scheduler"],
    dependencies=[Depends(verify_operator_token)],
)

SWEEP_JOB_IDS = {
    "expiry": "session_expiry",
    "completion": "session_completion",
    "enrollments": "enrollment_expiry",
}


class DataResponse(BaseModel):
    data: Dict[str, Any]


class ReminderTriggerRequest(BaseModel):
    hours_ahead: Literal[24, 1] = Field(..., description="Reminder lookahead in hours (24 or 1)")


def _already_running(job_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "code": "JOB_RUNNING",
            "message": f"Job '{job_id}' is already running",
            "details": None,
        },
    )


@router.get("/status", response_model=DataResponse)
async def scheduler_status():
    """Current state of every scheduled job"""
    return {"data": job_scheduler.get_scheduler_status()}


@router.post("/reminders/trigger", response_model=DataResponse)
async def trigger_reminders(body: ReminderTriggerRequest):
    """Send the reminders for one cadence immediately"""
    try:
        result = await job_scheduler.trigger_reminder(body.hours_ahead)
    except JobAlreadyRunning as e:
        raise _already_running(str(e)) from e
    return {"data": result}


@router.post("/sweeps/{sweep}", response_model=DataResponse)
async def run_sweep(
    sweep: Literal["expiry", "completion", "enrollments"] = Path(..., description="Sweep to run"),
):
    """Run one sweep immediately and return its summary"""
    job_id = SWEEP_JOB_IDS[sweep]
    try:
        result = await job_scheduler.run_job(job_id)
    except JobAlreadyRunning as e:
        raise _already_running(job_id) from e
    return {"data": result}
