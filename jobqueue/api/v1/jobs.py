"""Job management API: submit jobs, poll status, fetch results."""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, Optional

from jobqueue.auth.admin import require_admin
from jobqueue.jobs.dispatcher import JobDispatcher
from jobqueue.jobs.errors import JobNotCompletedError, JobNotFoundError
from jobqueue.jobs.models import JobPriority, JobStatus, JobStatusInfo

router = APIRouter()


def get_dispatcher(request: Request) -> JobDispatcher:
    """Resolve the queue wired onto the app by create_app()."""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(status_code=503, detail="Job dispatcher not initialized")
    return dispatcher


class JobSubmitRequest(BaseModel):
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    priority: JobPriority = JobPriority.NORMAL
    payload: Any = None
    timeout_ms: Optional[int] = Field(default=None, gt=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("priority", mode="before")
    @classmethod
    def _parse_priority(cls, value: Any) -> JobPriority:
        return JobPriority.parse(value)


class JobSubmitResponse(BaseModel):
    id: str
    status: str
    message: str


@router.post("/jobs", response_model=JobSubmitResponse, status_code=201)
async def submit_job(
    request: JobSubmitRequest,
    dispatcher: JobDispatcher = Depends(get_dispatcher),
):
    """Queue a new job."""
    job = await dispatcher.create_job(
        name=request.name,
        job_type=request.type,
        payload=request.payload,
        priority=request.priority,
        timeout_ms=request.timeout_ms,
        metadata=request.metadata,
    )
    return JobSubmitResponse(
        id=job.id,
        status=job.status.value,
        message="Job submitted successfully. Poll GET /api/v1/jobs/{id}/status for progress.",
    )


@router.get("/jobs")
async def list_jobs(
    status: Optional[JobStatus] = None,
    dispatcher: JobDispatcher = Depends(get_dispatcher),
):
    """List jobs, optionally filtered by status."""
    jobs = await dispatcher.get_jobs(status)
    return {
        "jobs": [job.to_document() for job in jobs],
        "count": len(jobs),
    }


@router.delete("/jobs", dependencies=[Depends(require_admin)])
async def clear_jobs(dispatcher: JobDispatcher = Depends(get_dispatcher)):
    """Delete every stored job (admin only)."""
    removed = await dispatcher.clear_jobs()
    return {"message": "All jobs cleared successfully", "removed": removed}


@router.get("/jobs/{job_id}")
async def get_job(job_id: str, dispatcher: JobDispatcher = Depends(get_dispatcher)):
    job = await dispatcher.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job with ID '{job_id}' not found")
    return job.to_document()


@router.get("/jobs/{job_id}/status", response_model=JobStatusInfo)
async def get_job_status(
    job_id: str, dispatcher: JobDispatcher = Depends(get_dispatcher)
):
    try:
        return await dispatcher.get_job_status(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/jobs/{job_id}/result")
async def get_job_result(
    job_id: str, dispatcher: JobDispatcher = Depends(get_dispatcher)
):
    """Return the result of a COMPLETED job."""
    try:
        result = await dispatcher.get_job_result(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except JobNotCompletedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"id": job_id, "result": result}


@router.post("/jobs/{job_id}/cancel")
async def cancel_job(job_id: str, dispatcher: JobDispatcher = Depends(get_dispatcher)):
    """Cancel a PENDING job. Jobs in any other state are returned unchanged."""
    job = await dispatcher.cancel_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job with ID '{job_id}' not found")

    if job.status is JobStatus.CANCELLED:
        message = f"Job '{job_id}' cancelled successfully"
    else:
        message = f"Job '{job_id}' is {job.status.value} and cannot be cancelled"
    return {"message": message, "job": job.to_document()}
