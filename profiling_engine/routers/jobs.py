from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from profiling_engine.errors import ConflictingTransition, JobNotFound
from profiling_engine.models.jobs import (
    JobAcceptedResponse,
    JobCreateRequest,
    JobProfileResponse,
    JobStatus,
    JobStatusResponse,
)
from profiling_engine.services.container import ProfilingEngine

router = APIRouter()


def get_engine(request: Request) -> ProfilingEngine:
    return request.app.state.engine


async def _get_job_or_404(engine: ProfilingEngine, job_id: str):
    try:
        return await engine.jobs.get_job(job_id)
    except JobNotFound:
        raise HTTPException(status_code=404, detail="Job not found")


@router.post("", response_model=JobAcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_job(payload: JobCreateRequest, engine: ProfilingEngine = Depends(get_engine)):
    job = await engine.jobs.create_job(payload.file_ref, payload.user_id)
    engine.pool.submit(job.id)
    return JobAcceptedResponse(job_id=job.id, status=job.status)


@router.get("/{job_id}", response_model=JobStatusResponse)
async def job_status(job_id: str, engine: ProfilingEngine = Depends(get_engine)):
    job = await _get_job_or_404(engine, job_id)
    return JobStatusResponse.from_job(job)


@router.get("/{job_id}/profile", response_model=JobProfileResponse)
async def job_profile(job_id: str, engine: ProfilingEngine = Depends(get_engine)):
    job = await _get_job_or_404(engine, job_id)

    # Not ready yet (or failed): report status instead of a profile
    if job.status != JobStatus.COMPLETED:
        body = JobProfileResponse(
            job_id=job.id,
            status=job.status,
            message=job.failure.message if job.failure else f"Job is {job.status.value}",
        )
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=body.model_dump(mode="json"))

    profile = await engine.results.get(job_id)
    return JobProfileResponse(job_id=job.id, status=job.status, profile=profile)


@router.post("/{job_id}/resubmit", response_model=JobAcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def resubmit_job(job_id: str, engine: ProfilingEngine = Depends(get_engine)):
    try:
        job = await engine.jobs.resubmit(job_id)
    except JobNotFound:
        raise HTTPException(status_code=404, detail="Job not found")
    except ConflictingTransition as e:
        raise HTTPException(status_code=409, detail=e.message)
    engine.pool.submit(job.id)
    return JobAcceptedResponse(job_id=job.id, status=job.status)
