"""
Compile API routes.

Submission returns a job id immediately; execution happens on the slot
workers and the result is read back by id.
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from structlog import get_logger

from compilebox.models.schemas import (
    CompileRequest,
    CompileResponse,
    CompileResultResponse,
    ErrorResponse,
)
from compilebox.services.compile_service import CompileService, get_compile_service

logger = get_logger()
router = APIRouter(prefix="/compile", tags=["compile"])


@router.post(
    "/run",
    response_model=CompileResponse,
    responses={
        503: {"model": ErrorResponse, "description": "Job queue is full"}
    },
    summary="Submit code",
    description="Queue a single Java source unit for compilation and execution"
)
async def run_code(
    request: CompileRequest,
    service: CompileService = Depends(get_compile_service)
) -> CompileResponse:
    """Accept a submission and return its job id."""
    try:
        job = await service.submit(
            request.code,
            callback_url=str(request.callback_url) if request.callback_url else None,
        )
    except asyncio.QueueFull:
        raise HTTPException(status_code=503, detail="Job queue is full")
    return CompileResponse(job_id=job.job_id)


@router.get(
    "/result/{job_id}",
    response_model=CompileResultResponse,
    responses={
        404: {"model": ErrorResponse}
    },
    summary="Get a job result",
    description="Current status, success flag and output of a job"
)
async def read_result(
    job_id: str,
    service: CompileService = Depends(get_compile_service)
) -> CompileResultResponse:
    """Get a job by ID."""
    job = await service.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return CompileResultResponse(
        job_id=job.job_id,
        status=job.status,
        success=job.success,
        output=job.output,
    )
