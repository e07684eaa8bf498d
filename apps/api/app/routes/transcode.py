"""Transcode job routes."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query, Response, status

from app.errors import ApiError
from app.routes.dependencies import get_authenticated_identity, get_job_query_service, get_orchestrator
from app.schemas.auth import OwnerIdentity
from app.schemas.error import ErrorResponse, NoLeakNotFoundError, TranscodeFailedError
from app.schemas.job import DownloadHandle, JobStartResponse, JobStatus, JobStatusView, JobSummary, StartJobRequest
from app.services.jobs import JobQueryService
from app.services.orchestrator import JobOrchestrator

router = APIRouter(prefix="/transcode", tags=["Transcode"])


@router.post(
    "",
    response_model=JobStartResponse,
    responses={
        202: {"model": JobStartResponse},
        401: {"model": ErrorResponse},
        502: {"model": TranscodeFailedError},
    },
)
def start_job(
    payload: StartJobRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    identity: Annotated[OwnerIdentity, Depends(get_authenticated_identity)],
    orchestrator: Annotated[JobOrchestrator, Depends(get_orchestrator)],
    background: Annotated[bool, Query()] = False,
) -> JobStartResponse:
    if background:
        record = orchestrator.submit(owner=identity, request=payload)
        background_tasks.add_task(orchestrator.run, record)
        response.status_code = status.HTTP_202_ACCEPTED
        return JobStartResponse(id=record.job_id, output_format=record.output_format, status=record.status)

    outcome = orchestrator.start(owner=identity, request=payload)
    if not outcome.ok:
        raise ApiError(
            status_code=502,
            code="TRANSCODE_FAILED",
            message="Transcode failed",
            details={"job_id": outcome.job_id, "reason": outcome.error or "unknown"},
        )
    return JobStartResponse(id=outcome.job_id, output_format=outcome.output_format, status=JobStatus.DONE)


@router.get(
    "/status/{jobId}",
    response_model=JobStatusView,
    responses={401: {"model": ErrorResponse}, 404: {"model": NoLeakNotFoundError}},
)
def get_job_status(
    job_id: Annotated[str, Path(alias="jobId")],
    identity: Annotated[OwnerIdentity, Depends(get_authenticated_identity)],
    service: Annotated[JobQueryService, Depends(get_job_query_service)],
) -> JobStatusView:
    return service.get_status(owner_key=identity.owner_key, job_id=job_id)


@router.get(
    "/list",
    response_model=list[JobSummary],
    responses={401: {"model": ErrorResponse}},
)
def list_jobs(
    identity: Annotated[OwnerIdentity, Depends(get_authenticated_identity)],
    service: Annotated[JobQueryService, Depends(get_job_query_service)],
) -> list[JobSummary]:
    return service.list_jobs(owner_key=identity.owner_key)


@router.get(
    "/download/{jobId}",
    response_model=DownloadHandle,
    responses={401: {"model": ErrorResponse}, 404: {"model": NoLeakNotFoundError}, 502: {"model": ErrorResponse}},
)
def issue_download(
    job_id: Annotated[str, Path(alias="jobId")],
    identity: Annotated[OwnerIdentity, Depends(get_authenticated_identity)],
    service: Annotated[JobQueryService, Depends(get_job_query_service)],
) -> DownloadHandle:
    return service.issue_download(owner_key=identity.owner_key, job_id=job_id)
