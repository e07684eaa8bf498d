"""Read-side job service: status, listing and retrieval handles."""

import logging

from app.adapters.storage import BlobLocation, BlobStore, BlobStoreError
from app.core.logging_safety import safe_log_identifier
from app.domain.ownership import download_filename
from app.errors import ApiError
from app.repositories.base import JobMetadataStore, JobRecord
from app.schemas.job import DownloadHandle, JobStatus, JobStatusView, JobSummary

logger = logging.getLogger(__name__)


def _not_found() -> ApiError:
    return ApiError(status_code=404, code="RESOURCE_NOT_FOUND", message="Resource not found")


class JobQueryService:
    """Never mutates records; every lookup is scoped to the caller's owner key."""

    def __init__(self, store: JobMetadataStore, blob_store: BlobStore, *, download_ttl_seconds: int = 600) -> None:
        self._store = store
        self._blob_store = blob_store
        self._download_ttl_seconds = download_ttl_seconds

    def get_status(self, *, owner_key: str, job_id: str) -> JobStatusView:
        record = self._store.get(owner_key, job_id)
        if record is None:
            raise _not_found()

        return JobStatusView(
            id=record.job_id,
            status=record.status,
            progress=record.progress,
            output_format=record.output_format,
            error=record.error,
        )

    def list_jobs(self, *, owner_key: str) -> list[JobSummary]:
        return [self._to_summary(record) for record in self._store.list_by_owner(owner_key)]

    def issue_download(self, *, owner_key: str, job_id: str) -> DownloadHandle:
        record = self._store.get(owner_key, job_id)
        # Missing, foreign and unfinished jobs all look the same to the caller.
        if record is None or record.status is not JobStatus.DONE or not record.output_location:
            raise _not_found()

        filename = download_filename(record.original_filename, record.job_id, record.output_format.value)
        try:
            url = self._blob_store.presign_get(
                BlobLocation.parse(record.output_location),
                expires_in=self._download_ttl_seconds,
                download_filename=filename,
            )
        except (BlobStoreError, ValueError) as exc:
            logger.warning(
                "download.unavailable job_id=%s reason=%s",
                safe_log_identifier(record.job_id, prefix="jid"),
                type(exc).__name__,
            )
            raise ApiError(
                status_code=502,
                code="DOWNLOAD_UNAVAILABLE",
                message="Download link could not be issued",
                details={"job_id": record.job_id},
            ) from exc
        logger.info(
            "download.issued job_id=%s expires_in=%s",
            safe_log_identifier(record.job_id, prefix="jid"),
            self._download_ttl_seconds,
        )
        return DownloadHandle(job_id=record.job_id, url=url, expires_in=self._download_ttl_seconds, filename=filename)

    @staticmethod
    def _to_summary(record: JobRecord) -> JobSummary:
        return JobSummary(
            id=record.job_id,
            owner_key=record.owner_key,
            owner_email=record.owner_email,
            original_filename=record.original_filename,
            source_location=record.source_location,
            status=record.status,
            progress=record.progress,
            output_format=record.output_format,
            metadata=record.metadata,
            original_size=record.original_size,
            uploaded_at=record.uploaded_at,
            output_size=record.output_size,
            output_location=record.output_location,
            created_at=record.created_at,
            started_at=record.started_at,
            completed_at=record.completed_at,
            error=record.error,
        )
