"""In-memory job metadata store used for local development and tests."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from threading import Lock

from app.domain.ownership import owner_prefix, record_key
from app.errors import DuplicateJobError, RecordNotFoundError
from app.repositories.base import JobMetadataStore, JobPatch, JobRecord, NewJob
from app.schemas.job import JobStatus


@dataclass(slots=True)
class InMemoryJobStore(JobMetadataStore):
    """Deterministic store that mimics a (partition, sort key) table.

    Records of every owner share ``tenant`` as their partition value, exactly as
    in the DynamoDB table, so owner isolation is exercised through the same
    record-key prefix matching.
    """

    tenant: str = "reel-transcoder"
    records: dict[tuple[str, str], JobRecord] = field(default_factory=dict)
    job_write_count: int = 0
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    def create(self, owner_key: str, job_id: str, job: NewJob) -> JobRecord:
        key = (self.tenant, record_key(owner_key, job_id))
        now = datetime.now(UTC)
        record = JobRecord(
            tenant=self.tenant,
            record_key=key[1],
            job_id=job_id,
            owner_key=owner_key,
            owner_email=job.owner_email,
            original_filename=job.original_filename,
            source_location=job.source_location,
            output_format=job.output_format,
            status=JobStatus.QUEUED,
            progress=0,
            original_size=job.original_size,
            uploaded_at=job.uploaded_at,
            created_at=now,
            started_at=now,
        )
        with self._lock:
            if key in self.records:
                raise DuplicateJobError(f"Job {job_id} already exists")
            self.records[key] = record
            self.job_write_count += 1
        return replace(record)

    def patch(self, owner_key: str, job_id: str, patch: JobPatch) -> None:
        changes = patch.changes()
        if not changes:
            return

        key = (self.tenant, record_key(owner_key, job_id))
        with self._lock:
            record = self.records.get(key)
            if record is None:
                raise RecordNotFoundError(f"Job {job_id} not found")
            for name, value in changes.items():
                setattr(record, name, value)
            self.job_write_count += 1

    def get(self, owner_key: str, job_id: str) -> JobRecord | None:
        with self._lock:
            record = self.records.get((self.tenant, record_key(owner_key, job_id)))
            return replace(record) if record is not None else None

    def list_by_owner(self, owner_key: str) -> list[JobRecord]:
        prefix = owner_prefix(owner_key)
        with self._lock:
            matches = [
                replace(record)
                for (tenant, sort_key), record in self.records.items()
                if tenant == self.tenant and sort_key.startswith(prefix)
            ]
        matches.sort(key=lambda record: record.record_key, reverse=True)
        return matches


__all__ = ["InMemoryJobStore"]
