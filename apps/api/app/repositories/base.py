"""Job metadata records and the store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any

from app.schemas.job import JobStatus, OutputFormat, TechnicalMetadata


@dataclass(slots=True)
class JobRecord:
    tenant: str
    record_key: str
    job_id: str
    owner_key: str
    source_location: str
    output_format: OutputFormat
    status: JobStatus
    progress: int
    created_at: datetime
    owner_email: str | None = None
    original_filename: str | None = None
    started_at: datetime | None = None
    width: int | None = None
    height: int | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    fps: float | None = None
    duration: float | None = None
    bitrate: int | None = None
    original_size: int | None = None
    uploaded_at: datetime | None = None
    output_size: int | None = None
    output_location: str | None = None
    completed_at: datetime | None = None
    error: str | None = None

    @property
    def metadata(self) -> TechnicalMetadata:
        return TechnicalMetadata(
            width=self.width,
            height=self.height,
            video_codec=self.video_codec,
            audio_codec=self.audio_codec,
            fps=self.fps,
            duration=self.duration,
            bitrate=self.bitrate,
        )


@dataclass(slots=True, kw_only=True)
class NewJob:
    """Caller-supplied fields of a freshly accepted job."""

    source_location: str
    output_format: OutputFormat
    owner_email: str | None = None
    original_filename: str | None = None
    original_size: int | None = None
    uploaded_at: datetime | None = None


@dataclass(slots=True, kw_only=True)
class JobPatch:
    """Partial update of a job record.

    Only fields set to a non-``None`` value are written. Partition and record
    key fields are deliberately absent, so a patch can never rewrite them.
    """

    status: JobStatus | None = None
    progress: int | None = None
    width: int | None = None
    height: int | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    fps: float | None = None
    duration: float | None = None
    bitrate: int | None = None
    original_size: int | None = None
    uploaded_at: datetime | None = None
    output_size: int | None = None
    output_location: str | None = None
    completed_at: datetime | None = None
    error: str | None = None

    @classmethod
    def from_metadata(cls, metadata: TechnicalMetadata, **extra: Any) -> JobPatch:
        return cls(**metadata.model_dump(), **extra)

    def changes(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    def is_empty(self) -> bool:
        return not self.changes()


class JobMetadataStore(ABC):
    """Owner-scoped job records under one fixed partition value."""

    @abstractmethod
    def create(self, owner_key: str, job_id: str, job: NewJob) -> JobRecord:
        """Insert a queued record. Raises ``DuplicateJobError`` on record key collision."""

    @abstractmethod
    def patch(self, owner_key: str, job_id: str, patch: JobPatch) -> None:
        """Merge set fields into an existing record. Raises ``RecordNotFoundError``."""

    @abstractmethod
    def get(self, owner_key: str, job_id: str) -> JobRecord | None:
        """Return the caller's record or ``None``."""

    @abstractmethod
    def list_by_owner(self, owner_key: str) -> list[JobRecord]:
        """Return every record of ``owner_key``, most recent first."""


__all__ = ["JobMetadataStore", "JobPatch", "JobRecord", "NewJob"]
