"""Job API schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    QUEUED = "queued"
    DOWNLOADING = "downloading"
    PROCESSING = "processing"
    UPLOADING = "uploading"
    DONE = "done"
    ERROR = "error"


class OutputFormat(str, Enum):
    MP4 = "mp4"
    WEBM = "webm"
    MOV = "mov"
    MKV = "mkv"

    @classmethod
    def normalize(cls, raw: str | None, default: "OutputFormat | None" = None) -> "OutputFormat":
        """Map free-form input onto the closed format set; unknown values become ``default``."""
        fallback = default or cls.MP4
        candidate = (raw or "").strip().lower().lstrip(".")
        for member in cls:
            if member.value == candidate:
                return member
        return fallback

    @property
    def content_type(self) -> str:
        return _CONTENT_TYPES[self]


_CONTENT_TYPES: dict[OutputFormat, str] = {
    OutputFormat.MP4: "video/mp4",
    OutputFormat.WEBM: "video/webm",
    OutputFormat.MOV: "video/quicktime",
    OutputFormat.MKV: "video/x-matroska",
}


class TechnicalMetadata(BaseModel):
    width: int | None = None
    height: int | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    fps: float | None = None
    duration: float | None = None
    bitrate: int | None = None


class StartJobRequest(BaseModel):
    source: str = Field(min_length=1, description="Source object location, e.g. s3://bucket/uploads/in.mov")
    format: str | None = None
    original_filename: str | None = None
    original_size: int | None = Field(default=None, ge=0)
    uploaded_at: datetime | None = None


class JobStartResponse(BaseModel):
    id: str
    output_format: OutputFormat
    status: JobStatus
    ok: bool = True


class JobStatusView(BaseModel):
    id: str
    status: JobStatus
    progress: int
    output_format: OutputFormat
    error: str | None = None


class JobSummary(BaseModel):
    id: str
    owner_key: str
    owner_email: str | None = None
    original_filename: str | None = None
    source_location: str
    status: JobStatus
    progress: int
    output_format: OutputFormat
    metadata: TechnicalMetadata
    original_size: int | None = None
    uploaded_at: datetime | None = None
    output_size: int | None = None
    output_location: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None


class DownloadHandle(BaseModel):
    job_id: str
    url: str
    expires_in: int
    filename: str
