"""Application exception types."""

from app.schemas.error import ErrorResponse


class ApiError(Exception):
    """Structured API error that maps directly to contract error payloads."""

    def __init__(self, status_code: int, code: str, message: str, details: dict | None = None) -> None:
        self.status_code = status_code
        self.payload = ErrorResponse(code=code, message=message, details=details)
        super().__init__(message)


class IdentityMissingError(Exception):
    """Raised when verified claims carry no usable owner identifier."""


class RecordNotFoundError(LookupError):
    """Raised when a job record does not exist under the caller's owner key."""


class DuplicateJobError(Exception):
    """Raised when a new job record would collide with an existing record key."""


class JobTransitionError(ValueError):
    """Raised when the orchestrator attempts an illegal status transition."""


class ProbeError(Exception):
    """Raised by the media prober. Never fatal to a job."""


class PipelineError(Exception):
    """Stage failure that is recorded into the job's error state."""


class SourceUnavailableError(PipelineError):
    pass


class ToolUnavailableError(PipelineError):
    pass


class TranscodeFailedError(PipelineError):
    def __init__(self, exit_code: int) -> None:
        self.exit_code = exit_code
        super().__init__(f"ffmpeg failed: exit code {exit_code}")


class PublishFailedError(PipelineError):
    pass


__all__ = [
    "ApiError",
    "DuplicateJobError",
    "IdentityMissingError",
    "JobTransitionError",
    "PipelineError",
    "ProbeError",
    "PublishFailedError",
    "RecordNotFoundError",
    "SourceUnavailableError",
    "ToolUnavailableError",
    "TranscodeFailedError",
]
