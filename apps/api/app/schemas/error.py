"""API error response schemas."""

from typing import Any
from typing import Literal

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class NoLeakNotFoundError(BaseModel):
    code: Literal["RESOURCE_NOT_FOUND"]
    message: str


class TranscodeFailedErrorDetails(BaseModel):
    job_id: str
    reason: str


class TranscodeFailedError(BaseModel):
    code: Literal["TRANSCODE_FAILED"]
    message: str
    details: TranscodeFailedErrorDetails
