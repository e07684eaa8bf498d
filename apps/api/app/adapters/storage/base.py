"""Blob storage interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


class BlobStoreError(Exception):
    """Raised when a storage call fails for any transport or service reason."""


class BlobNotFoundError(BlobStoreError):
    """Raised when the addressed object does not exist."""


@dataclass(frozen=True, slots=True)
class BlobLocation:
    bucket: str
    key: str

    @classmethod
    def parse(cls, uri: str) -> BlobLocation:
        """Parse ``s3://bucket/key``."""
        text = (uri or "").strip()
        if not text.startswith("s3://"):
            raise ValueError(f"Unsupported storage location: {uri!r}")
        bucket, _, key = text[5:].partition("/")
        if not bucket or not key:
            raise ValueError(f"Storage location needs a bucket and a key: {uri!r}")
        return cls(bucket=bucket, key=key)

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


@dataclass(frozen=True, slots=True)
class ObjectFacts:
    size_bytes: int
    last_modified: datetime | None


def attachment_disposition(filename: str) -> str:
    safe = filename.replace('"', "_").replace("\\", "_")
    return f'attachment; filename="{safe}"'


class BlobStore(ABC):
    @abstractmethod
    def download_to(self, location: BlobLocation, destination: Path) -> ObjectFacts:
        """Stream an object into ``destination``."""

    @abstractmethod
    def upload_from(
        self,
        source: Path,
        location: BlobLocation,
        *,
        content_type: str,
        download_filename: str,
    ) -> None:
        """Stream a local file to ``location`` with a forced download filename."""

    @abstractmethod
    def presign_get(self, location: BlobLocation, *, expires_in: int, download_filename: str | None = None) -> str:
        """Issue a time-limited direct read URL."""


__all__ = [
    "BlobLocation",
    "BlobNotFoundError",
    "BlobStore",
    "BlobStoreError",
    "ObjectFacts",
    "attachment_disposition",
]
