"""In-memory blob storage for local development and tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from threading import Lock

from app.adapters.storage.base import (
    BlobLocation,
    BlobNotFoundError,
    BlobStore,
    BlobStoreError,
    ObjectFacts,
    attachment_disposition,
)


@dataclass(slots=True)
class StoredObject:
    data: bytes
    content_type: str
    content_disposition: str | None
    last_modified: datetime


@dataclass(slots=True)
class InMemoryBlobStore(BlobStore):
    objects: dict[tuple[str, str], StoredObject] = field(default_factory=dict)
    upload_failure_message: str | None = None
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    def put_bytes(self, location: BlobLocation, data: bytes, *, content_type: str = "application/octet-stream") -> None:
        with self._lock:
            self.objects[(location.bucket, location.key)] = StoredObject(
                data=data,
                content_type=content_type,
                content_disposition=None,
                last_modified=datetime.now(UTC),
            )

    def get_object(self, location: BlobLocation) -> StoredObject | None:
        with self._lock:
            return self.objects.get((location.bucket, location.key))

    def download_to(self, location: BlobLocation, destination: Path) -> ObjectFacts:
        stored = self.get_object(location)
        if stored is None:
            raise BlobNotFoundError(f"Object not found: {location.uri}")
        destination.write_bytes(stored.data)
        return ObjectFacts(size_bytes=len(stored.data), last_modified=stored.last_modified)

    def upload_from(
        self,
        source: Path,
        location: BlobLocation,
        *,
        content_type: str,
        download_filename: str,
    ) -> None:
        if self.upload_failure_message is not None:
            message = self.upload_failure_message
            self.upload_failure_message = None
            raise BlobStoreError(message)

        data = source.read_bytes()
        with self._lock:
            self.objects[(location.bucket, location.key)] = StoredObject(
                data=data,
                content_type=content_type,
                content_disposition=attachment_disposition(download_filename),
                last_modified=datetime.now(UTC),
            )

    def presign_get(self, location: BlobLocation, *, expires_in: int, download_filename: str | None = None) -> str:
        if self.get_object(location) is None:
            raise BlobNotFoundError(f"Object not found: {location.uri}")
        return f"memory://{location.bucket}/{location.key}?expires_in={expires_in}"


__all__ = ["InMemoryBlobStore", "StoredObject"]
