"""Moves artifacts between blob storage and local scratch space."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
import logging
from pathlib import Path, PurePosixPath
import tempfile

from app.adapters.storage import BlobLocation, BlobStore, BlobStoreError
from app.core.logging_safety import safe_log_identifier, safe_log_location
from app.errors import PublishFailedError, SourceUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LocalArtifact:
    path: Path
    size_bytes: int
    last_modified: datetime | None


@dataclass(slots=True)
class ScratchSpace:
    """Per-job file names inside the shared scratch directory."""

    root: Path
    job_id: str
    issued: list[Path] = field(default_factory=list)

    def path(self, name: str) -> Path:
        candidate = self.root / f"{self.job_id}.{name}"
        self.issued.append(candidate)
        return candidate

    def cleanup(self) -> None:
        for candidate in self.issued:
            candidate.unlink(missing_ok=True)


class ArtifactTransfer:
    def __init__(self, blob_store: BlobStore, scratch_dir: str | Path | None = None) -> None:
        self._blob_store = blob_store
        self._scratch_root = Path(scratch_dir) if scratch_dir else Path(tempfile.gettempdir()) / "transcoder"

    @contextmanager
    def scratch(self, job_id: str) -> Iterator[ScratchSpace]:
        """Yield scratch paths for one job and delete them however the block exits."""
        self._scratch_root.mkdir(parents=True, exist_ok=True)
        space = ScratchSpace(root=self._scratch_root, job_id=job_id)
        try:
            yield space
        finally:
            space.cleanup()

    def fetch_to_local(self, source_location: str, scratch: ScratchSpace) -> LocalArtifact:
        try:
            location = BlobLocation.parse(source_location)
        except ValueError as exc:
            raise SourceUnavailableError(str(exc)) from exc

        suffix = PurePosixPath(location.key).suffix.lower() or ".bin"
        destination = scratch.path(f"source{suffix}")
        try:
            facts = self._blob_store.download_to(location, destination)
        except (BlobStoreError, OSError) as exc:
            raise SourceUnavailableError(f"Source unavailable: {exc}") from exc

        logger.info(
            "transfer.fetched job_id=%s source=%s size_bytes=%s",
            safe_log_identifier(scratch.job_id, prefix="jid"),
            safe_log_location(location.uri),
            facts.size_bytes,
        )
        return LocalArtifact(path=destination, size_bytes=facts.size_bytes, last_modified=facts.last_modified)

    def publish_from_local(
        self,
        local_path: Path,
        dest_location: BlobLocation,
        *,
        content_type: str,
        download_filename: str,
    ) -> int:
        """Upload a finished artifact and return its size in bytes."""
        try:
            size_bytes = local_path.stat().st_size
            self._blob_store.upload_from(
                local_path,
                dest_location,
                content_type=content_type,
                download_filename=download_filename,
            )
        except (BlobStoreError, OSError) as exc:
            raise PublishFailedError(f"Publish failed: {exc}") from exc

        logger.info(
            "transfer.published destination=%s size_bytes=%s content_type=%s",
            safe_log_location(dest_location.uri),
            size_bytes,
            content_type,
        )
        return size_bytes


__all__ = ["ArtifactTransfer", "LocalArtifact", "ScratchSpace"]
