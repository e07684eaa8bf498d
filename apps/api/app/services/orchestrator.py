"""Transcode job pipeline: fetch, transcode, probe, publish.

Every stage transition is persisted before the stage's risky work starts, so
a job that dies mid-pipeline is left inspectable in its last stage. There is no
reconciliation of such stuck jobs.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
import logging
from pathlib import Path
from typing import Callable

from app.adapters.media import MediaProber, ProbeResult, TranscodeInvoker
from app.adapters.storage import BlobLocation
from app.core.logging_safety import safe_log_identifier
from app.domain.job_fsm import PROBED_PROGRESS, STAGE_PROGRESS, ensure_progress, ensure_transition
from app.domain.ownership import download_filename, new_job_id, output_object_key
from app.errors import ProbeError
from app.repositories.base import JobMetadataStore, JobPatch, JobRecord, NewJob
from app.schemas.auth import OwnerIdentity
from app.schemas.job import JobStatus, OutputFormat, StartJobRequest
from app.services.transfer import ArtifactTransfer, ScratchSpace

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class JobOutcome:
    job_id: str
    output_format: OutputFormat
    status: JobStatus
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is JobStatus.DONE


@dataclass(slots=True)
class _RunState:
    owner_key: str
    job_id: str
    status: JobStatus
    progress: int

    @property
    def log_id(self) -> str:
        return safe_log_identifier(self.job_id, prefix="jid")


class JobOrchestrator:
    def __init__(
        self,
        *,
        store: JobMetadataStore,
        transfer: ArtifactTransfer,
        invoker: TranscodeInvoker,
        prober: MediaProber,
        output_bucket: str,
        output_prefix: str,
        default_format: OutputFormat = OutputFormat.MP4,
        id_factory: Callable[[], str] = new_job_id,
    ) -> None:
        self._store = store
        self._transfer = transfer
        self._invoker = invoker
        self._prober = prober
        self._output_bucket = output_bucket
        self._output_prefix = output_prefix
        self._default_format = default_format
        self._id_factory = id_factory

    def start(self, *, owner: OwnerIdentity, request: StartJobRequest) -> JobOutcome:
        record = self.submit(owner=owner, request=request)
        return self.run(record)

    def submit(self, *, owner: OwnerIdentity, request: StartJobRequest) -> JobRecord:
        """Seed a queued record for the request."""
        output_format = OutputFormat.normalize(request.format, self._default_format)
        job_id = self._id_factory()
        record = self._store.create(
            owner.owner_key,
            job_id,
            NewJob(
                source_location=request.source,
                output_format=output_format,
                owner_email=(owner.email or "").lower() or None,
                original_filename=request.original_filename or request.source.rsplit("/", 1)[-1],
                original_size=request.original_size,
                uploaded_at=request.uploaded_at,
            ),
        )
        logger.info(
            "job.accepted job_id=%s owner=%s output_format=%s requested_format=%s",
            safe_log_identifier(job_id, prefix="jid"),
            safe_log_identifier(owner.owner_key, prefix="own"),
            output_format.value,
            request.format,
        )
        return record

    def run(self, record: JobRecord) -> JobOutcome:
        """Drive a queued job to ``done`` or ``error``."""
        state = _RunState(
            owner_key=record.owner_key,
            job_id=record.job_id,
            status=record.status,
            progress=record.progress,
        )
        with self._transfer.scratch(record.job_id) as scratch:
            try:
                self._run_stages(record, state, scratch)
            except Exception as exc:  # every stage failure lands in the record's error state
                message = str(exc) or type(exc).__name__
                logger.warning(
                    "job.failed job_id=%s stage=%s progress=%s reason=%s",
                    state.log_id,
                    state.status.value,
                    state.progress,
                    type(exc).__name__,
                )
                self._fail(state, message)
                return JobOutcome(
                    job_id=record.job_id,
                    output_format=record.output_format,
                    status=JobStatus.ERROR,
                    error=message,
                )

        logger.info("job.done job_id=%s output_format=%s", state.log_id, record.output_format.value)
        return JobOutcome(job_id=record.job_id, output_format=record.output_format, status=JobStatus.DONE)

    def _run_stages(self, record: JobRecord, state: _RunState, scratch: ScratchSpace) -> None:
        output_format = record.output_format

        self._advance(state, JobStatus.DOWNLOADING)
        source = self._transfer.fetch_to_local(record.source_location, scratch)
        observed = JobPatch(
            original_size=source.size_bytes if record.original_size is None else None,
            uploaded_at=source.last_modified if record.uploaded_at is None else None,
        )
        self._store.patch(state.owner_key, state.job_id, observed)

        self._advance(state, JobStatus.PROCESSING)
        output_path = scratch.path(f"out.{output_format.value}")
        self._invoker.run(source.path, output_format, output_path)

        probe = self._probe(output_path)
        if probe.ok:
            ensure_progress(state.progress, PROBED_PROGRESS)
            self._store.patch(
                state.owner_key,
                state.job_id,
                JobPatch.from_metadata(probe.metadata, progress=PROBED_PROGRESS),
            )
            state.progress = PROBED_PROGRESS
        else:
            logger.warning("job.probe_skipped job_id=%s reason=%s", state.log_id, probe.error)

        self._advance(state, JobStatus.UPLOADING)
        destination = BlobLocation(
            bucket=self._output_bucket,
            key=output_object_key(self._output_prefix, state.owner_key, state.job_id, output_format.value),
        )
        output_size = self._transfer.publish_from_local(
            output_path,
            destination,
            content_type=output_format.content_type,
            download_filename=download_filename(record.original_filename, state.job_id, output_format.value),
        )

        self._advance(
            state,
            JobStatus.DONE,
            output_size=output_size,
            output_location=destination.uri,
            completed_at=datetime.now(UTC),
        )

    def _probe(self, path: Path) -> ProbeResult:
        try:
            return ProbeResult.succeeded(self._prober.probe(path))
        except ProbeError as exc:
            return ProbeResult.failed(str(exc))

    def _advance(self, state: _RunState, status: JobStatus, **fields) -> None:
        progress = STAGE_PROGRESS[status]
        ensure_transition(state.status, status)
        ensure_progress(state.progress, progress)
        self._store.patch(state.owner_key, state.job_id, JobPatch(status=status, progress=progress, **fields))
        state.status = status
        state.progress = progress
        logger.info("job.stage job_id=%s status=%s progress=%s", state.log_id, status.value, progress)

    def _fail(self, state: _RunState, message: str) -> None:
        ensure_transition(state.status, JobStatus.ERROR)
        # Progress is left at its last value.
        self._store.patch(state.owner_key, state.job_id, JobPatch(status=JobStatus.ERROR, error=message))
        state.status = JobStatus.ERROR


__all__ = ["JobOrchestrator", "JobOutcome"]
