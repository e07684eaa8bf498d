"""Job pipeline tests with fake media tools and in-memory storage."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import tempfile
import unittest

from app.adapters.media import MediaProber, TranscodeInvoker
from app.adapters.storage import BlobLocation, InMemoryBlobStore
from app.errors import ProbeError, TranscodeFailedError
from app.repositories.base import JobPatch
from app.repositories.memory import InMemoryJobStore
from app.schemas.auth import OwnerIdentity
from app.schemas.job import JobStatus, OutputFormat, StartJobRequest, TechnicalMetadata
from app.services.orchestrator import JobOrchestrator
from app.services.transfer import ArtifactTransfer

_SOURCE = "s3://media/videos/alice%40example.com/uploads/1700000000000-clip.mov"
_OWNER = OwnerIdentity(owner_key="alice@example.com", email="alice@example.com", subject="sub-a")


@dataclass(slots=True)
class _RecordingJobStore(InMemoryJobStore):
    history: list[tuple[JobStatus | None, int | None]] = field(default_factory=list)

    def patch(self, owner_key: str, job_id: str, patch: JobPatch) -> None:
        InMemoryJobStore.patch(self, owner_key, job_id, patch)
        if patch.status is not None or patch.progress is not None:
            self.history.append((patch.status, patch.progress))


class _FakeInvoker(TranscodeInvoker):
    def __init__(self, *, exit_code: int = 0, payload: bytes = b"transcoded-bytes") -> None:
        self.exit_code = exit_code
        self.payload = payload
        self.calls: list[tuple[Path, OutputFormat, Path]] = []
        self.observed_status: JobStatus | None = None
        self.store: InMemoryJobStore | None = None
        self.job_id: str | None = None

    def run(self, source: Path, output_format: OutputFormat, output: Path) -> None:
        self.calls.append((source, output_format, output))
        if self.store is not None and self.job_id is not None:
            self.observed_status = self.store.get(_OWNER.owner_key, self.job_id).status
        if self.exit_code:
            raise TranscodeFailedError(self.exit_code)
        output.write_bytes(self.payload)


class _FakeProber(MediaProber):
    def __init__(self, metadata: TechnicalMetadata | None = None, error: str | None = None) -> None:
        self.metadata = metadata or TechnicalMetadata(
            width=1280,
            height=720,
            video_codec="vp9",
            audio_codec="opus",
            fps=30.0,
            duration=12.5,
            bitrate=900000,
        )
        self.error = error

    def probe(self, path: Path) -> TechnicalMetadata:
        if self.error:
            raise ProbeError(self.error)
        return self.metadata


class JobOrchestratorTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.scratch_root = Path(self._tmp.name)
        self.store = _RecordingJobStore()
        self.blob_store = InMemoryBlobStore()
        self.blob_store.put_bytes(BlobLocation.parse(_SOURCE), b"source-bytes")
        self.invoker = _FakeInvoker()
        self.prober = _FakeProber()
        self._ids = iter(["1700000000001-00000001", "1700000000002-00000002", "1700000000003-00000003"])

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _orchestrator(self) -> JobOrchestrator:
        return JobOrchestrator(
            store=self.store,
            transfer=ArtifactTransfer(self.blob_store, self.scratch_root),
            invoker=self.invoker,
            prober=self.prober,
            output_bucket="media",
            output_prefix="videos",
            id_factory=lambda: next(self._ids),
        )

    def test_successful_job_walks_every_stage_to_done(self) -> None:
        outcome = self._orchestrator().start(
            owner=_OWNER,
            request=StartJobRequest(source=_SOURCE, format="webm", original_filename="clip.mov"),
        )

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.output_format, OutputFormat.WEBM)
        self.assertEqual(
            self.store.history,
            [
                (JobStatus.DOWNLOADING, 5),
                (JobStatus.PROCESSING, 20),
                (None, 80),
                (JobStatus.UPLOADING, 85),
                (JobStatus.DONE, 100),
            ],
        )
        record = self.store.get(_OWNER.owner_key, outcome.job_id)
        self.assertEqual(record.status, JobStatus.DONE)
        self.assertEqual(record.progress, 100)
        self.assertEqual(record.video_codec, "vp9")
        self.assertEqual(record.width, 1280)
        self.assertEqual(record.output_size, len(b"transcoded-bytes"))
        self.assertEqual(record.original_size, len(b"source-bytes"))
        self.assertIsNotNone(record.completed_at)
        self.assertIsNone(record.error)
        self.assertEqual(
            record.output_location,
            f"s3://media/videos/alice%40example.com/{outcome.job_id}/output.webm",
        )

        stored = self.blob_store.get_object(BlobLocation.parse(record.output_location))
        self.assertEqual(stored.data, b"transcoded-bytes")
        self.assertEqual(stored.content_type, "video/webm")
        self.assertEqual(stored.content_disposition, 'attachment; filename="clip.webm"')
        self.assertEqual(list(self.scratch_root.iterdir()), [])

    def test_transcoder_runs_while_job_is_processing(self) -> None:
        orchestrator = self._orchestrator()
        record = orchestrator.submit(owner=_OWNER, request=StartJobRequest(source=_SOURCE))
        self.invoker.store = self.store
        self.invoker.job_id = record.job_id

        self.assertEqual(self.store.get(_OWNER.owner_key, record.job_id).status, JobStatus.QUEUED)
        orchestrator.run(record)

        self.assertEqual(self.invoker.observed_status, JobStatus.PROCESSING)
        source_path, output_format, _ = self.invoker.calls[0]
        self.assertEqual(output_format, OutputFormat.MP4)
        self.assertEqual(source_path.suffix, ".mov")

    def test_transcoder_failure_freezes_progress_and_publishes_nothing(self) -> None:
        self.invoker.exit_code = 1
        objects_before = set(self.blob_store.objects)

        outcome = self._orchestrator().start(owner=_OWNER, request=StartJobRequest(source=_SOURCE, format="mp4"))

        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.error, "ffmpeg failed: exit code 1")
        record = self.store.get(_OWNER.owner_key, outcome.job_id)
        self.assertEqual(record.status, JobStatus.ERROR)
        self.assertEqual(record.progress, 20)
        self.assertEqual(record.error, "ffmpeg failed: exit code 1")
        self.assertIsNone(record.output_location)
        self.assertEqual(set(self.blob_store.objects), objects_before)
        self.assertEqual(list(self.scratch_root.iterdir()), [])

    def test_probe_failure_still_reaches_done_without_metadata(self) -> None:
        self.prober.error = "ffprobe failed: unreadable"

        outcome = self._orchestrator().start(owner=_OWNER, request=StartJobRequest(source=_SOURCE))

        self.assertTrue(outcome.ok)
        record = self.store.get(_OWNER.owner_key, outcome.job_id)
        self.assertEqual(record.status, JobStatus.DONE)
        self.assertEqual(record.progress, 100)
        self.assertEqual(record.metadata.model_dump(exclude_none=True), {})
        self.assertNotIn((None, 80), self.store.history)

    def test_unsupported_format_falls_back_to_default(self) -> None:
        outcome = self._orchestrator().start(owner=_OWNER, request=StartJobRequest(source=_SOURCE, format="avi"))

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.output_format, OutputFormat.MP4)
        self.assertTrue(self.store.get(_OWNER.owner_key, outcome.job_id).output_location.endswith("/output.mp4"))

    def test_format_is_normalized_before_use(self) -> None:
        outcome = self._orchestrator().start(owner=_OWNER, request=StartJobRequest(source=_SOURCE, format=" .MKV "))

        self.assertEqual(outcome.output_format, OutputFormat.MKV)
        self.assertEqual(self.invoker.calls[0][1], OutputFormat.MKV)

    def test_missing_source_fails_during_download(self) -> None:
        outcome = self._orchestrator().start(
            owner=_OWNER,
            request=StartJobRequest(source="s3://media/uploads/missing.mov"),
        )

        self.assertFalse(outcome.ok)
        record = self.store.get(_OWNER.owner_key, outcome.job_id)
        self.assertEqual(record.status, JobStatus.ERROR)
        self.assertEqual(record.progress, 5)
        self.assertIn("Source unavailable", record.error)
        self.assertEqual(self.invoker.calls, [])

    def test_publish_failure_leaves_job_in_error_at_upload_stage(self) -> None:
        self.blob_store.upload_failure_message = "access denied"

        outcome = self._orchestrator().start(owner=_OWNER, request=StartJobRequest(source=_SOURCE))

        record = self.store.get(_OWNER.owner_key, outcome.job_id)
        self.assertEqual(record.status, JobStatus.ERROR)
        self.assertEqual(record.progress, 85)
        self.assertIn("access denied", record.error)
        self.assertIsNone(record.output_location)

    def test_client_supplied_upload_facts_are_kept(self) -> None:
        outcome = self._orchestrator().start(
            owner=_OWNER,
            request=StartJobRequest(source=_SOURCE, original_size=4096),
        )

        record = self.store.get(_OWNER.owner_key, outcome.job_id)
        self.assertEqual(record.original_size, 4096)
        self.assertIsNotNone(record.uploaded_at)

    def test_original_filename_defaults_to_source_basename(self) -> None:
        record = self._orchestrator().submit(owner=_OWNER, request=StartJobRequest(source=_SOURCE))

        self.assertEqual(record.original_filename, "1700000000000-clip.mov")
        self.assertEqual(record.owner_email, "alice@example.com")

    def test_each_start_creates_a_new_record(self) -> None:
        orchestrator = self._orchestrator()
        first = orchestrator.start(owner=_OWNER, request=StartJobRequest(source=_SOURCE))
        second = orchestrator.start(owner=_OWNER, request=StartJobRequest(source=_SOURCE))

        self.assertNotEqual(first.job_id, second.job_id)
        self.assertEqual(len(self.store.list_by_owner(_OWNER.owner_key)), 2)


if __name__ == "__main__":
    unittest.main()
