"""End-to-end transcode API scenarios against in-memory backends."""

from __future__ import annotations

import os
from pathlib import Path
import tempfile
import time
import unittest
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from app.adapters.media import MediaProber, TranscodeInvoker
from app.adapters.storage import BlobLocation, S3BlobStore
from app.core.config import get_settings
from app.errors import ProbeError, TranscodeFailedError
from app.main import create_app
from app.schemas.job import OutputFormat, TechnicalMetadata

_ALICE = {"Authorization": "Bearer test:sub-alice:alice@example.com"}
_BOB = {"Authorization": "Bearer test:sub-bob:bob@example.com"}
_SOURCE = "s3://reel-transcoder/videos/alice%40example.com/uploads/1700000000000-holiday.mov"


class _FakeInvoker(TranscodeInvoker):
    def __init__(self) -> None:
        self.exit_code = 0

    def run(self, source: Path, output_format: OutputFormat, output: Path) -> None:
        if self.exit_code:
            raise TranscodeFailedError(self.exit_code)
        output.write_bytes(b"out:" + source.read_bytes())


class _FakeProber(MediaProber):
    def __init__(self) -> None:
        self.fail = False

    def probe(self, path: Path) -> TechnicalMetadata:
        if self.fail:
            raise ProbeError("ffprobe failed")
        return TechnicalMetadata(width=640, height=360, video_codec="vp9", audio_codec="opus", fps=25.0, duration=3.0)


class _SettingsEnvCase(unittest.TestCase):
    _env_keys = (
        "REEL_AUTH_PROVIDER",
        "REEL_BACKEND",
        "REEL_SCRATCH_DIR",
        "REEL_S3_BUCKET",
        "REEL_S3_PREFIX",
    )

    def setUp(self) -> None:
        self._old_env = {k: os.environ.get(k) for k in self._env_keys}
        self._scratch = tempfile.TemporaryDirectory()
        os.environ["REEL_AUTH_PROVIDER"] = "mock"
        os.environ["REEL_BACKEND"] = "memory"
        os.environ["REEL_SCRATCH_DIR"] = self._scratch.name
        os.environ["REEL_S3_BUCKET"] = "reel-transcoder"
        os.environ["REEL_S3_PREFIX"] = "videos/"
        get_settings.cache_clear()

    def tearDown(self) -> None:
        for key, value in self._old_env.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        get_settings.cache_clear()
        self._scratch.cleanup()


class TranscodeApiTests(_SettingsEnvCase):
    def setUp(self) -> None:
        super().setUp()
        self.app = create_app()
        self.invoker = _FakeInvoker()
        self.prober = _FakeProber()
        self.app.state.invoker = self.invoker
        self.app.state.prober = self.prober
        self.app.state.blob_store.put_bytes(BlobLocation.parse(_SOURCE), b"source")
        self.client = TestClient(self.app)

    def _start(self, headers: dict[str, str] = _ALICE, **body) -> dict:
        payload = {"source": _SOURCE, "original_filename": "holiday.mov", **body}
        response = self.client.post("/api/v1/transcode", headers=headers, json=payload)
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def test_start_status_and_download_of_finished_job(self) -> None:
        started = self._start(format="webm")

        self.assertEqual(started["output_format"], "webm")
        self.assertEqual(started["status"], "done")
        self.assertTrue(started["ok"])

        status = self.client.get(f"/api/v1/transcode/status/{started['id']}", headers=_ALICE)
        self.assertEqual(status.status_code, 200)
        self.assertEqual(status.json()["status"], "done")
        self.assertEqual(status.json()["progress"], 100)
        self.assertIsNone(status.json()["error"])

        download = self.client.get(f"/api/v1/transcode/download/{started['id']}", headers=_ALICE)
        self.assertEqual(download.status_code, 200)
        handle = download.json()
        self.assertEqual(handle["filename"], "holiday.webm")
        self.assertEqual(handle["expires_in"], 600)
        self.assertEqual(
            handle["url"],
            f"memory://reel-transcoder/videos/alice%40example.com/{started['id']}/output.webm?expires_in=600",
        )

    def test_list_returns_only_own_jobs_newest_first(self) -> None:
        first = self._start()
        time.sleep(0.005)
        second = self._start(format="mkv")
        self._start(headers=_BOB)

        response = self.client.get("/api/v1/transcode/list", headers=_ALICE)

        self.assertEqual(response.status_code, 200)
        listed = response.json()
        self.assertEqual([item["id"] for item in listed], [second["id"], first["id"]])
        self.assertEqual({item["owner_key"] for item in listed}, {"alice@example.com"})
        self.assertEqual(listed[0]["metadata"]["video_codec"], "vp9")
        self.assertEqual(listed[0]["output_format"], "mkv")

    def test_other_owner_gets_no_leak_404(self) -> None:
        started = self._start()

        status = self.client.get(f"/api/v1/transcode/status/{started['id']}", headers=_BOB)
        download = self.client.get(f"/api/v1/transcode/download/{started['id']}", headers=_BOB)
        missing = self.client.get("/api/v1/transcode/status/does-not-exist", headers=_BOB)

        self.assertEqual(status.status_code, 404)
        self.assertEqual(status.json()["code"], "RESOURCE_NOT_FOUND")
        self.assertEqual(download.status_code, 404)
        self.assertEqual(download.json(), missing.json())
        self.assertEqual(self.client.get("/api/v1/transcode/list", headers=_BOB).json(), [])

    def test_transcode_failure_returns_502_and_records_error(self) -> None:
        self.invoker.exit_code = 1

        response = self.client.post("/api/v1/transcode", headers=_ALICE, json={"source": _SOURCE, "format": "mp4"})

        self.assertEqual(response.status_code, 502)
        body = response.json()
        self.assertEqual(body["code"], "TRANSCODE_FAILED")
        job_id = body["details"]["job_id"]
        self.assertEqual(body["details"]["reason"], "ffmpeg failed: exit code 1")

        status = self.client.get(f"/api/v1/transcode/status/{job_id}", headers=_ALICE).json()
        self.assertEqual(status["status"], "error")
        self.assertEqual(status["progress"], 20)
        self.assertEqual(status["error"], "ffmpeg failed: exit code 1")

        download = self.client.get(f"/api/v1/transcode/download/{job_id}", headers=_ALICE)
        self.assertEqual(download.status_code, 404)

    def test_missing_source_returns_502(self) -> None:
        response = self.client.post(
            "/api/v1/transcode",
            headers=_ALICE,
            json={"source": "s3://reel-transcoder/videos/alice%40example.com/uploads/gone.mov"},
        )

        self.assertEqual(response.status_code, 502)
        job_id = response.json()["details"]["job_id"]
        status = self.client.get(f"/api/v1/transcode/status/{job_id}", headers=_ALICE).json()
        self.assertEqual(status["status"], "error")
        self.assertEqual(status["progress"], 5)

    def test_probe_failure_still_completes(self) -> None:
        self.prober.fail = True

        started = self._start()

        listed = self.client.get("/api/v1/transcode/list", headers=_ALICE).json()
        self.assertEqual(started["status"], "done")
        self.assertIsNone(listed[0]["metadata"]["width"])
        self.assertEqual(listed[0]["progress"], 100)

    def test_unknown_format_falls_back_to_mp4(self) -> None:
        started = self._start(format="flv")

        self.assertEqual(started["output_format"], "mp4")

    def test_background_start_returns_202_with_queued_job(self) -> None:
        response = self.client.post(
            "/api/v1/transcode?background=true",
            headers=_ALICE,
            json={"source": _SOURCE, "format": "mov"},
        )

        self.assertEqual(response.status_code, 202)
        accepted = response.json()
        self.assertEqual(accepted["status"], "queued")
        self.assertEqual(accepted["output_format"], "mov")

        # TestClient runs background tasks before handing back the response.
        status = self.client.get(f"/api/v1/transcode/status/{accepted['id']}", headers=_ALICE).json()
        self.assertEqual(status["status"], "done")
        self.assertEqual(status["progress"], 100)

    def test_requests_without_identity_never_touch_storage(self) -> None:
        response = self.client.post("/api/v1/transcode", headers={"Authorization": "Bearer test::"}, json={"source": _SOURCE})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.app.state.job_store.job_write_count, 0)


    def test_download_reports_storage_failure_as_502(self) -> None:
        started = self._start()
        record = self.app.state.job_store.get("alice@example.com", started["id"])
        output = BlobLocation.parse(record.output_location)
        self.app.state.blob_store.objects.pop((output.bucket, output.key))

        response = self.client.get(f"/api/v1/transcode/download/{started['id']}", headers=_ALICE)

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["code"], "DOWNLOAD_UNAVAILABLE")
        self.assertEqual(response.json()["details"]["job_id"], started["id"])


class StartupBootstrapTests(_SettingsEnvCase):
    _env_keys = _SettingsEnvCase._env_keys + ("REEL_ENSURE_BUCKET_ON_STARTUP", "REEL_BUCKET_TAGS")

    def test_lifespan_ensures_bucket_with_configured_tags(self) -> None:
        os.environ["REEL_ENSURE_BUCKET_ON_STARTUP"] = "true"
        os.environ["REEL_BUCKET_TAGS"] = '{"qut-username": "owner@example.com", "purpose": "VideoTranscoder"}'
        get_settings.cache_clear()
        app = create_app()
        client = MagicMock()
        client.head_bucket.return_value = {}
        app.state.blob_store = S3BlobStore(region="ap-southeast-2", client=client)

        with TestClient(app) as test_client:
            self.assertEqual(test_client.get("/health").status_code, 200)

        client.head_bucket.assert_called_once_with(Bucket="reel-transcoder")
        client.create_bucket.assert_not_called()
        client.put_bucket_tagging.assert_called_once_with(
            Bucket="reel-transcoder",
            Tagging={
                "TagSet": [
                    {"Key": "qut-username", "Value": "owner@example.com"},
                    {"Key": "purpose", "Value": "VideoTranscoder"},
                ]
            },
        )

    def test_lifespan_skips_bucket_bootstrap_by_default(self) -> None:
        app = create_app()
        client = MagicMock()
        app.state.blob_store = S3BlobStore(client=client)

        with TestClient(app):
            pass

        client.head_bucket.assert_not_called()


if __name__ == "__main__":
    unittest.main()
