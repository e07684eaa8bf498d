"""ffprobe inspection of finished artifacts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import json
import math
from pathlib import Path
import subprocess
from typing import Any

from app.errors import ProbeError
from app.schemas.job import TechnicalMetadata


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Outcome of the best-effort probe step; a failure is reported, never raised."""

    metadata: TechnicalMetadata | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.metadata is not None

    @classmethod
    def succeeded(cls, metadata: TechnicalMetadata) -> ProbeResult:
        return cls(metadata=metadata)

    @classmethod
    def failed(cls, error: str) -> ProbeResult:
        return cls(error=error)


def _finite_number(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _frame_rate(raw: Any) -> float | None:
    text = str(raw or "")
    if not text or text == "0/0":
        return None
    numerator, _, denominator = text.partition("/")
    num = _finite_number(numerator)
    den = _finite_number(denominator) if denominator else 1.0
    if not num or not den:
        return None
    return num / den


def _positive_int(value: Any) -> int | None:
    number = _finite_number(value)
    if number is None or number <= 0:
        return None
    return int(number)


def parse_probe_output(payload: dict[str, Any]) -> TechnicalMetadata:
    streams = payload.get("streams") or []
    video = next((s for s in streams if s.get("codec_type") == "video"), {})
    audio = next((s for s in streams if s.get("codec_type") == "audio"), {})
    container = payload.get("format") or {}

    duration = _finite_number(container.get("duration"))
    if duration is None:
        duration = _finite_number(video.get("duration"))
    bitrate = _finite_number(container.get("bit_rate"))

    return TechnicalMetadata(
        width=_positive_int(video.get("width")),
        height=_positive_int(video.get("height")),
        video_codec=video.get("codec_name") or None,
        audio_codec=audio.get("codec_name") or None,
        fps=_frame_rate(video.get("avg_frame_rate")),
        duration=duration,
        bitrate=int(bitrate) if bitrate is not None else None,
    )


class MediaProber(ABC):
    @abstractmethod
    def probe(self, path: Path) -> TechnicalMetadata:
        """Inspect ``path``. Raises ``ProbeError`` on any failure."""


class FfprobeProber(MediaProber):
    def __init__(self, ffprobe_path: str = "ffprobe") -> None:
        self._ffprobe_path = ffprobe_path

    def probe(self, path: Path) -> TechnicalMetadata:
        args = [
            self._ffprobe_path,
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_streams",
            "-show_format",
            str(path),
        ]
        try:
            completed = subprocess.run(args, capture_output=True, text=True, check=True)
            payload = json.loads(completed.stdout)
        except (OSError, subprocess.CalledProcessError, json.JSONDecodeError) as exc:
            raise ProbeError(f"ffprobe failed: {exc}") from exc
        if not isinstance(payload, dict):
            raise ProbeError("ffprobe returned an unexpected payload")
        return parse_probe_output(payload)


__all__ = ["FfprobeProber", "MediaProber", "ProbeResult", "parse_probe_output"]
