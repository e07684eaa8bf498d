"""ffmpeg invocation per target format."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from pathlib import Path
import subprocess

from app.errors import ToolUnavailableError, TranscodeFailedError
from app.schemas.job import OutputFormat

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FormatProfile:
    video_codec: str
    audio_codec: str
    container: str
    quality_args: tuple[str, ...]
    container_args: tuple[str, ...] = ()


FORMAT_PROFILES: dict[OutputFormat, FormatProfile] = {
    OutputFormat.MP4: FormatProfile(
        video_codec="libx264",
        audio_codec="aac",
        container="mp4",
        quality_args=("-preset", "medium", "-crf", "23", "-b:a", "128k"),
        container_args=("-movflags", "+faststart"),
    ),
    OutputFormat.WEBM: FormatProfile(
        video_codec="libvpx-vp9",
        audio_codec="libopus",
        container="webm",
        quality_args=("-b:v", "0", "-crf", "32", "-row-mt", "1", "-b:a", "128k"),
    ),
    OutputFormat.MOV: FormatProfile(
        video_codec="libx264",
        audio_codec="aac",
        container="mov",
        quality_args=("-preset", "medium", "-crf", "20", "-b:a", "192k"),
    ),
    OutputFormat.MKV: FormatProfile(
        video_codec="libx264",
        audio_codec="aac",
        container="matroska",
        quality_args=("-preset", "medium", "-crf", "23", "-b:a", "128k"),
    ),
}


def build_ffmpeg_args(ffmpeg_path: str, source: Path, output_format: OutputFormat, output: Path) -> list[str]:
    profile = FORMAT_PROFILES[output_format]
    return [
        ffmpeg_path,
        "-y",
        "-hide_banner",
        "-nostdin",
        "-i",
        str(source),
        "-c:v",
        profile.video_codec,
        *profile.quality_args,
        "-c:a",
        profile.audio_codec,
        *profile.container_args,
        "-f",
        profile.container,
        str(output),
    ]


class TranscodeInvoker(ABC):
    @abstractmethod
    def run(self, source: Path, output_format: OutputFormat, output: Path) -> None:
        """Transcode ``source`` into ``output``; block until the tool exits."""


class FfmpegInvoker(TranscodeInvoker):
    def __init__(self, ffmpeg_path: str = "ffmpeg") -> None:
        self._ffmpeg_path = ffmpeg_path

    def run(self, source: Path, output_format: OutputFormat, output: Path) -> None:
        args = build_ffmpeg_args(self._ffmpeg_path, source, output_format, output)
        try:
            completed = subprocess.run(args, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=False)
        except OSError as exc:
            raise ToolUnavailableError(f"Unable to start {self._ffmpeg_path}: {exc}") from exc

        if completed.returncode != 0:
            logger.warning("ffmpeg.failed format=%s exit_code=%s", output_format.value, completed.returncode)
            raise TranscodeFailedError(completed.returncode)


__all__ = ["FORMAT_PROFILES", "FfmpegInvoker", "FormatProfile", "TranscodeInvoker", "build_ffmpeg_args"]
