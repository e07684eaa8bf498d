"""External media tool adapters."""

from .prober import FfprobeProber, MediaProber, ProbeResult, parse_probe_output
from .transcoder import FORMAT_PROFILES, FfmpegInvoker, FormatProfile, TranscodeInvoker, build_ffmpeg_args

__all__ = [
    "FORMAT_PROFILES",
    "FfmpegInvoker",
    "FfprobeProber",
    "FormatProfile",
    "MediaProber",
    "ProbeResult",
    "TranscodeInvoker",
    "build_ffmpeg_args",
    "parse_probe_output",
]
