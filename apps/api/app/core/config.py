"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    auth_provider: Literal["mock", "firebase"] = "firebase"
    firebase_project_id: str | None = None
    firebase_audience: str | None = None
    firebase_credentials_secret_id: str | None = None
    secret_cache_ttl_seconds: int = 600

    backend: Literal["memory", "aws"] = "aws"
    aws_region: str = "ap-southeast-2"
    s3_bucket: str = "reel-transcoder"
    s3_prefix: str = "videos"
    ddb_table: str = "VideoMetadata"
    ddb_partition_attribute: str = "qut-username"
    ddb_sort_attribute: str = "videoId"
    # Every record shares this partition value; owners are separated by record key prefix.
    tenant_partition_value: str = "reel-transcoder"
    ensure_table_on_startup: bool = False
    ensure_bucket_on_startup: bool = False
    # JSON object in the environment, e.g. {"qut-username": "...", "purpose": "VideoTranscoder"}.
    bucket_tags: dict[str, str] = {}

    scratch_dir: str | None = None
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    default_output_format: Literal["mp4", "webm", "mov", "mkv"] = "mp4"
    download_url_ttl_seconds: int = 600

    model_config = SettingsConfigDict(env_prefix="REEL_", extra="ignore")

    @property
    def normalized_s3_prefix(self) -> str:
        return self.s3_prefix.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
