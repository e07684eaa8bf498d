"""Amazon S3 blob storage adapter."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from app.adapters.storage.base import (
    BlobLocation,
    BlobNotFoundError,
    BlobStore,
    BlobStoreError,
    ObjectFacts,
    attachment_disposition,
)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NoSuchBucket", "404", "NotFound"})
_CHUNK_SIZE = 1024 * 1024

logger = logging.getLogger(__name__)


class S3BlobStore(BlobStore):
    """Streams objects between S3 and local files."""

    def __init__(self, *, region: str | None = None, client: Any = None) -> None:
        self._region = region
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("s3", region_name=self._region)
        return self._client

    def download_to(self, location: BlobLocation, destination: Path) -> ObjectFacts:
        try:
            response = self.client.get_object(Bucket=location.bucket, Key=location.key)
            size = 0
            with destination.open("wb") as handle:
                for chunk in response["Body"].iter_chunks(chunk_size=_CHUNK_SIZE):
                    handle.write(chunk)
                    size += len(chunk)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                raise BlobNotFoundError(f"Object not found: {location.uri}") from exc
            raise BlobStoreError(f"S3 download failed: {code or exc}") from exc
        except BotoCoreError as exc:
            raise BlobStoreError(f"S3 download failed: {exc}") from exc

        return ObjectFacts(
            size_bytes=int(response.get("ContentLength") or size),
            last_modified=response.get("LastModified"),
        )

    def upload_from(
        self,
        source: Path,
        location: BlobLocation,
        *,
        content_type: str,
        download_filename: str,
    ) -> None:
        try:
            self.client.upload_file(
                str(source),
                location.bucket,
                location.key,
                ExtraArgs={
                    "ContentType": content_type,
                    "ContentDisposition": attachment_disposition(download_filename),
                    "Metadata": {"download-filename": download_filename},
                },
            )
        # upload_file reports service errors as S3UploadFailedError.
        except (BotoCoreError, ClientError, S3UploadFailedError) as exc:
            raise BlobStoreError(f"S3 upload failed: {exc}") from exc

    def presign_get(self, location: BlobLocation, *, expires_in: int, download_filename: str | None = None) -> str:
        params: dict[str, str] = {"Bucket": location.bucket, "Key": location.key}
        if download_filename:
            params["ResponseContentDisposition"] = attachment_disposition(download_filename)
        try:
            return self.client.generate_presigned_url("get_object", Params=params, ExpiresIn=expires_in)
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(f"Failed to presign download: {exc}") from exc

    def ensure_bucket(self, bucket: str, *, tags: dict[str, str] | None = None, create_missing: bool = True) -> str:
        """Make sure ``bucket`` exists and carries ``tags``.

        Returns ``"exists"``, ``"created"`` or ``"missing"``. Errors other than
        not-found on the existence check propagate. Tagging failures are logged
        and never fail startup.
        """
        try:
            self.client.head_bucket(Bucket=bucket)
            outcome = "exists"
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code not in _NOT_FOUND_CODES:
                raise
            if not create_missing:
                logger.warning("s3.bucket_missing bucket=%s", bucket)
                return "missing"
            params: dict[str, Any] = {"Bucket": bucket}
            # us-east-1 rejects an explicit LocationConstraint.
            if self._region and self._region != "us-east-1":
                params["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
            self.client.create_bucket(**params)
            logger.info("s3.bucket_created bucket=%s region=%s", bucket, self._region)
            outcome = "created"

        if tags:
            try:
                self.client.put_bucket_tagging(
                    Bucket=bucket,
                    Tagging={"TagSet": [{"Key": key, "Value": value} for key, value in tags.items()]},
                )
            except (BotoCoreError, ClientError) as exc:
                logger.warning("s3.bucket_tagging_failed bucket=%s reason=%s", bucket, type(exc).__name__)
        return outcome


__all__ = ["S3BlobStore"]
