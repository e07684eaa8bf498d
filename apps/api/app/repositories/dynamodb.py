"""DynamoDB-backed job metadata store.

The table's partition key is mandated externally and holds one constant value
for every record. The sort key carries ``<ownerKey>#<jobId>``, and all
per-owner access goes through that composite key.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
import logging
from typing import Any

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from app.core.logging_safety import safe_log_identifier
from app.domain.ownership import owner_prefix, record_key
from app.errors import DuplicateJobError, RecordNotFoundError
from app.repositories.base import JobMetadataStore, JobPatch, JobRecord, NewJob
from app.schemas.job import JobStatus, OutputFormat

logger = logging.getLogger(__name__)

_CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"

# Record attribute -> table attribute.
_ATTRIBUTE_NAMES: dict[str, str] = {
    "job_id": "id",
    "owner_key": "ownerKey",
    "owner_email": "ownerEmail",
    "original_filename": "originalFilename",
    "source_location": "sourceLocation",
    "output_format": "outputFormat",
    "status": "status",
    "progress": "progress",
    "created_at": "createdAt",
    "started_at": "startedAt",
    "width": "width",
    "height": "height",
    "video_codec": "videoCodec",
    "audio_codec": "audioCodec",
    "fps": "fps",
    "duration": "duration",
    "bitrate": "bitrate",
    "original_size": "originalSize",
    "uploaded_at": "uploadedAt",
    "output_size": "outputSize",
    "output_location": "outputLocation",
    "completed_at": "completedAt",
    "error": "error",
}
_INT_FIELDS = frozenset({"progress", "width", "height", "bitrate", "original_size", "output_size"})
_FLOAT_FIELDS = frozenset({"fps", "duration"})
_DATETIME_FIELDS = frozenset({"created_at", "started_at", "uploaded_at", "completed_at"})


def _to_item_value(value: Any) -> Any:
    if isinstance(value, (JobStatus, OutputFormat)):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def _from_item_value(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _INT_FIELDS:
        return int(value)
    if name in _FLOAT_FIELDS:
        return float(value)
    if name in _DATETIME_FIELDS:
        return datetime.fromisoformat(str(value))
    if name == "status":
        return JobStatus(value)
    if name == "output_format":
        return OutputFormat(value)
    return value


class DynamoDbJobStore(JobMetadataStore):
    def __init__(
        self,
        *,
        table_name: str,
        tenant: str,
        partition_attribute: str = "qut-username",
        sort_attribute: str = "videoId",
        region: str | None = None,
        table: Any = None,
    ) -> None:
        self._table_name = table_name
        self._tenant = tenant
        self._pk = partition_attribute
        self._sk = sort_attribute
        self._region = region
        self._table = table

    @property
    def table(self) -> Any:
        if self._table is None:
            self._table = boto3.resource("dynamodb", region_name=self._region).Table(self._table_name)
        return self._table

    def _key(self, owner_key: str, job_id: str) -> dict[str, str]:
        return {self._pk: self._tenant, self._sk: record_key(owner_key, job_id)}

    def _to_record(self, item: dict[str, Any]) -> JobRecord:
        values = {name: _from_item_value(name, item.get(attribute)) for name, attribute in _ATTRIBUTE_NAMES.items()}
        values["progress"] = values["progress"] or 0
        return JobRecord(tenant=item[self._pk], record_key=item[self._sk], **values)

    def create(self, owner_key: str, job_id: str, job: NewJob) -> JobRecord:
        key = self._key(owner_key, job_id)
        now = datetime.now(UTC)
        record = JobRecord(
            tenant=self._tenant,
            record_key=key[self._sk],
            job_id=job_id,
            owner_key=owner_key,
            owner_email=job.owner_email,
            original_filename=job.original_filename,
            source_location=job.source_location,
            output_format=job.output_format,
            status=JobStatus.QUEUED,
            progress=0,
            original_size=job.original_size,
            uploaded_at=job.uploaded_at,
            created_at=now,
            started_at=now,
        )
        item = dict(key)
        for name, attribute in _ATTRIBUTE_NAMES.items():
            value = getattr(record, name)
            if value is not None:
                item[attribute] = _to_item_value(value)

        try:
            self.table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(#sk)",
                ExpressionAttributeNames={"#sk": self._sk},
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == _CONDITIONAL_CHECK_FAILED:
                raise DuplicateJobError(f"Job {job_id} already exists") from exc
            raise
        return record

    def patch(self, owner_key: str, job_id: str, patch: JobPatch) -> None:
        changes = patch.changes()
        if not changes:
            return

        names = {"#sk": self._sk}
        values: dict[str, Any] = {}
        assignments: list[str] = []
        for index, (name, value) in enumerate(changes.items()):
            names[f"#k{index}"] = _ATTRIBUTE_NAMES[name]
            values[f":v{index}"] = _to_item_value(value)
            assignments.append(f"#k{index} = :v{index}")

        try:
            self.table.update_item(
                Key=self._key(owner_key, job_id),
                UpdateExpression="SET " + ", ".join(assignments),
                ConditionExpression="attribute_exists(#sk)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == _CONDITIONAL_CHECK_FAILED:
                raise RecordNotFoundError(f"Job {job_id} not found") from exc
            raise

    def get(self, owner_key: str, job_id: str) -> JobRecord | None:
        response = self.table.get_item(Key=self._key(owner_key, job_id))
        item = response.get("Item")
        return self._to_record(item) if item else None

    def list_by_owner(self, owner_key: str) -> list[JobRecord]:
        query: dict[str, Any] = {
            "KeyConditionExpression": Key(self._pk).eq(self._tenant) & Key(self._sk).begins_with(owner_prefix(owner_key)),
            "ScanIndexForward": False,
        }
        records: list[JobRecord] = []
        while True:
            response = self.table.query(**query)
            records.extend(self._to_record(item) for item in response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return records
            query["ExclusiveStartKey"] = last_key

    def ensure_table(self, *, create_missing: bool = True) -> str:
        """Check the live key schema; create the table when it does not exist.

        Returns ``"exists"``, ``"created"``, ``"missing"`` or ``"mismatch"``. A
        table with a different key schema is reported and left untouched.
        """
        client = self.table.meta.client
        expected = [
            {"AttributeName": self._pk, "KeyType": "HASH"},
            {"AttributeName": self._sk, "KeyType": "RANGE"},
        ]
        try:
            description = client.describe_table(TableName=self._table_name)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") != "ResourceNotFoundException":
                raise
            if not create_missing:
                logger.warning("ddb.table_missing table=%s", self._table_name)
                return "missing"
            client.create_table(
                TableName=self._table_name,
                AttributeDefinitions=[
                    {"AttributeName": self._pk, "AttributeType": "S"},
                    {"AttributeName": self._sk, "AttributeType": "S"},
                ],
                KeySchema=expected,
                BillingMode="PAY_PER_REQUEST",
            )
            client.get_waiter("table_exists").wait(TableName=self._table_name)
            logger.info("ddb.table_created table=%s pk=%s sk=%s", self._table_name, self._pk, self._sk)
            return "created"

        live = description.get("Table", {}).get("KeySchema", [])
        if live != expected:
            logger.warning(
                "ddb.table_schema_mismatch table=%s expected_pk=%s expected_sk=%s",
                self._table_name,
                self._pk,
                self._sk,
            )
            return "mismatch"
        logger.info("ddb.table_ready table=%s tenant=%s", self._table_name, safe_log_identifier(self._tenant, prefix="tnt"))
        return "exists"


__all__ = ["DynamoDbJobStore"]
