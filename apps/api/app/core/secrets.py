"""Lazily refreshed secret material."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
import base64
import json
import logging
from threading import Lock
from typing import Callable

import boto3

logger = logging.getLogger(__name__)

SecretFetcher = Callable[[], str]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class CachedSecret:
    """Holds one secret value together with the time it was fetched.

    The value is fetched on first use and again once ``ttl`` has elapsed.
    Instances are created by the application factory and injected into the
    components that need them.
    """

    fetcher: SecretFetcher
    ttl: timedelta = timedelta(minutes=10)
    clock: Clock = _utcnow
    value: str | None = None
    fetched_at: datetime | None = None
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    def get(self) -> str:
        with self._lock:
            now = self.clock()
            if self.value is not None and self.fetched_at is not None and now - self.fetched_at < self.ttl:
                return self.value

            value = self.fetcher()
            if not value:
                raise ValueError("Secret payload is empty")
            self.value = value
            self.fetched_at = now
            logger.info("secret.refreshed fetched_at=%s", now.isoformat())
            return value

    def clear(self) -> None:
        with self._lock:
            self.value = None
            self.fetched_at = None


def secrets_manager_fetcher(*, secret_id: str, region: str, json_key: str | None = None) -> SecretFetcher:
    """Build a fetcher that reads ``secret_id`` from AWS Secrets Manager.

    When ``json_key`` is given and the payload parses as a JSON object, only that
    key is returned; payloads that are not JSON are returned whole.
    """

    def fetch() -> str:
        client = boto3.client("secretsmanager", region_name=region)
        response = client.get_secret_value(SecretId=secret_id, VersionStage="AWSCURRENT")
        raw = response.get("SecretString")
        if raw is None and response.get("SecretBinary") is not None:
            binary = response["SecretBinary"]
            raw = binary.decode("utf-8") if isinstance(binary, bytes) else base64.b64decode(binary).decode("utf-8")
        if not raw:
            raise ValueError("Secret payload is empty")
        if json_key is None:
            return raw

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            return raw
        if not isinstance(payload, dict) or payload.get(json_key) is None:
            raise KeyError(f'Key "{json_key}" not found in secret payload')
        return str(payload[json_key])

    return fetch


__all__ = ["CachedSecret", "secrets_manager_fetcher"]
