"""Utilities for safe structured logging fields."""

from __future__ import annotations

import hashlib
from typing import Any


def _digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]


def safe_log_identifier(value: Any, *, prefix: str) -> str:
    """Return a deterministic non-reversible token for log correlation fields."""
    text = str(value or "").strip()
    if not text:
        return f"{prefix}-missing"

    return f"{prefix}-{_digest(text)}"


def safe_log_location(uri: Any) -> str:
    """Keep the bucket of an ``s3://`` location readable and hash the object key.

    Object keys embed owner keys, so they never reach the logs verbatim.
    """
    text = str(uri or "").strip()
    if not text:
        return "loc-missing"
    if not text.startswith("s3://"):
        return f"loc-{_digest(text)}"

    bucket, _, key = text[5:].partition("/")
    if not key:
        return f"s3://{bucket}"
    return f"s3://{bucket}/key-{_digest(key)}"
