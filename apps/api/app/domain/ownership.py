"""Owner key derivation and storage/record key composition.

All job records live under one fixed partition value, so per-owner isolation
rests entirely on these keys: a record key is ``<ownerKey>#<jobId>`` and an
owner's records are found by a ``begins_with(<ownerKey>#)`` range query. The
delimiter therefore must never occur inside an owner key; ``derive_owner_key``
escapes it.
"""

from __future__ import annotations

import re
import secrets
import time
from urllib.parse import quote

from app.errors import IdentityMissingError
from app.schemas.auth import IdentityClaims

RECORD_KEY_DELIMITER = "#"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _escape_delimiter(value: str) -> str:
    # "%" first so the escaping stays injective.
    return value.replace("%", "%25").replace(RECORD_KEY_DELIMITER, "%23")


def derive_owner_key(claims: IdentityClaims) -> str:
    """Return the lowercase owner key for verified claims.

    Human-readable identifiers win: email, then username, then the subject id.
    """
    for candidate in (claims.email, claims.username, claims.subject):
        normalized = (candidate or "").strip().lower()
        if normalized:
            return _escape_delimiter(normalized)
    raise IdentityMissingError("Token missing identity (email/username/sub)")


def record_key(owner_key: str, job_id: str) -> str:
    if not owner_key:
        raise ValueError("owner_key is required")
    if not job_id:
        raise ValueError("job_id is required")
    return f"{owner_key}{RECORD_KEY_DELIMITER}{job_id}"


def owner_prefix(owner_key: str) -> str:
    if not owner_key:
        raise ValueError("owner_key is required")
    return f"{owner_key}{RECORD_KEY_DELIMITER}"


def new_job_id() -> str:
    """Millisecond timestamp plus random suffix; sorts by creation time within an owner."""
    return f"{time.time_ns() // 1_000_000}-{secrets.token_hex(4)}"


def sanitize_filename(name: str | None, *, fallback: str = "upload.bin") -> str:
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", str(name or "").strip())
    return cleaned or fallback


def _owner_segment(owner_key: str) -> str:
    return quote(owner_key, safe="")


def output_object_key(prefix: str, owner_key: str, job_id: str, extension: str) -> str:
    return f"{prefix.rstrip('/')}/{_owner_segment(owner_key)}/{job_id}/output.{extension}"


def upload_object_key(prefix: str, owner_key: str, filename: str, timestamp_ms: int) -> str:
    return f"{prefix.rstrip('/')}/{_owner_segment(owner_key)}/uploads/{timestamp_ms}-{sanitize_filename(filename)}"


def download_filename(original_filename: str | None, job_id: str, extension: str) -> str:
    """Name the artifact after the original upload but always with the target extension."""
    base = (original_filename or "").replace("\\", "/").rsplit("/", 1)[-1]
    stem = base.rsplit(".", 1)[0] if "." in base.lstrip(".") else base
    stem = sanitize_filename(stem, fallback=f"video-{job_id}")
    return f"{stem}.{extension}"


__all__ = [
    "RECORD_KEY_DELIMITER",
    "derive_owner_key",
    "download_filename",
    "new_job_id",
    "output_object_key",
    "owner_prefix",
    "record_key",
    "sanitize_filename",
    "upload_object_key",
]
