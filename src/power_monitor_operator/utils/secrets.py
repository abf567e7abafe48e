"""Helpers for secret annotations and content hashes."""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timedelta, timezone
from typing import Any

from ..constants import ANNOTATION_SECRET_HASH_PREFIX, ANNOTATION_TOKEN_EXPIRATION


def format_expiration(moment: datetime) -> str:
    """Render a UTC timestamp the way it is stored in the expiration annotation."""
    return moment.astimezone(timezone.utc).replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ")


def expiration_after(ttl_seconds: float, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return format_expiration(now + timedelta(seconds=ttl_seconds))


def get_expiration(obj: dict[str, Any]) -> datetime | None:
    """Read the token expiration annotation.

    Returns:
        The expiry as an aware UTC datetime, or None when the annotation is absent

    Raises:
        ValueError: If the annotation is present but not an RFC 3339 timestamp
    """
    annotations = obj.get("metadata", {}).get("annotations") or {}
    value = annotations.get(ANNOTATION_TOKEN_EXPIRATION)
    if value is None:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        raise ValueError(f"expiration {value!r} has no timezone")
    return parsed.astimezone(timezone.utc)


def content_hash(data: dict[str, Any] | None) -> str:
    """Stable hash of a Secret/ConfigMap data section."""
    encoded = json.dumps(data or {}, sort_keys=True).encode()
    return hashlib.sha256(encoded).hexdigest()[:16]


def secret_hash_annotation(secret_name: str) -> str:
    return f"{ANNOTATION_SECRET_HASH_PREFIX}{secret_name}"
