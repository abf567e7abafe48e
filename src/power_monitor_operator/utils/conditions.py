"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import COND_AVAILABLE, COND_RECONCILED, STATUS_FALSE

REQUIRED_CONDITION_TYPES = (COND_RECONCILED, COND_AVAILABLE)

# Fields whose change makes a condition worth writing back
COMPARABLE_FIELDS = ("observedGeneration", "status", "reason", "message")


def now_rfc3339() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def find_condition(conditions: list[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, or None."""
    for cond in conditions:
        if cond.get("type") == condition_type:
            return cond
    return None


def sanitize_conditions(conditions: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Normalize a condition list to exactly the required types.

    Missing types are added with status False; unknown types and duplicates
    are dropped. Existing entries keep their order and content.
    """
    result: list[dict[str, Any]] = []
    seen: set[str] = set()
    for cond in conditions or []:
        cond_type = cond.get("type")
        if cond_type in REQUIRED_CONDITION_TYPES and cond_type not in seen:
            result.append(dict(cond))
            seen.add(cond_type)

    for cond_type in REQUIRED_CONDITION_TYPES:
        if cond_type not in seen:
            result.append({"type": cond_type, "status": STATUS_FALSE})

    return result


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
    now: str | None = None,
) -> bool:
    """Update or add a condition in place.

    lastTransitionTime is refreshed only when the status changes. A change
    of observedGeneration, reason or message alone is still reported as a
    change.

    Args:
        conditions: List of existing conditions, modified in place
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown", "Degraded")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed
        now: Timestamp to use for a transition (defaults to the current time)

    Returns:
        True if any comparable field changed
    """
    latest = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
    }
    if observed_generation is not None:
        latest["observedGeneration"] = observed_generation

    existing = find_condition(conditions, condition_type)
    if existing is None:
        latest["lastTransitionTime"] = now or now_rfc3339()
        conditions.append(latest)
        return True

    if all(existing.get(field) == latest.get(field) for field in COMPARABLE_FIELDS):
        return False

    if existing.get("status") != status or not existing.get("lastTransitionTime"):
        existing["lastTransitionTime"] = now or now_rfc3339()
    existing.update(latest)
    if observed_generation is None:
        existing.pop("observedGeneration", None)
    return True
