"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_FINALIZER_ADDED,
    EVENT_REASON_FINALIZER_REMOVED,
    EVENT_REASON_INVALID_RESOURCE,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_RECONCILE_SUCCEEDED,
    EVENT_REASON_TOKEN_EXPIRED,
    EVENT_REASON_TOKEN_ISSUED,
)
from .errors import sanitize_error_message


def emit_event(
    obj: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        obj: Object (or its body) the event refers to
        reason: Event reason
        message: Event message; credentials are redacted before posting
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        obj,
        reason=reason,
        message=sanitize_error_message(message),
        type=type_,
    )


def emit_reconcile_started(obj: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(obj, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_succeeded(obj: dict[str, Any]) -> None:
    emit_event(obj, EVENT_REASON_RECONCILE_SUCCEEDED, "Reconciliation succeeded")


def emit_reconcile_failed(obj: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(obj, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_finalizer_added(obj: dict[str, Any], finalizer: str) -> None:
    emit_event(obj, EVENT_REASON_FINALIZER_ADDED, f"Finalizer {finalizer} added")


def emit_finalizer_removed(obj: dict[str, Any], finalizer: str) -> None:
    emit_event(obj, EVENT_REASON_FINALIZER_REMOVED, f"Finalizer {finalizer} removed")


def emit_token_issued(obj: dict[str, Any], expiration: str) -> None:
    """Emit token issued event."""
    emit_event(obj, EVENT_REASON_TOKEN_ISSUED, f"Monitoring token issued, expires at {expiration}")


def emit_token_expired(obj: dict[str, Any], message: str) -> None:
    emit_event(obj, EVENT_REASON_TOKEN_EXPIRED, message)


def emit_invalid_resource(obj: dict[str, Any], message: str) -> None:
    emit_event(obj, EVENT_REASON_INVALID_RESOURCE, message, type_="Warning")
