"""Condition derivation and conflict-safe status persistence."""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable

from .. import metrics
from ..builders.power_monitor import deployment_namespace
from ..constants import (
    API_GROUP_VERSION,
    COND_AVAILABLE,
    COND_RECONCILED,
    KIND_POWER_MONITOR,
    KIND_POWER_MONITOR_INTERNAL,
    REASON_DAEMONSET_ERROR,
    REASON_DAEMONSET_NOT_FOUND,
    REASON_DAEMONSET_OUT_OF_SYNC,
    REASON_DAEMONSET_PARTIALLY_AVAILABLE,
    REASON_DAEMONSET_PODS_NOT_RUNNING,
    REASON_DAEMONSET_READY,
    REASON_DAEMONSET_ROLLOUT_IN_PROGRESS,
    REASON_INVALID_RESOURCE,
    REASON_RECONCILE_ERROR,
    REASON_RECONCILE_SUCCESS,
    REASON_SECRET_NOT_FOUND,
    STATUS_DEGRADED,
    STATUS_FALSE,
    STATUS_TRUE,
    STATUS_UNKNOWN,
)
from ..reconciler.result import SecretNotFoundError
from ..reconciler.retry import retry_on_conflict
from ..services.store import ConflictError, NotFoundError, ObjectStore, StoreError
from ..utils.conditions import now_rfc3339, sanitize_conditions, update_condition
from ..utils.errors import sanitize_exception
from ..utils.objects import generation_of, is_deleting, name_of

logger = logging.getLogger(__name__)

# DaemonSet status fields mirrored onto the instance status
ROLLOUT_COUNTERS = (
    "currentNumberScheduled",
    "numberMisscheduled",
    "desiredNumberScheduled",
    "numberReady",
    "updatedNumberScheduled",
    "numberAvailable",
    "numberUnavailable",
)


def reconciled_condition(error: Exception | None) -> dict[str, str]:
    """Reconciled reflects whether the last pass finished without error."""
    if error is None:
        return {"status": STATUS_TRUE, "reason": REASON_RECONCILE_SUCCESS, "message": "Reconcile succeeded"}
    return {"status": STATUS_FALSE, "reason": REASON_RECONCILE_ERROR, "message": sanitize_exception(error)}


def available_condition_for_get_error(error: StoreError) -> dict[str, str]:
    if isinstance(error, NotFoundError):
        return {"status": STATUS_FALSE, "reason": REASON_DAEMONSET_NOT_FOUND, "message": str(error)}
    return {"status": STATUS_UNKNOWN, "reason": REASON_DAEMONSET_ERROR, "message": str(error)}


def available_condition(ds: dict[str, Any]) -> dict[str, str]:
    """Derive availability from a DaemonSet's rollout state.

    Rules are checked in order and the first match wins.
    """
    status = ds.get("status") or {}
    ds_name = f"{ds.get('metadata', {}).get('namespace', '')}/{name_of(ds)}"

    gen = generation_of(ds)
    observed = int(status.get("observedGeneration") or 0)
    if gen > observed:
        return {
            "status": STATUS_UNKNOWN,
            "reason": REASON_DAEMONSET_OUT_OF_SYNC,
            "message": (
                f"Generation {gen} of power-monitor daemonset {ds_name!r} is out of sync "
                f"with the observed generation: {observed}"
            ),
        }

    desired = int(status.get("desiredNumberScheduled") or 0)
    ready = int(status.get("numberReady") or 0)
    updated = int(status.get("updatedNumberScheduled") or 0)
    available = int(status.get("numberAvailable") or 0)
    unavailable = int(status.get("numberUnavailable") or 0)

    if ready == 0 or desired == 0:
        return {
            "status": STATUS_FALSE,
            "reason": REASON_DAEMONSET_PODS_NOT_RUNNING,
            "message": (
                f"power-monitor daemonset {ds_name!r} is not rolled out to any node; "
                "check nodeSelector and tolerations"
            ),
        }

    if updated < desired:
        return {
            "status": STATUS_UNKNOWN,
            "reason": REASON_DAEMONSET_ROLLOUT_IN_PROGRESS,
            "message": (
                f"Waiting for power-monitor daemonset {ds_name!r} rollout to finish: "
                f"{updated} out of {desired} new pods have been updated"
            ),
        }

    if available < desired:
        return {
            "status": STATUS_UNKNOWN,
            "reason": REASON_DAEMONSET_PARTIALLY_AVAILABLE,
            "message": (
                f"Rollout of power-monitor daemonset {ds_name!r} is in progress: "
                f"{available} of {desired} updated pods are available"
            ),
        }

    if unavailable > 0:
        return {
            "status": STATUS_FALSE,
            "reason": REASON_DAEMONSET_PARTIALLY_AVAILABLE,
            "message": f"Waiting for power-monitor daemonset {ds_name!r} to rollout on {unavailable} nodes",
        }

    return {
        "status": STATUS_TRUE,
        "reason": REASON_DAEMONSET_READY,
        "message": (
            f"power-monitor daemonset {ds_name!r} is deployed to all nodes and available; "
            f"ready {ready}/{desired}"
        ),
    }


def _update_available(
    client: ObjectStore,
    pmi: dict[str, Any],
    kepler_status: dict[str, Any],
    error: Exception | None,
    now: str,
) -> bool:
    try:
        ds = client.get("apps/v1", "DaemonSet", name_of(pmi), deployment_namespace(pmi))
    except StoreError as e:
        return update_condition(kepler_status["conditions"], COND_AVAILABLE, now=now, **available_condition_for_get_error(e))

    ds_status = ds.get("status") or {}
    for counter in ROLLOUT_COUNTERS:
        kepler_status[counter] = int(ds_status.get(counter) or 0)

    available = available_condition(ds)
    observed_generation = None
    if error is None:
        observed_generation = generation_of(pmi)
    else:
        available["status"] = STATUS_DEGRADED
        if isinstance(error, SecretNotFoundError):
            available["reason"] = REASON_SECRET_NOT_FOUND
            available["message"] = str(error)
        else:
            available["reason"] = REASON_RECONCILE_ERROR

    return update_condition(
        kepler_status["conditions"],
        COND_AVAILABLE,
        observed_generation=observed_generation,
        now=now,
        **available,
    )


def _persist(kind: str, attempt: Callable[[], bool]) -> bool:
    try:
        return retry_on_conflict(attempt)
    except ConflictError:
        metrics.status_update_total.labels(kind=kind, result="conflict").inc()
        raise


def update_power_monitor_internal_status(client: ObjectStore, name: str, error: Exception | None) -> bool:
    """Write Reconciled/Available for a PowerMonitorInternal after a pass.

    Each attempt re-reads the object, so a conflicting writer simply causes
    the conditions to be recomputed. Nothing is written when neither
    condition changed.

    Returns:
        True if the status was written
    """

    def attempt() -> bool:
        try:
            pmi = client.get(API_GROUP_VERSION, KIND_POWER_MONITOR_INTERNAL, name)
        except NotFoundError:
            logger.debug(f"{KIND_POWER_MONITOR_INTERNAL} {name} is gone; skipping status update")
            return False
        if is_deleting(pmi):
            logger.debug(f"{KIND_POWER_MONITOR_INTERNAL} {name} is being deleted; skipping status update")
            return False

        kepler_status = pmi.setdefault("status", {}).setdefault("kepler", {})
        kepler_status["conditions"] = sanitize_conditions(kepler_status.get("conditions"))

        now = now_rfc3339()
        reconciled_changed = update_condition(
            kepler_status["conditions"],
            COND_RECONCILED,
            observed_generation=generation_of(pmi),
            now=now,
            **reconciled_condition(error),
        )
        available_changed = _update_available(client, pmi, kepler_status, error, now)

        if not (reconciled_changed or available_changed):
            metrics.status_update_total.labels(kind=KIND_POWER_MONITOR_INTERNAL, result="skipped").inc()
            return False

        client.update_status(pmi)
        metrics.status_update_total.labels(kind=KIND_POWER_MONITOR_INTERNAL, result="written").inc()
        return True

    return _persist(KIND_POWER_MONITOR_INTERNAL, attempt)


def internal_status_observed(internal: dict[str, Any]) -> bool:
    """True once some internal condition was computed for its current generation."""
    generation = generation_of(internal)
    conditions = internal.get("status", {}).get("kepler", {}).get("conditions") or []
    return any(c.get("observedGeneration") == generation for c in conditions)


def update_power_monitor_status(client: ObjectStore, name: str) -> bool:
    """Mirror the internal object's status onto the user-facing PowerMonitor.

    Conditions are re-stamped with the PowerMonitor's own generation.
    """

    def attempt() -> bool:
        try:
            pm = client.get(API_GROUP_VERSION, KIND_POWER_MONITOR, name)
        except NotFoundError:
            return False
        if is_deleting(pm):
            return False

        try:
            internal = client.get(API_GROUP_VERSION, KIND_POWER_MONITOR_INTERNAL, name)
        except NotFoundError:
            return False
        if is_deleting(internal) or not internal_status_observed(internal):
            logger.debug(f"{KIND_POWER_MONITOR_INTERNAL} {name} has no fresh status; skipping mirror")
            return False

        kepler_status = copy.deepcopy(internal.get("status", {}).get("kepler", {}))
        for cond in kepler_status.get("conditions") or []:
            cond["observedGeneration"] = generation_of(pm)

        if (pm.get("status") or {}).get("kepler") == kepler_status:
            metrics.status_update_total.labels(kind=KIND_POWER_MONITOR, result="skipped").inc()
            return False

        pm["status"] = {"kepler": kepler_status}
        client.update_status(pm)
        metrics.status_update_total.labels(kind=KIND_POWER_MONITOR, result="written").inc()
        return True

    return _persist(KIND_POWER_MONITOR, attempt)


def set_invalid_status(client: ObjectStore, name: str) -> bool:
    """Mark a PowerMonitor other than the single supported instance as invalid."""

    def attempt() -> bool:
        try:
            pm = client.get(API_GROUP_VERSION, KIND_POWER_MONITOR, name)
        except NotFoundError:
            return False
        if is_deleting(pm):
            return False

        kepler_status = pm.setdefault("status", {}).setdefault("kepler", {})
        kepler_status["conditions"] = sanitize_conditions(kepler_status.get("conditions"))
        now = now_rfc3339()
        changed = update_condition(
            kepler_status["conditions"],
            COND_RECONCILED,
            STATUS_FALSE,
            REASON_INVALID_RESOURCE,
            "Only a single instance of PowerMonitor named powermonitor is reconciled",
            observed_generation=generation_of(pm),
            now=now,
        )
        changed = update_condition(
            kepler_status["conditions"],
            COND_AVAILABLE,
            STATUS_UNKNOWN,
            REASON_INVALID_RESOURCE,
            "This instance of PowerMonitor is invalid",
            observed_generation=generation_of(pm),
            now=now,
        ) or changed
        if not changed:
            return False

        client.update_status(pm)
        metrics.status_update_total.labels(kind=KIND_POWER_MONITOR, result="written").inc()
        return True

    return _persist(KIND_POWER_MONITOR, attempt)
