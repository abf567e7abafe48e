"""Handler for the PowerMonitorInternal resource."""

from __future__ import annotations

from typing import Any

import kopf

from ..config import resync_interval_from_env
from ..constants import API_GROUP_VERSION, KIND_POWER_MONITOR_INTERNAL
from .base import BaseHandler

# kopf needs the timer interval when the handlers are registered
STATUS_RESYNC_INTERVAL = resync_interval_from_env()


class PowerMonitorInternalHandler(BaseHandler):
    """Handler for PowerMonitorInternal resources."""

    def __init__(self):
        super().__init__(KIND_POWER_MONITOR_INTERNAL)

    def reconcile(self, body: dict[str, Any], memo: kopf.Memo, emit_events: bool = True) -> None:
        name = body["metadata"]["name"]
        self.reconcile_with_metrics(
            body,
            memo.config,
            lambda: memo.power_monitor_internal.reconcile(name),
            emit_events=emit_events,
        )


# Global handler instance
_handler = PowerMonitorInternalHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_POWER_MONITOR_INTERNAL)
@kopf.on.update(API_GROUP_VERSION, KIND_POWER_MONITOR_INTERNAL)
@kopf.on.resume(API_GROUP_VERSION, KIND_POWER_MONITOR_INTERNAL)
def handle_power_monitor_internal(body: kopf.Body, memo: kopf.Memo, **kwargs: Any) -> None:
    """Handle PowerMonitorInternal reconciliation."""
    _handler.reconcile(body, memo)


@kopf.on.delete(API_GROUP_VERSION, KIND_POWER_MONITOR_INTERNAL, optional=True)
def handle_power_monitor_internal_delete(body: kopf.Body, memo: kopf.Memo, **kwargs: Any) -> None:
    """Run the cleanup pass; the operator's own finalizer gates removal."""
    _handler.log_info(body["metadata"], "PowerMonitorInternal is being deleted", event="deletion", reason="Deletion")
    _handler.reconcile(body, memo)
    # Only reached after a clean pass; a retried cleanup keeps its lock
    _handler.forget(_handler.lock_key(body["metadata"]))


@kopf.timer(
    API_GROUP_VERSION,
    KIND_POWER_MONITOR_INTERNAL,
    interval=STATUS_RESYNC_INTERVAL,
    initial_delay=STATUS_RESYNC_INTERVAL,
)
def resync_power_monitor_internal(body: kopf.Body, memo: kopf.Memo, **kwargs: Any) -> None:
    """Periodically re-run the full pass so DaemonSet rollout progress reaches the status."""
    _handler.reconcile(body, memo, emit_events=False)
