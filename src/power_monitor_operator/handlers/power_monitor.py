"""Handler for the PowerMonitor resource."""

from __future__ import annotations

from typing import Any

import kopf

from ..config import resync_interval_from_env
from ..constants import API_GROUP_VERSION, KIND_POWER_MONITOR
from .base import BaseHandler

# kopf needs the timer interval when the handlers are registered
STATUS_RESYNC_INTERVAL = resync_interval_from_env()


class PowerMonitorHandler(BaseHandler):
    """Handler for PowerMonitor resources."""

    def __init__(self):
        super().__init__(KIND_POWER_MONITOR)

    def reconcile(self, body: dict[str, Any], memo: kopf.Memo, emit_events: bool = True) -> None:
        name = body["metadata"]["name"]
        self.reconcile_with_metrics(
            body,
            memo.config,
            lambda: memo.power_monitor.reconcile(name),
            emit_events=emit_events,
        )


# Global handler instance
_handler = PowerMonitorHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_POWER_MONITOR)
@kopf.on.update(API_GROUP_VERSION, KIND_POWER_MONITOR)
@kopf.on.resume(API_GROUP_VERSION, KIND_POWER_MONITOR)
def handle_power_monitor(body: kopf.Body, memo: kopf.Memo, **kwargs: Any) -> None:
    """Handle PowerMonitor reconciliation."""
    _handler.reconcile(body, memo)


@kopf.on.delete(API_GROUP_VERSION, KIND_POWER_MONITOR, optional=True)
def handle_power_monitor_delete(body: kopf.Body, memo: kopf.Memo, **kwargs: Any) -> None:
    """Handle PowerMonitor deletion; the operator's own finalizer gates removal."""
    _handler.log_info(body["metadata"], "PowerMonitor is being deleted", event="deletion", reason="Deletion")
    _handler.reconcile(body, memo)
    _handler.forget(_handler.lock_key(body["metadata"]))


@kopf.timer(
    API_GROUP_VERSION,
    KIND_POWER_MONITOR,
    interval=STATUS_RESYNC_INTERVAL,
    initial_delay=STATUS_RESYNC_INTERVAL,
)
def resync_power_monitor(body: kopf.Body, memo: kopf.Memo, **kwargs: Any) -> None:
    """Periodically re-run the pass so the mirrored status follows the internal object."""
    _handler.reconcile(body, memo, emit_events=False)
