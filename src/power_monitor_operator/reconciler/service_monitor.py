"""ServiceMonitor step."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..builders.power_monitor import Detail, new_service_monitor
from ..services.store import ObjectStore, Scheme
from .deleter import Deleter
from .result import Result
from .updater import Updater


@dataclass
class ServiceMonitorReconciler:
    """Keeps the ServiceMonitor in step with the security mode.

    With RBAC on but no user workload monitoring nothing is allowed to
    scrape, so the ServiceMonitor is removed.
    """

    pmi: dict[str, Any]
    enable_rbac: bool
    enable_uwm: bool

    def reconcile(self, client: ObjectStore, scheme: Scheme) -> Result:
        if self.enable_rbac and not self.enable_uwm:
            return Deleter(new_service_monitor(Detail.METADATA, self.pmi)).reconcile(client, scheme)
        return Updater(self.pmi, new_service_monitor(Detail.FULL, self.pmi)).reconcile(client, scheme)
