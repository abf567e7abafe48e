"""Controllers that run reconcile passes for each watched resource."""

from .power_monitor import PowerMonitorController
from .power_monitor_internal import PowerMonitorInternalController
from .token_expiry import TokenExpiryController

__all__ = [
    "PowerMonitorController",
    "PowerMonitorInternalController",
    "TokenExpiryController",
]
