"""Type registry used to resolve apiVersion and kind for owner references."""

from __future__ import annotations

from typing import Any

from ...constants import (
    API_GROUP_VERSION,
    KIND_POWER_MONITOR,
    KIND_POWER_MONITOR_INTERNAL,
)


class SchemeError(Exception):
    """Raised when an object's type is not registered."""


# Kinds whose objects live outside any namespace
_DEFAULT_TYPES = {
    ("v1", "Namespace"): True,
    ("v1", "ConfigMap"): False,
    ("v1", "Secret"): False,
    ("v1", "Service"): False,
    ("v1", "ServiceAccount"): False,
    ("apps/v1", "DaemonSet"): False,
    ("rbac.authorization.k8s.io/v1", "ClusterRole"): True,
    ("rbac.authorization.k8s.io/v1", "ClusterRoleBinding"): True,
    ("monitoring.coreos.com/v1", "ServiceMonitor"): False,
    (API_GROUP_VERSION, KIND_POWER_MONITOR): True,
    (API_GROUP_VERSION, KIND_POWER_MONITOR_INTERNAL): True,
}


class Scheme:
    """Registry of the object types the operator manages."""

    def __init__(self, types: dict[tuple[str, str], bool] | None = None) -> None:
        self._types = dict(_DEFAULT_TYPES if types is None else types)

    def resolve(self, obj: dict[str, Any]) -> tuple[str, str]:
        """Return ``(apiVersion, kind)`` for a registered object.

        Raises:
            SchemeError: If the object carries no type or the type is unknown
        """
        api_version = obj.get("apiVersion")
        kind = obj.get("kind")
        if not api_version or not kind:
            raise SchemeError("object has no apiVersion/kind")
        if (api_version, kind) not in self._types:
            raise SchemeError(f"no kind {kind!r} is registered for version {api_version!r}")
        return api_version, kind

    def is_cluster_scoped(self, obj: dict[str, Any]) -> bool:
        return self._types.get(self.resolve(obj), False)
