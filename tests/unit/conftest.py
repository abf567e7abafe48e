"""Shared fixtures: an in-memory object store and common manifests."""

from __future__ import annotations

import copy
import itertools
import uuid
from typing import Any
from unittest.mock import patch

import pytest

from power_monitor_operator.config import OperatorConfig
from power_monitor_operator.constants import (
    API_GROUP_VERSION,
    KIND_POWER_MONITOR,
    KIND_POWER_MONITOR_INTERNAL,
    POWER_MONITOR_INSTANCE_NAME,
)
from power_monitor_operator.services.store import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    Scheme,
)

_NON_SPEC_FIELDS = ("apiVersion", "kind", "metadata", "status")


def _key(api_version: str, kind: str, name: str, namespace: str | None) -> tuple[str, str, str, str]:
    return (api_version, kind, namespace or "", name)


def _obj_key(obj: dict[str, Any]) -> tuple[str, str, str, str]:
    meta = obj.get("metadata", {})
    return _key(obj["apiVersion"], obj["kind"], meta["name"], meta.get("namespace"))


def _spec_part(obj: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in obj.items() if k not in _NON_SPEC_FIELDS}


class FakeStore:
    """In-memory ObjectStore.

    Behaves like the API server where the reconcilers care: writes check
    ``resourceVersion``, objects with finalizers are only marked for
    deletion, and clearing the last finalizer of a deleting object removes
    it. Errors can be queued per method with ``fail``.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, str, str]] = []
        self.token_requests: list[dict[str, Any]] = []
        self._failures: dict[str, list[tuple[Exception, str | None]]] = {}
        self._versions = itertools.count(1)
        self._tokens = itertools.count(1)

    # Test helpers

    def seed(self, obj: dict[str, Any]) -> dict[str, Any]:
        stored = copy.deepcopy(obj)
        meta = stored.setdefault("metadata", {})
        meta.setdefault("uid", str(uuid.uuid4()))
        meta.setdefault("generation", 1)
        meta["resourceVersion"] = str(next(self._versions))
        self.objects[_obj_key(stored)] = stored
        return copy.deepcopy(stored)

    def fail(self, method: str, error: Exception, kind: str | None = None) -> None:
        """Raise ``error`` from the next call of ``method`` (optionally only for ``kind``)."""
        self._failures.setdefault(method, []).append((error, kind))

    def find(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> dict[str, Any] | None:
        return self.objects.get(_key(api_version, kind, name, namespace))

    def count(self, method: str, kind: str | None = None) -> int:
        return sum(1 for m, k, _ in self.calls if m == method and (kind is None or k == kind))

    def _record(self, method: str, kind: str, name: str) -> None:
        self.calls.append((method, kind, name))
        pending = self._failures.get(method) or []
        for i, (error, only_kind) in enumerate(pending):
            if only_kind is None or only_kind == kind:
                del pending[i]
                raise error

    def _bump(self, obj: dict[str, Any]) -> None:
        obj["metadata"]["resourceVersion"] = str(next(self._versions))

    def _check_version(self, current: dict[str, Any], obj: dict[str, Any]) -> None:
        version = obj.get("metadata", {}).get("resourceVersion")
        if version is not None and version != current["metadata"]["resourceVersion"]:
            raise ConflictError(f"{obj['kind']} {obj['metadata']['name']} was modified")

    def _existing(self, obj: dict[str, Any]) -> dict[str, Any]:
        current = self.objects.get(_obj_key(obj))
        if current is None:
            raise NotFoundError(f"{obj['kind']} {obj['metadata']['name']} not found")
        return current

    def _release_if_done(self, key: tuple[str, str, str, str]) -> None:
        obj = self.objects[key]
        if obj["metadata"].get("deletionTimestamp") and not obj["metadata"].get("finalizers"):
            self._remove(key)

    def _remove(self, key: tuple[str, str, str, str]) -> None:
        removed = self.objects.pop(key)
        if removed["kind"] == "Namespace":
            namespace = removed["metadata"]["name"]
            for other in [k for k in self.objects if k[2] == namespace]:
                self.objects.pop(other)

    # ObjectStore

    def get(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> dict[str, Any]:
        self._record("get", kind, name)
        obj = self.objects.get(_key(api_version, kind, name, namespace))
        if obj is None:
            raise NotFoundError(f"{kind} {namespace or ''}/{name} not found")
        return copy.deepcopy(obj)

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        self._record("list", kind, "")
        return [
            copy.deepcopy(obj)
            for (av, k, ns, _), obj in self.objects.items()
            if av == api_version and k == kind and (namespace is None or ns == namespace)
        ]

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        self._record("create", obj["kind"], obj["metadata"]["name"])
        if _obj_key(obj) in self.objects:
            raise AlreadyExistsError(f"{obj['kind']} {obj['metadata']['name']} already exists")
        return self.seed(obj)

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        self._record("update", obj["kind"], obj["metadata"]["name"])
        current = self._existing(obj)
        self._check_version(current, obj)

        updated = copy.deepcopy(obj)
        updated["status"] = copy.deepcopy(current.get("status"))
        meta = updated["metadata"]
        for preserved in ("uid", "generation", "deletionTimestamp"):
            if preserved in current["metadata"]:
                meta[preserved] = current["metadata"][preserved]
        if _spec_part(updated) != _spec_part(current):
            meta["generation"] = current["metadata"].get("generation", 1) + 1
        if updated["status"] is None:
            updated.pop("status")
        self._bump(updated)

        key = _obj_key(updated)
        self.objects[key] = updated
        self._release_if_done(key)
        return copy.deepcopy(updated)

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        self._record("update_status", obj["kind"], obj["metadata"]["name"])
        current = self._existing(obj)
        self._check_version(current, obj)
        current["status"] = copy.deepcopy(obj.get("status"))
        self._bump(current)
        return copy.deepcopy(current)

    def delete(self, obj: dict[str, Any]) -> None:
        self._record("delete", obj["kind"], obj["metadata"]["name"])
        key = _obj_key(obj)
        current = self._existing(obj)
        if current["metadata"].get("finalizers"):
            current["metadata"].setdefault("deletionTimestamp", "2024-01-01T00:00:00Z")
            self._bump(current)
            return
        self._remove(key)

    def apply(self, obj: dict[str, Any], field_manager: str, force: bool = True) -> dict[str, Any]:
        self._record("apply", obj["kind"], obj["metadata"]["name"])
        key = _obj_key(obj)
        current = self.objects.get(key)
        if current is None:
            return self.seed(obj)

        merged = copy.deepcopy(current)
        for field, value in _spec_part(obj).items():
            merged[field] = copy.deepcopy(value)
        meta = merged["metadata"]
        for field in ("labels", "annotations"):
            if field in obj["metadata"]:
                meta[field] = {**(meta.get(field) or {}), **obj["metadata"][field]}
        if "ownerReferences" in obj["metadata"]:
            meta["ownerReferences"] = copy.deepcopy(obj["metadata"]["ownerReferences"])
        if _spec_part(merged) != _spec_part(current):
            meta["generation"] = current["metadata"].get("generation", 1) + 1
        if merged != current:
            self._bump(merged)
        self.objects[key] = merged
        return copy.deepcopy(merged)

    def request_token(self, name: str, namespace: str, audiences: list[str], ttl_seconds: int) -> str:
        self._record("request_token", "ServiceAccount", name)
        self.token_requests.append({
            "name": name,
            "namespace": namespace,
            "audiences": list(audiences),
            "ttl_seconds": ttl_seconds,
        })
        return f"issued-{next(self._tokens)}"


@pytest.fixture(autouse=True)
def mock_kopf_event():
    """Events are posted through kopf, which needs a running operator."""
    with patch("power_monitor_operator.utils.events.kopf.event") as mock_event:
        yield mock_event


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def scheme() -> Scheme:
    return Scheme()


@pytest.fixture
def config() -> OperatorConfig:
    return OperatorConfig(deployment_namespace="power-monitor")


def make_power_monitor(name: str = POWER_MONITOR_INSTANCE_NAME, **deployment: Any) -> dict[str, Any]:
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_POWER_MONITOR,
        "metadata": {"name": name},
        "spec": {"kepler": {"deployment": dict(deployment), "config": {"logLevel": "info"}}},
    }


def make_power_monitor_internal(
    name: str = POWER_MONITOR_INSTANCE_NAME,
    namespace: str = "power-monitor",
    **deployment: Any,
) -> dict[str, Any]:
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_POWER_MONITOR_INTERNAL,
        "metadata": {"name": name, "uid": f"uid-{name}", "generation": 1},
        "spec": {
            "kepler": {
                "deployment": {
                    "namespace": namespace,
                    "image": "kepler:test",
                    "kubeRbacProxyImage": "proxy:test",
                    **deployment,
                },
                "config": {"logLevel": "info"},
            },
        },
    }


def make_daemonset(name: str = POWER_MONITOR_INSTANCE_NAME, namespace: str = "power-monitor", generation: int = 1, **status: Any) -> dict[str, Any]:
    return {
        "apiVersion": "apps/v1",
        "kind": "DaemonSet",
        "metadata": {"name": name, "namespace": namespace, "generation": generation},
        "status": dict(status),
    }
