"""Small accessors for Kubernetes manifests held as dicts."""

from __future__ import annotations

from typing import Any


def meta(obj: dict[str, Any]) -> dict[str, Any]:
    return obj.setdefault("metadata", {})


def name_of(obj: dict[str, Any]) -> str:
    return obj.get("metadata", {}).get("name", "")


def namespace_of(obj: dict[str, Any]) -> str:
    return obj.get("metadata", {}).get("namespace") or ""


def kind_of(obj: dict[str, Any]) -> str:
    return obj.get("kind", "")


def generation_of(obj: dict[str, Any]) -> int:
    return int(obj.get("metadata", {}).get("generation") or 0)


def is_deleting(obj: dict[str, Any]) -> bool:
    return bool(obj.get("metadata", {}).get("deletionTimestamp"))


def describe(obj: dict[str, Any]) -> str:
    """Human readable identity: ``namespace/name (Kind)``."""
    namespace = namespace_of(obj)
    key = f"{namespace}/{name_of(obj)}" if namespace else name_of(obj)
    return f"{key} ({kind_of(obj)})"


def set_pod_annotation(daemonset: dict[str, Any], key: str, value: str) -> None:
    """Annotate the pod template so a change rolls the workload."""
    template = daemonset.setdefault("spec", {}).setdefault("template", {})
    annotations = template.setdefault("metadata", {}).setdefault("annotations", {})
    annotations[key] = value
