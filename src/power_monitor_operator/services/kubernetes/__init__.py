"""Kubernetes API backed services."""

from .client import KubernetesStore, load_kube_config

__all__ = ["KubernetesStore", "load_kube_config"]
