"""Operator configuration loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .constants import (
    CLUSTER_KUBERNETES,
    CLUSTER_OPENSHIFT,
    POLL_INTERVAL_SECONDS,
    POLL_TIMEOUT_OPENSHIFT_SECONDS,
    POLL_TIMEOUT_SECONDS,
)


def resync_interval_from_env() -> float:
    """Interval of the status resync timers, from STATUS_RESYNC_INTERVAL_SECONDS."""
    return float(os.getenv("STATUS_RESYNC_INTERVAL_SECONDS", "30"))


@dataclass(frozen=True)
class OperatorConfig:
    """Immutable operator-wide settings.

    Built once at startup and handed to the controllers; nothing reads the
    environment after that.
    """

    deployment_namespace: str = "power-monitor"
    cluster: str = CLUSTER_KUBERNETES
    kepler_image: str = "quay.io/sustainable_computing_io/kepler:latest"
    kube_rbac_proxy_image: str = "quay.io/brancz/kube-rbac-proxy:v0.19.0"
    token_ttl: float = 24 * 60 * 60.0
    token_refresh_interval: float = 60 * 60.0
    error_requeue_delay: float = 10.0
    metrics_port: int = 8080

    @property
    def is_openshift(self) -> bool:
        return self.cluster == CLUSTER_OPENSHIFT

    @property
    def poll_interval(self) -> float:
        return POLL_INTERVAL_SECONDS

    @property
    def poll_timeout(self) -> float:
        """Timeout for waiting on prerequisites created by other components."""
        if self.is_openshift:
            return POLL_TIMEOUT_OPENSHIFT_SECONDS
        return POLL_TIMEOUT_SECONDS

    @property
    def token_buffer(self) -> float:
        """Window before expiry in which a token is treated as due for rotation."""
        return 2 * self.token_refresh_interval

    @classmethod
    def from_env(cls) -> OperatorConfig:
        """Load configuration from environment variables.

        Raises:
            ValueError: If CLUSTER_TYPE is not a known cluster flavour or a
                numeric setting is not a number.
        """
        cluster = os.getenv("CLUSTER_TYPE", CLUSTER_KUBERNETES).lower()
        if cluster not in (CLUSTER_KUBERNETES, CLUSTER_OPENSHIFT):
            raise ValueError(f"unsupported CLUSTER_TYPE {cluster!r}")

        return cls(
            deployment_namespace=os.getenv("DEPLOYMENT_NAMESPACE", "power-monitor"),
            cluster=cluster,
            kepler_image=os.getenv("KEPLER_IMAGE", cls.kepler_image),
            kube_rbac_proxy_image=os.getenv("KUBE_RBAC_PROXY_IMAGE", cls.kube_rbac_proxy_image),
            token_ttl=float(os.getenv("TOKEN_TTL_SECONDS", "86400")),
            token_refresh_interval=float(os.getenv("TOKEN_REFRESH_INTERVAL_SECONDS", "3600")),
            error_requeue_delay=float(os.getenv("ERROR_REQUEUE_DELAY_SECONDS", "10")),
            metrics_port=int(os.getenv("METRICS_PORT", "8080")),
        )
