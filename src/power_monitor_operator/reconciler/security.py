"""Steps for the kube-rbac-proxy and user workload monitoring plumbing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from .. import metrics
from ..builders.power_monitor import (
    Detail,
    annotate_daemonset_with_secret_hash,
    deployment_namespace,
    new_ca_bundle_config_map,
    new_kube_rbac_proxy_config,
    new_uwm_token_secret,
    token_audiences,
)
from ..constants import (
    CONFIGMAP_CA_BUNDLE_NAME,
    SECRET_KUBE_RBAC_PROXY_CONFIG_NAME,
    SECRET_TLS_CERT_NAME,
    SECRET_UWM_TOKEN_NAME,
    UWM_NAMESPACE,
    UWM_SERVICE_ACCOUNT_NAME,
)
from ..services.store import ObjectStore, Scheme, StoreError
from ..utils.events import emit_token_issued
from ..utils.objects import describe
from ..utils.secrets import expiration_after, get_expiration
from .deleter import Deleter
from .result import Action, PollTimeoutError, Result, StepError
from .retry import Poller
from .updater import Updater

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class KubeRBACProxyConfigReconciler:
    """Publishes the proxy's allowed service accounts, or removes them when RBAC is off."""

    pmi: dict[str, Any]
    enable_rbac: bool

    def reconcile(self, client: ObjectStore, scheme: Scheme) -> Result:
        if not self.enable_rbac:
            return Deleter(new_kube_rbac_proxy_config(Detail.METADATA, self.pmi)).reconcile(client, scheme)
        return Updater(self.pmi, new_kube_rbac_proxy_config(Detail.FULL, self.pmi)).reconcile(client, scheme)


@dataclass
class CABundleConfigReconciler:
    """Maintains the CA bundle config map the monitoring stack uses to verify the proxy."""

    pmi: dict[str, Any]
    enable_rbac: bool
    enable_uwm: bool

    def reconcile(self, client: ObjectStore, scheme: Scheme) -> Result:
        if not (self.enable_rbac and self.enable_uwm):
            return Deleter(new_ca_bundle_config_map(Detail.METADATA, self.pmi)).reconcile(client, scheme)
        return Updater(self.pmi, new_ca_bundle_config_map(Detail.FULL, self.pmi)).reconcile(client, scheme)


@dataclass
class UWMSecretTokenReconciler:
    """Issues and rotates the bearer token user workload monitoring scrapes with.

    A stored token is reused while its expiry lies beyond ``buffer`` seconds
    from now; otherwise a fresh token is requested and applied with its
    expiry recorded in an annotation.
    """

    pmi: dict[str, Any]
    enable_rbac: bool
    enable_uwm: bool
    poller: Poller
    ttl: float
    buffer: float
    now: Callable[[], datetime] = field(default=_utcnow)

    def reconcile(self, client: ObjectStore, scheme: Scheme) -> Result:
        if not (self.enable_rbac and self.enable_uwm):
            return Deleter(new_uwm_token_secret(Detail.METADATA, self.pmi)).reconcile(client, scheme)

        namespace = deployment_namespace(self.pmi)
        identity = describe(new_uwm_token_secret(Detail.METADATA, self.pmi))

        try:
            self.poller(lambda: client.get("v1", "ServiceAccount", UWM_SERVICE_ACCOUNT_NAME, UWM_NAMESPACE))
        except PollTimeoutError as e:
            return Result(Action.STOP, StepError(
                identity,
                "uwm-token",
                f"missing {UWM_SERVICE_ACCOUNT_NAME!r} in {UWM_NAMESPACE!r} namespace; "
                "please enable user workload monitoring",
                e,
            ))

        try:
            existing = self.poller(lambda: client.get("v1", "Secret", SECRET_UWM_TOKEN_NAME, namespace))
        except PollTimeoutError:
            existing = None

        if existing is not None and self._still_valid(existing):
            return Result()

        now = self.now()
        try:
            token = client.request_token(
                UWM_SERVICE_ACCOUNT_NAME,
                UWM_NAMESPACE,
                token_audiences(self.pmi),
                int(self.ttl),
            )
        except StoreError as e:
            metrics.token_issued_total.labels(result="error").inc()
            return Result(Action.STOP, StepError(
                identity, "uwm-token", f"failed to request {UWM_SERVICE_ACCOUNT_NAME!r} token", e,
            ))

        expiration = expiration_after(self.ttl, now)
        secret = new_uwm_token_secret(Detail.FULL, self.pmi, token, expiration)
        result = Updater(self.pmi, secret).reconcile(client, scheme)
        if result.action is Action.CONTINUE and result.error is None:
            metrics.token_issued_total.labels(result="success").inc()
            logger.info(f"issued monitoring token {identity}, expires at {expiration}")
            emit_token_issued(self.pmi, expiration)
        return result

    def _still_valid(self, secret: dict[str, Any]) -> bool:
        try:
            expiry = get_expiration(secret)
        except ValueError as e:
            logger.warning(f"ignoring unparseable token expiration on {describe(secret)}: {e}")
            return False
        if expiry is None:
            return False
        return expiry - self.now() > timedelta(seconds=self.buffer)


@dataclass
class KubeRBACProxyObjectsChecker:
    """Waits for everything the proxy sidecar mounts and stamps their hashes on the DaemonSet."""

    pmi: dict[str, Any]
    ds: dict[str, Any]
    enable_rbac: bool
    enable_uwm: bool
    poller: Poller

    def reconcile(self, client: ObjectStore, scheme: Scheme) -> Result:
        if not self.enable_rbac:
            return Result()

        namespace = deployment_namespace(self.pmi)
        identity = describe(self.ds)

        for secret_name in (SECRET_KUBE_RBAC_PROXY_CONFIG_NAME, SECRET_TLS_CERT_NAME):
            try:
                secret = self.poller(lambda: client.get("v1", "Secret", secret_name, namespace))
            except PollTimeoutError as e:
                return Result(Action.STOP, StepError(
                    identity, "kube-rbac-proxy", f"{secret_name!r} secret not created in {namespace!r} yet", e,
                ))
            annotate_daemonset_with_secret_hash(self.ds, secret)

        if not self.enable_uwm:
            return Result()

        try:
            self.poller(lambda: client.get("v1", "ConfigMap", CONFIGMAP_CA_BUNDLE_NAME, namespace))
        except PollTimeoutError as e:
            return Result(Action.STOP, StepError(
                identity, "kube-rbac-proxy", f"missing {CONFIGMAP_CA_BUNDLE_NAME!r} in {namespace!r} yet", e,
            ))

        try:
            self.poller(lambda: client.get("v1", "Secret", SECRET_UWM_TOKEN_NAME, namespace))
        except PollTimeoutError as e:
            return Result(Action.STOP, StepError(
                identity, "kube-rbac-proxy", f"missing {SECRET_UWM_TOKEN_NAME!r} in {namespace!r} yet", e,
            ))
        return Result()
