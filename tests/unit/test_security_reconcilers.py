"""Tests for the kube-rbac-proxy and monitoring token steps."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from power_monitor_operator.constants import (
    ANNOTATION_TOKEN_EXPIRATION,
    CONFIGMAP_CA_BUNDLE_NAME,
    SECRET_KUBE_RBAC_PROXY_CONFIG_NAME,
    SECRET_TLS_CERT_NAME,
    SECRET_UWM_TOKEN_NAME,
    UWM_NAMESPACE,
    UWM_SERVICE_ACCOUNT_NAME,
)
from power_monitor_operator.reconciler import Action, Poller
from power_monitor_operator.reconciler.security import (
    CABundleConfigReconciler,
    KubeRBACProxyConfigReconciler,
    KubeRBACProxyObjectsChecker,
    UWMSecretTokenReconciler,
)
from power_monitor_operator.services.store import StoreError
from power_monitor_operator.utils.secrets import secret_hash_annotation

from conftest import make_power_monitor_internal

NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
NO_WAIT = Poller(timeout=0, interval=0)
HOUR = 3600.0
DAY = 24 * HOUR


def _uwm_pmi() -> dict:
    return make_power_monitor_internal(
        security={"mode": "rbac", "allowedSANames": [f"{UWM_NAMESPACE}:{UWM_SERVICE_ACCOUNT_NAME}"]},
    )


def _seed_uwm_account(store) -> None:
    store.seed({
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": {"name": UWM_SERVICE_ACCOUNT_NAME, "namespace": UWM_NAMESPACE},
    })


def _seed_token(store, expiration: str | None) -> None:
    secret = {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": SECRET_UWM_TOKEN_NAME, "namespace": "power-monitor"},
        "stringData": {"token": "old"},
    }
    if expiration is not None:
        secret["metadata"]["annotations"] = {ANNOTATION_TOKEN_EXPIRATION: expiration}
    store.seed(secret)


def _token_step(pmi: dict, enabled: bool = True) -> UWMSecretTokenReconciler:
    return UWMSecretTokenReconciler(
        pmi,
        enable_rbac=enabled,
        enable_uwm=enabled,
        poller=NO_WAIT,
        ttl=DAY,
        buffer=2 * HOUR,
        now=lambda: NOW,
    )


class TestUWMSecretTokenReconciler:
    """Test cases for the monitoring token step."""

    def test_issues_token_when_absent(self, store, scheme, mock_kopf_event):
        """Test that a fresh token is requested and stored with its expiry."""
        pmi = store.seed(_uwm_pmi())
        _seed_uwm_account(store)

        result = _token_step(pmi).reconcile(store, scheme)

        assert result.action is Action.CONTINUE
        assert result.error is None
        (request,) = store.token_requests
        assert request["name"] == UWM_SERVICE_ACCOUNT_NAME
        assert request["namespace"] == UWM_NAMESPACE
        assert request["audiences"] == ["powermonitor.power-monitor.svc"]
        assert request["ttl_seconds"] == int(DAY)
        secret = store.find("v1", "Secret", SECRET_UWM_TOKEN_NAME, "power-monitor")
        assert secret["stringData"]["token"] == "issued-1"
        assert secret["metadata"]["annotations"][ANNOTATION_TOKEN_EXPIRATION] == "2025-03-02T12:00:00Z"
        assert mock_kopf_event.call_args.kwargs["reason"] == "TokenIssued"

    def test_valid_token_is_reused(self, store, scheme):
        """Test that a token expiring beyond the buffer is left alone."""
        pmi = store.seed(_uwm_pmi())
        _seed_uwm_account(store)
        _seed_token(store, "2025-03-01T15:00:00Z")

        result = _token_step(pmi).reconcile(store, scheme)

        assert result.error is None
        assert store.token_requests == []
        assert store.count("apply") == 0

    def test_token_inside_buffer_is_rotated(self, store, scheme):
        """Test that a token expiring within the buffer is replaced."""
        pmi = store.seed(_uwm_pmi())
        _seed_uwm_account(store)
        _seed_token(store, "2025-03-01T13:30:00Z")

        _token_step(pmi).reconcile(store, scheme)

        assert len(store.token_requests) == 1
        secret = store.find("v1", "Secret", SECRET_UWM_TOKEN_NAME, "power-monitor")
        assert secret["stringData"]["token"] == "issued-1"

    def test_missing_or_bad_annotation_is_rotated(self, store, scheme):
        """Test that a token without a usable expiry is replaced."""
        pmi = store.seed(_uwm_pmi())
        _seed_uwm_account(store)
        _seed_token(store, "not-a-date")

        _token_step(pmi).reconcile(store, scheme)

        assert len(store.token_requests) == 1

    def test_missing_service_account_stops(self, store, scheme):
        """Test that a cluster without user workload monitoring stops the pass."""
        pmi = store.seed(_uwm_pmi())

        result = _token_step(pmi).reconcile(store, scheme)

        assert result.action is Action.STOP
        assert UWM_SERVICE_ACCOUNT_NAME in str(result.error)
        assert "please enable user workload monitoring" in str(result.error)
        assert store.token_requests == []

    def test_token_request_failure_stops(self, store, scheme):
        """Test that a failed token request stops the pass."""
        pmi = store.seed(_uwm_pmi())
        _seed_uwm_account(store)
        store.fail("request_token", StoreError("forbidden", status=403))

        result = _token_step(pmi).reconcile(store, scheme)

        assert result.action is Action.STOP
        assert "failed to request" in str(result.error)

    def test_disabled_deletes_secret(self, store, scheme):
        """Test that the token secret is removed when monitoring is off."""
        pmi = store.seed(make_power_monitor_internal())
        _seed_token(store, "2025-03-02T12:00:00Z")

        result = _token_step(pmi, enabled=False).reconcile(store, scheme)

        assert result.error is None
        assert store.find("v1", "Secret", SECRET_UWM_TOKEN_NAME, "power-monitor") is None

    def test_disabled_without_secret_is_idempotent(self, store, scheme):
        """Test that deleting an absent secret is fine."""
        pmi = store.seed(make_power_monitor_internal())

        result = _token_step(pmi, enabled=False).reconcile(store, scheme)

        assert result.action is Action.CONTINUE
        assert result.error is None


class TestProxyConfigReconcilers:
    """Test cases for the proxy config and CA bundle steps."""

    def test_proxy_config_applied_in_rbac_mode(self, store, scheme):
        """Test that the allowed service accounts are published."""
        pmi = store.seed(_uwm_pmi())

        KubeRBACProxyConfigReconciler(pmi, enable_rbac=True).reconcile(store, scheme)

        secret = store.find("v1", "Secret", SECRET_KUBE_RBAC_PROXY_CONFIG_NAME, "power-monitor")
        assert f"system:serviceaccount:{UWM_NAMESPACE}:{UWM_SERVICE_ACCOUNT_NAME}" in secret["stringData"]["config.yaml"]

    def test_proxy_config_removed_without_rbac(self, store, scheme):
        """Test that the proxy config is deleted when RBAC is off."""
        pmi = store.seed(make_power_monitor_internal())
        store.seed({
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": SECRET_KUBE_RBAC_PROXY_CONFIG_NAME, "namespace": "power-monitor"},
        })

        KubeRBACProxyConfigReconciler(pmi, enable_rbac=False).reconcile(store, scheme)

        assert store.find("v1", "Secret", SECRET_KUBE_RBAC_PROXY_CONFIG_NAME, "power-monitor") is None

    def test_ca_bundle_needs_rbac_and_uwm(self, store, scheme):
        """Test that the CA bundle only exists with both RBAC and monitoring on."""
        pmi = store.seed(_uwm_pmi())

        CABundleConfigReconciler(pmi, enable_rbac=True, enable_uwm=False).reconcile(store, scheme)
        assert store.find("v1", "ConfigMap", CONFIGMAP_CA_BUNDLE_NAME, "power-monitor") is None

        CABundleConfigReconciler(pmi, enable_rbac=True, enable_uwm=True).reconcile(store, scheme)
        cfm = store.find("v1", "ConfigMap", CONFIGMAP_CA_BUNDLE_NAME, "power-monitor")
        assert cfm["metadata"]["annotations"]["service.beta.openshift.io/inject-cabundle"] == "true"


class TestKubeRBACProxyObjectsChecker:
    """Test cases for the proxy prerequisites check."""

    def _seed_secret(self, store, name: str, value: str = "x") -> None:
        store.seed({
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": name, "namespace": "power-monitor"},
            "data": {"k": value},
        })

    def test_skipped_without_rbac(self, store, scheme):
        """Test that nothing is checked when RBAC is off."""
        ds: dict = {"spec": {}}

        result = KubeRBACProxyObjectsChecker(make_power_monitor_internal(), ds, False, False, NO_WAIT).reconcile(store, scheme)

        assert result.error is None
        assert store.count("get") == 0

    def test_stamps_secret_hashes(self, store, scheme):
        """Test that both proxy secrets are hashed onto the pod template."""
        self._seed_secret(store, SECRET_KUBE_RBAC_PROXY_CONFIG_NAME)
        self._seed_secret(store, SECRET_TLS_CERT_NAME)
        ds: dict = {"spec": {}}

        result = KubeRBACProxyObjectsChecker(_uwm_pmi(), ds, True, False, NO_WAIT).reconcile(store, scheme)

        assert result.error is None
        annotations = ds["spec"]["template"]["metadata"]["annotations"]
        assert secret_hash_annotation(SECRET_KUBE_RBAC_PROXY_CONFIG_NAME) in annotations
        assert secret_hash_annotation(SECRET_TLS_CERT_NAME) in annotations

    def test_missing_tls_secret_stops(self, store, scheme):
        """Test that the pass stops until the serving certificate exists."""
        self._seed_secret(store, SECRET_KUBE_RBAC_PROXY_CONFIG_NAME)

        result = KubeRBACProxyObjectsChecker(_uwm_pmi(), {"spec": {}}, True, False, NO_WAIT).reconcile(store, scheme)

        assert result.action is Action.STOP
        assert SECRET_TLS_CERT_NAME in str(result.error)

    def test_uwm_requires_ca_bundle_and_token(self, store, scheme):
        """Test that monitoring mode also waits for the CA bundle and token."""
        self._seed_secret(store, SECRET_KUBE_RBAC_PROXY_CONFIG_NAME)
        self._seed_secret(store, SECRET_TLS_CERT_NAME)

        result = KubeRBACProxyObjectsChecker(_uwm_pmi(), {"spec": {}}, True, True, NO_WAIT).reconcile(store, scheme)

        assert result.action is Action.STOP
        assert CONFIGMAP_CA_BUNDLE_NAME in str(result.error)

    def test_changed_secret_changes_hash(self, store, scheme):
        """Test that new secret content produces a new annotation value."""
        self._seed_secret(store, SECRET_KUBE_RBAC_PROXY_CONFIG_NAME, "one")
        self._seed_secret(store, SECRET_TLS_CERT_NAME)
        first: dict = {"spec": {}}
        KubeRBACProxyObjectsChecker(_uwm_pmi(), first, True, False, NO_WAIT).reconcile(store, scheme)

        self._seed_secret(store, SECRET_KUBE_RBAC_PROXY_CONFIG_NAME, "two")
        second: dict = {"spec": {}}
        KubeRBACProxyObjectsChecker(_uwm_pmi(), second, True, False, NO_WAIT).reconcile(store, scheme)

        key = secret_hash_annotation(SECRET_KUBE_RBAC_PROXY_CONFIG_NAME)
        assert (
            first["spec"]["template"]["metadata"]["annotations"][key]
            != second["spec"]["template"]["metadata"]["annotations"][key]
        )


def test_expiry_window_boundary(store, scheme):
    """Test that a token expiring exactly at the buffer edge is rotated."""
    pmi = store.seed(_uwm_pmi())
    _seed_uwm_account(store)
    _seed_token(store, (NOW + timedelta(hours=2)).strftime("%Y-%m-%dT%H:%M:%SZ"))

    _token_step(pmi).reconcile(store, scheme)

    assert len(store.token_requests) == 1
