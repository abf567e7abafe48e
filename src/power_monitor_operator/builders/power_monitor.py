"""Builders for the objects that make up a power monitor deployment."""

from __future__ import annotations

import copy
import enum
from typing import Any

import yaml

from ..config import OperatorConfig
from ..constants import (
    ANNOTATION_CONFIGMAP_HASH,
    ANNOTATION_TOKEN_EXPIRATION,
    API_GROUP_VERSION,
    CONFIGMAP_CA_BUNDLE_NAME,
    KEPLER_CONFIG_FILE,
    KEPLER_PORT,
    KIND_POWER_MONITOR_INTERNAL,
    KUBE_RBAC_PROXY_PORT,
    LABEL_COMPONENT,
    LABEL_INSTANCE,
    LABEL_MANAGED_BY,
    LABEL_PART_OF,
    OPERATOR_NAME,
    SECRET_KUBE_RBAC_PROXY_CONFIG_NAME,
    SECRET_TLS_CERT_NAME,
    SECRET_UWM_TOKEN_NAME,
    SECURITY_MODE_RBAC,
    UWM_NAMESPACE,
    UWM_SERVICE_ACCOUNT_NAME,
)
from ..utils.objects import name_of, set_pod_annotation
from ..utils.secrets import content_hash, secret_hash_annotation


class Detail(enum.Enum):
    """How much of an object a builder fills in."""

    FULL = "full"
    # Identity only; enough to delete the object
    METADATA = "metadata"


# Spec accessors

def kepler_spec(pmi: dict[str, Any]) -> dict[str, Any]:
    return pmi.get("spec", {}).get("kepler", {})


def deployment_spec(pmi: dict[str, Any]) -> dict[str, Any]:
    return kepler_spec(pmi).get("deployment", {})


def deployment_namespace(pmi: dict[str, Any]) -> str:
    return deployment_spec(pmi).get("namespace", "")


def is_rbac_enabled(pmi: dict[str, Any]) -> bool:
    return deployment_spec(pmi).get("security", {}).get("mode") == SECURITY_MODE_RBAC


def uwm_service_account() -> str:
    return f"{UWM_NAMESPACE}:{UWM_SERVICE_ACCOUNT_NAME}"


def is_uwm_enabled(pmi: dict[str, Any]) -> bool:
    allowed = deployment_spec(pmi).get("security", {}).get("allowedSANames") or []
    return uwm_service_account() in allowed


def labels(pmi: dict[str, Any]) -> dict[str, str]:
    return {
        LABEL_MANAGED_BY: OPERATOR_NAME,
        LABEL_PART_OF: "power-monitor",
        LABEL_COMPONENT: "exporter",
        LABEL_INSTANCE: name_of(pmi),
    }


def pod_selector(pmi: dict[str, Any]) -> dict[str, str]:
    return {
        LABEL_COMPONENT: "exporter",
        LABEL_INSTANCE: name_of(pmi),
    }


def _object(api_version: str, kind: str, name: str, namespace: str | None, obj_labels: dict[str, str]) -> dict[str, Any]:
    metadata: dict[str, Any] = {"name": name, "labels": dict(obj_labels)}
    if namespace:
        metadata["namespace"] = namespace
    return {"apiVersion": api_version, "kind": kind, "metadata": metadata}


# PowerMonitor -> PowerMonitorInternal

def new_power_monitor_internal(detail: Detail, pm: dict[str, Any], config: OperatorConfig) -> dict[str, Any]:
    """Derive the internal object that carries the fully resolved deployment."""
    annotations = dict(pm.get("metadata", {}).get("annotations") or {})
    obj = {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_POWER_MONITOR_INTERNAL,
        "metadata": {"name": name_of(pm), "annotations": annotations},
    }
    if detail is Detail.METADATA:
        return obj

    pm_kepler = pm.get("spec", {}).get("kepler", {})
    pm_deployment = copy.deepcopy(pm_kepler.get("deployment") or {})
    pm_config = pm_kepler.get("config") or {}

    deployment = {
        **pm_deployment,
        "image": config.kepler_image,
        "kubeRbacProxyImage": config.kube_rbac_proxy_image,
        "namespace": config.deployment_namespace,
    }
    obj["spec"] = {
        "kepler": {
            "deployment": deployment,
            "config": {
                "logLevel": pm_config.get("logLevel", "info"),
                "additionalConfigMaps": list(pm_config.get("additionalConfigMaps") or []),
            },
        },
        "openshift": {
            "enabled": config.is_openshift,
            "dashboard": {"enabled": config.is_openshift},
        },
    }
    return obj


# Namespaced workload

def new_namespace(name: str) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {
            "name": name,
            "labels": {
                LABEL_MANAGED_BY: OPERATOR_NAME,
                "pod-security.kubernetes.io/enforce": "privileged",
                "openshift.io/cluster-monitoring": "true",
            },
        },
    }


def new_daemonset(detail: Detail, pmi: dict[str, Any]) -> dict[str, Any]:
    """Build the exporter DaemonSet, with a kube-rbac-proxy sidecar in RBAC mode."""
    ds = _object("apps/v1", "DaemonSet", name_of(pmi), deployment_namespace(pmi), labels(pmi))
    if detail is Detail.METADATA:
        return ds

    deployment = deployment_spec(pmi)
    rbac = is_rbac_enabled(pmi)
    listen = f"127.0.0.1:{KEPLER_PORT}" if rbac else f":{KEPLER_PORT}"

    kepler = {
        "name": "power-monitor",
        "image": deployment.get("image"),
        "command": ["/usr/bin/kepler"],
        "args": [f"--config.file=/etc/kepler/{KEPLER_CONFIG_FILE}", f"--web.listen-address={listen}"],
        "securityContext": {"privileged": True},
        "ports": [] if rbac else [{"name": "http", "containerPort": KEPLER_PORT}],
        "volumeMounts": [
            {"name": "sysfs", "mountPath": "/host/sys", "readOnly": True},
            {"name": "procfs", "mountPath": "/host/proc", "readOnly": True},
            {"name": "cfm", "mountPath": "/etc/kepler"},
        ],
    }
    volumes = [
        {"name": "sysfs", "hostPath": {"path": "/sys"}},
        {"name": "procfs", "hostPath": {"path": "/proc"}},
        {"name": "cfm", "configMap": {"name": name_of(pmi)}},
    ]

    for ref in deployment.get("secrets") or []:
        volume_name = f"secret-{ref['name']}"
        volumes.append({"name": volume_name, "secret": {"secretName": ref["name"]}})
        kepler["volumeMounts"].append({
            "name": volume_name,
            "mountPath": ref.get("mountPath", f"/etc/kepler/secrets/{ref['name']}"),
            "readOnly": ref.get("readOnly", True),
        })

    containers = [kepler]
    if rbac:
        containers.append({
            "name": "kube-rbac-proxy",
            "image": deployment.get("kubeRbacProxyImage"),
            "args": [
                f"--secure-listen-address=0.0.0.0:{KUBE_RBAC_PROXY_PORT}",
                f"--upstream=http://127.0.0.1:{KEPLER_PORT}/",
                "--auth-header-fields-enabled",
                "--tls-cert-file=/etc/tls/private/tls.crt",
                "--tls-private-key-file=/etc/tls/private/tls.key",
                "--config-file=/etc/kube-rbac-proxy/config.yaml",
            ],
            "ports": [{"name": "https", "containerPort": KUBE_RBAC_PROXY_PORT}],
            "volumeMounts": [
                {"name": "tls", "mountPath": "/etc/tls/private", "readOnly": True},
                {"name": "proxy-config", "mountPath": "/etc/kube-rbac-proxy", "readOnly": True},
            ],
        })
        volumes.append({"name": "tls", "secret": {"secretName": SECRET_TLS_CERT_NAME}})
        volumes.append({"name": "proxy-config", "secret": {"secretName": SECRET_KUBE_RBAC_PROXY_CONFIG_NAME}})

    node_selector = {"kubernetes.io/os": "linux", **(deployment.get("nodeSelector") or {})}
    ds["spec"] = {
        "selector": {"matchLabels": pod_selector(pmi)},
        "template": {
            "metadata": {"labels": pod_selector(pmi)},
            "spec": {
                "hostPID": True,
                "serviceAccountName": name_of(pmi),
                "dnsPolicy": "ClusterFirstWithHostNet",
                "nodeSelector": node_selector,
                "tolerations": list(deployment.get("tolerations") or [{"operator": "Exists"}]),
                "containers": containers,
                "volumes": volumes,
            },
        },
    }
    return ds


def new_service(pmi: dict[str, Any]) -> dict[str, Any]:
    svc = _object("v1", "Service", name_of(pmi), deployment_namespace(pmi), labels(pmi))
    if is_rbac_enabled(pmi):
        port = {"name": "https", "port": KUBE_RBAC_PROXY_PORT, "targetPort": KUBE_RBAC_PROXY_PORT}
        svc["metadata"]["annotations"] = {
            "service.beta.openshift.io/serving-cert-secret-name": SECRET_TLS_CERT_NAME,
        }
    else:
        port = {"name": "http", "port": KEPLER_PORT, "targetPort": KEPLER_PORT}
    svc["spec"] = {"clusterIP": "None", "selector": pod_selector(pmi), "ports": [port]}
    return svc


def new_service_account(pmi: dict[str, Any]) -> dict[str, Any]:
    return _object("v1", "ServiceAccount", name_of(pmi), deployment_namespace(pmi), labels(pmi))


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def kepler_config(pmi: dict[str, Any], additional_configs: list[str] | None = None) -> str:
    """Render the exporter configuration, layering additional YAML documents in order.

    Raises:
        ValueError: If an additional document is not a YAML mapping
    """
    config: dict[str, Any] = {
        "log": {"level": kepler_spec(pmi).get("config", {}).get("logLevel", "info"), "format": "text"},
        "host": {"sysfs": "/host/sys", "procfs": "/host/proc"},
        "web": {"listenAddresses": [f":{KEPLER_PORT}"]},
    }
    for document in additional_configs or []:
        try:
            overlay = yaml.safe_load(document) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"invalid additional config: {e}") from e
        if not isinstance(overlay, dict):
            raise ValueError("additional config must be a YAML mapping")
        config = _deep_merge(config, overlay)
    return yaml.safe_dump(config, sort_keys=False)


def new_config_map(detail: Detail, pmi: dict[str, Any], additional_configs: list[str] | None = None) -> dict[str, Any]:
    cfm = _object("v1", "ConfigMap", name_of(pmi), deployment_namespace(pmi), labels(pmi))
    if detail is Detail.METADATA:
        return cfm
    cfm["data"] = {KEPLER_CONFIG_FILE: kepler_config(pmi, additional_configs)}
    return cfm


def annotate_daemonset_with_config_map_hash(ds: dict[str, Any], cfm: dict[str, Any]) -> None:
    set_pod_annotation(ds, ANNOTATION_CONFIGMAP_HASH, content_hash(cfm.get("data")))


def annotate_daemonset_with_secret_hash(ds: dict[str, Any], secret: dict[str, Any]) -> None:
    data = {**(secret.get("data") or {}), **(secret.get("stringData") or {})}
    set_pod_annotation(ds, secret_hash_annotation(name_of(secret)), content_hash(data))


# Cluster scoped RBAC

def new_cluster_role(detail: Detail, pmi: dict[str, Any]) -> dict[str, Any]:
    role = _object("rbac.authorization.k8s.io/v1", "ClusterRole", name_of(pmi), None, labels(pmi))
    if detail is Detail.METADATA:
        return role
    role["rules"] = [
        {
            "apiGroups": [""],
            "resources": ["nodes/metrics", "nodes/proxy", "nodes/stats", "pods"],
            "verbs": ["get", "watch", "list"],
        },
        {
            "apiGroups": ["authentication.k8s.io"],
            "resources": ["tokenreviews"],
            "verbs": ["create"],
        },
        {
            "apiGroups": ["authorization.k8s.io"],
            "resources": ["subjectaccessreviews"],
            "verbs": ["create"],
        },
    ]
    return role


def new_cluster_role_binding(detail: Detail, pmi: dict[str, Any]) -> dict[str, Any]:
    binding = _object("rbac.authorization.k8s.io/v1", "ClusterRoleBinding", name_of(pmi), None, labels(pmi))
    if detail is Detail.METADATA:
        return binding
    binding["roleRef"] = {
        "apiGroup": "rbac.authorization.k8s.io",
        "kind": "ClusterRole",
        "name": name_of(pmi),
    }
    binding["subjects"] = [{
        "kind": "ServiceAccount",
        "name": name_of(pmi),
        "namespace": deployment_namespace(pmi),
    }]
    return binding


# Security plumbing

def new_kube_rbac_proxy_config(detail: Detail, pmi: dict[str, Any]) -> dict[str, Any]:
    """Secret holding the kube-rbac-proxy static authorization for allowed service accounts."""
    secret = _object("v1", "Secret", SECRET_KUBE_RBAC_PROXY_CONFIG_NAME, deployment_namespace(pmi), labels(pmi))
    if detail is Detail.METADATA:
        return secret

    allowed = deployment_spec(pmi).get("security", {}).get("allowedSANames") or []
    rules = []
    for entry in allowed:
        namespace, _, account = entry.partition(":")
        rules.append({
            "path": "/metrics",
            "resourceRequest": False,
            "user": {"name": f"system:serviceaccount:{namespace}:{account}"},
            "verb": "get",
        })
    secret["type"] = "Opaque"
    secret["stringData"] = {"config.yaml": yaml.safe_dump({"authorization": {"static": rules}}, sort_keys=False)}
    return secret


def new_ca_bundle_config_map(detail: Detail, pmi: dict[str, Any]) -> dict[str, Any]:
    cfm = _object("v1", "ConfigMap", CONFIGMAP_CA_BUNDLE_NAME, deployment_namespace(pmi), labels(pmi))
    if detail is Detail.METADATA:
        return cfm
    cfm["metadata"]["annotations"] = {"service.beta.openshift.io/inject-cabundle": "true"}
    return cfm


def new_uwm_token_secret(
    detail: Detail,
    pmi: dict[str, Any],
    token: str = "",
    expiration: str | None = None,
) -> dict[str, Any]:
    """Secret carrying the monitoring bearer token, annotated with its expiry."""
    secret = _object("v1", "Secret", SECRET_UWM_TOKEN_NAME, deployment_namespace(pmi), labels(pmi))
    if detail is Detail.METADATA:
        return secret
    if expiration is not None:
        secret["metadata"]["annotations"] = {ANNOTATION_TOKEN_EXPIRATION: expiration}
    secret["type"] = "Opaque"
    secret["stringData"] = {"token": token}
    return secret


def token_audiences(pmi: dict[str, Any]) -> list[str]:
    return [f"{name_of(pmi)}.{deployment_namespace(pmi)}.svc"]


def new_service_monitor(detail: Detail, pmi: dict[str, Any]) -> dict[str, Any]:
    sm = _object("monitoring.coreos.com/v1", "ServiceMonitor", name_of(pmi), deployment_namespace(pmi), labels(pmi))
    if detail is Detail.METADATA:
        return sm

    endpoint: dict[str, Any] = {"port": "http", "scheme": "http", "interval": "15s"}
    if is_rbac_enabled(pmi) and is_uwm_enabled(pmi):
        endpoint = {
            "port": "https",
            "scheme": "https",
            "interval": "15s",
            "authorization": {"credentials": {"name": SECRET_UWM_TOKEN_NAME, "key": "token"}},
            "tlsConfig": {
                "ca": {"configMap": {"name": CONFIGMAP_CA_BUNDLE_NAME, "key": "service-ca.crt"}},
                "serverName": f"{name_of(pmi)}.{deployment_namespace(pmi)}.svc",
            },
        }
    sm["spec"] = {
        "endpoints": [endpoint],
        "jobLabel": LABEL_INSTANCE,
        "selector": {"matchLabels": labels(pmi)},
    }
    return sm
