"""Kubernetes implementation of the object store."""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import DynamicApiError, ResourceNotFoundError

from ... import metrics
from ...utils.rate_limit import is_rate_limit_status, rate_limit_k8s
from ..store.base import AlreadyExistsError, ConflictError, NotFoundError, StoreError

logger = logging.getLogger(__name__)


def _error_status(error: ApiException | DynamicApiError) -> dict[str, Any]:
    """Decode the ``Status`` object carried in an API error body."""
    body = getattr(error, "body", None)
    if isinstance(body, bytes):
        body = body.decode(errors="replace")
    if isinstance(body, str):
        try:
            decoded = json.loads(body)
        except ValueError:
            return {}
        return decoded if isinstance(decoded, dict) else {}
    return {}


def translate_api_error(error: ApiException | DynamicApiError, what: str) -> StoreError:
    """Map a Kubernetes API error onto the store's error types."""
    status = getattr(error, "status", None)
    details = _error_status(error)
    message = f"{what}: {details.get('message') or f'{status} {error.reason}'}"
    if status == 404:
        return NotFoundError(message)
    if status == 409:
        if details.get("reason") == "AlreadyExists":
            return AlreadyExistsError(message)
        return ConflictError(message)
    if is_rate_limit_status(status, str(error)):
        metrics.rate_limit_hits_total.labels(api_type="k8s").inc()
    return StoreError(message, status=status)


def load_kube_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


class KubernetesStore:
    """Object store backed by the Kubernetes API server."""

    def __init__(self, api_client: client.ApiClient | None = None) -> None:
        """Initialize the store.

        Args:
            api_client: Configured API client; a default one is built from the
                loaded kube config when omitted
        """
        self.api_client = api_client or client.ApiClient()
        self.dynamic = DynamicClient(self.api_client)
        self.core = client.CoreV1Api(self.api_client)

    @contextmanager
    def _call(self, operation: str, what: str) -> Iterator[None]:
        start_time = time.time()
        try:
            yield
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
        except (ApiException, DynamicApiError) as e:
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
            raise translate_api_error(e, what) from e
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def _resource(self, api_version: str, kind: str) -> Any:
        try:
            return self.dynamic.resources.get(api_version=api_version, kind=kind)
        except ResourceNotFoundError as e:
            # e.g. ServiceMonitor on a cluster without the prometheus operator
            raise NotFoundError(f"kind {kind} ({api_version}) is not served by the cluster") from e

    @staticmethod
    def _namespace(resource: Any, namespace: str | None) -> str | None:
        return namespace if resource.namespaced else None

    @rate_limit_k8s
    def get(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: str | None = None,
    ) -> dict[str, Any]:
        resource = self._resource(api_version, kind)
        with self._call("get", f"get {kind} {namespace or ''}/{name}"):
            obj = self.dynamic.get(resource, name=name, namespace=self._namespace(resource, namespace))
        return obj.to_dict()

    @rate_limit_k8s
    def list(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        resource = self._resource(api_version, kind)
        with self._call("list", f"list {kind}"):
            result = self.dynamic.get(
                resource,
                namespace=self._namespace(resource, namespace),
                label_selector=label_selector,
            )
        return [item.to_dict() for item in result.items]

    @rate_limit_k8s
    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        resource = self._resource(obj["apiVersion"], obj["kind"])
        namespace = self._namespace(resource, obj.get("metadata", {}).get("namespace"))
        with self._call("create", f"create {obj['kind']} {obj['metadata']['name']}"):
            created = self.dynamic.create(resource, body=obj, namespace=namespace)
        return created.to_dict()

    @rate_limit_k8s
    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        resource = self._resource(obj["apiVersion"], obj["kind"])
        meta = obj["metadata"]
        with self._call("update", f"update {obj['kind']} {meta['name']}"):
            updated = self.dynamic.replace(
                resource,
                body=obj,
                name=meta["name"],
                namespace=self._namespace(resource, meta.get("namespace")),
            )
        return updated.to_dict()

    @rate_limit_k8s
    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        resource = self._resource(obj["apiVersion"], obj["kind"])
        meta = obj["metadata"]
        with self._call("update_status", f"update status of {obj['kind']} {meta['name']}"):
            updated = self.dynamic.replace(
                resource.status,
                body=obj,
                name=meta["name"],
                namespace=self._namespace(resource, meta.get("namespace")),
            )
        return updated.to_dict()

    @rate_limit_k8s
    def delete(self, obj: dict[str, Any]) -> None:
        resource = self._resource(obj["apiVersion"], obj["kind"])
        meta = obj["metadata"]
        with self._call("delete", f"delete {obj['kind']} {meta['name']}"):
            self.dynamic.delete(
                resource,
                name=meta["name"],
                namespace=self._namespace(resource, meta.get("namespace")),
                body={"propagationPolicy": "Background"},
            )

    @rate_limit_k8s
    def apply(self, obj: dict[str, Any], field_manager: str, force: bool = True) -> dict[str, Any]:
        resource = self._resource(obj["apiVersion"], obj["kind"])
        meta = obj["metadata"]
        with self._call("apply", f"apply {obj['kind']} {meta['name']}"):
            applied = self.dynamic.server_side_apply(
                resource,
                body=obj,
                name=meta["name"],
                namespace=self._namespace(resource, meta.get("namespace")),
                field_manager=field_manager,
                force_conflicts=force,
            )
        return applied.to_dict()

    @rate_limit_k8s
    def request_token(
        self,
        name: str,
        namespace: str,
        audiences: list[str],
        ttl_seconds: int,
    ) -> str:
        body = client.AuthenticationV1TokenRequest(
            spec=client.V1TokenRequestSpec(
                audiences=list(audiences),
                expiration_seconds=int(ttl_seconds),
            )
        )
        with self._call("request_token", f"request token for {namespace}/{name}"):
            response = self.core.create_namespaced_service_account_token(name, namespace, body)
        return response.status.token
