"""Controller that deploys the power monitor described by a PowerMonitorInternal."""

from __future__ import annotations

import logging
from typing import Any

from ..builders.power_monitor import (
    Detail,
    deployment_namespace,
    is_rbac_enabled,
    is_uwm_enabled,
    new_cluster_role,
    new_cluster_role_binding,
    new_daemonset,
    new_namespace,
    new_service,
    new_service_account,
)
from ..config import OperatorConfig
from ..constants import API_GROUP_VERSION, FINALIZER, KIND_POWER_MONITOR_INTERNAL
from ..reconciler import Action, Deleter, Finalizer, Outcome, Poller, Reconciler, Runner, Updater
from ..reconciler.power_monitor import PowerMonitorDeployer, SecretMounter
from ..reconciler.security import (
    CABundleConfigReconciler,
    KubeRBACProxyConfigReconciler,
    KubeRBACProxyObjectsChecker,
    UWMSecretTokenReconciler,
)
from ..reconciler.service_monitor import ServiceMonitorReconciler
from ..services.store import NotFoundError, ObjectStore, Scheme, StoreError
from ..tracing import trace_span
from ..utils.objects import is_deleting
from .status import update_power_monitor_internal_status

logger = logging.getLogger(__name__)


def live_reconcilers(pmi: dict[str, Any], config: OperatorConfig) -> list[Reconciler]:
    """Steps that bring the deployment in line with the instance, in create order."""
    rbac = is_rbac_enabled(pmi)
    uwm = is_uwm_enabled(pmi)
    poller = Poller(timeout=config.poll_timeout, interval=config.poll_interval)
    # Shared with the steps that stamp hash annotations before it is applied
    ds = new_daemonset(Detail.FULL, pmi)

    return [
        Updater(pmi, new_namespace(deployment_namespace(pmi)), on_error=Action.REQUEUE),
        SecretMounter(pmi, ds),
        Updater(pmi, new_cluster_role(Detail.FULL, pmi)),
        Updater(pmi, new_cluster_role_binding(Detail.FULL, pmi)),
        KubeRBACProxyConfigReconciler(pmi, rbac),
        CABundleConfigReconciler(pmi, rbac, uwm),
        UWMSecretTokenReconciler(
            pmi,
            rbac,
            uwm,
            poller,
            ttl=config.token_ttl,
            buffer=config.token_buffer,
        ),
        Updater(pmi, new_service_account(pmi)),
        Updater(pmi, new_service(pmi)),
        PowerMonitorDeployer(pmi, ds),
        KubeRBACProxyObjectsChecker(pmi, ds, rbac, uwm, poller),
        Updater(pmi, ds),
        ServiceMonitorReconciler(pmi, rbac, uwm),
        Finalizer(pmi, FINALIZER),
    ]


def cleanup_reconcilers(pmi: dict[str, Any], config: OperatorConfig) -> list[Reconciler]:
    """Steps that tear the deployment down, in delete order.

    Namespaced objects go with the namespace; cluster scoped ones are
    removed explicitly.
    """
    return [
        Deleter(new_cluster_role_binding(Detail.METADATA, pmi)),
        Deleter(new_cluster_role(Detail.METADATA, pmi)),
        Deleter(
            new_namespace(deployment_namespace(pmi)),
            on_error=Action.REQUEUE,
            wait_timeout=config.poll_timeout,
        ),
        Finalizer(pmi, FINALIZER),
    ]


class PowerMonitorInternalController:
    """Runs one reconcile pass for a PowerMonitorInternal and records its status."""

    def __init__(self, client: ObjectStore, scheme: Scheme, config: OperatorConfig):
        self.client = client
        self.scheme = scheme
        self.config = config

    def reconcile(self, name: str) -> Outcome:
        try:
            pmi = self.client.get(API_GROUP_VERSION, KIND_POWER_MONITOR_INTERNAL, name)
        except NotFoundError:
            logger.debug(f"{KIND_POWER_MONITOR_INTERNAL} {name} not found; nothing to do")
            return Outcome()
        except StoreError as e:
            return Outcome(error=e)

        deleting = is_deleting(pmi)
        with trace_span(
            "reconcile_power_monitor_internal",
            attributes={"power_monitor_internal.name": name, "deleting": deleting},
        ):
            if deleting:
                steps = cleanup_reconcilers(pmi, self.config)
            else:
                steps = live_reconcilers(pmi, self.config)

            outcome = Runner(steps, self.client, self.scheme).run()
            if deleting:
                return outcome

            try:
                update_power_monitor_internal_status(self.client, name, outcome.error)
            except StoreError as e:
                logger.warning(f"failed to update status of {KIND_POWER_MONITOR_INTERNAL} {name}: {e}")
                if outcome.error is None:
                    return Outcome(requeue=outcome.requeue, requeue_after=outcome.requeue_after, error=e)
            return outcome
