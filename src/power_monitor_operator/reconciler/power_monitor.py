"""Steps that render the exporter configuration and mount user secrets."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..builders.power_monitor import (
    Detail,
    annotate_daemonset_with_config_map_hash,
    annotate_daemonset_with_secret_hash,
    deployment_namespace,
    deployment_spec,
    kepler_spec,
    new_config_map,
)
from ..constants import KEPLER_CONFIG_FILE
from ..services.store import NotFoundError, ObjectStore, Scheme, StoreError
from ..utils.objects import describe
from .result import Action, Result, SecretNotFoundError, StepError
from .updater import Updater

logger = logging.getLogger(__name__)


@dataclass
class PowerMonitorDeployer:
    """Applies the exporter config map, merged with any additional config maps.

    The DaemonSet is annotated with the config hash so a config change
    rolls the pods.
    """

    pmi: dict[str, Any]
    ds: dict[str, Any]

    def reconcile(self, client: ObjectStore, scheme: Scheme) -> Result:
        identity = describe(new_config_map(Detail.METADATA, self.pmi))
        try:
            additional = self._read_additional_configs(client)
        except (StoreError, ValueError) as e:
            return Result(Action.STOP, StepError(identity, "deployer", "error creating config", e))

        try:
            cfm = new_config_map(Detail.FULL, self.pmi, additional)
        except ValueError as e:
            return Result(Action.STOP, StepError(identity, "deployer", "error creating configmap", e))

        annotate_daemonset_with_config_map_hash(self.ds, cfm)
        return Updater(self.pmi, cfm).reconcile(client, scheme)

    def _read_additional_configs(self, client: ObjectStore) -> list[str]:
        refs = kepler_spec(self.pmi).get("config", {}).get("additionalConfigMaps") or []
        namespace = deployment_namespace(self.pmi)
        configs = []
        for ref in refs:
            try:
                cfm = client.get("v1", "ConfigMap", ref["name"], namespace)
            except NotFoundError as e:
                raise ValueError(f"configMap {ref['name']} not found in {namespace} namespace") from e
            content = (cfm.get("data") or {}).get(KEPLER_CONFIG_FILE)
            if content:
                configs.append(content)
        return configs


@dataclass
class SecretMounter:
    """Checks the secrets the deployment mounts and hashes the ones present.

    Missing secrets do not stop the pass; they are reported together as a
    SecretNotFoundError so the status can show the deployment as degraded.
    """

    pmi: dict[str, Any]
    ds: dict[str, Any]

    def reconcile(self, client: ObjectStore, scheme: Scheme) -> Result:
        refs = deployment_spec(self.pmi).get("secrets") or []
        if not refs:
            return Result()

        namespace = deployment_namespace(self.pmi)
        missing = []
        for ref in refs:
            try:
                secret = client.get("v1", "Secret", ref["name"], namespace)
            except NotFoundError:
                logger.info(f"skipping hash annotation for missing secret {namespace}/{ref['name']}")
                missing.append(ref["name"])
                continue
            except StoreError as e:
                return Result(Action.STOP, StepError(
                    describe(self.ds), "secret-mounter", f"failed to get secret {ref['name']}", e,
                ))
            annotate_daemonset_with_secret_hash(self.ds, secret)

        if missing:
            return Result(Action.CONTINUE, SecretNotFoundError(missing, namespace))
        return Result()
