"""Main entry point for the Power Monitor Operator.

Run with ``kopf run -m power_monitor_operator.main``.
"""

from __future__ import annotations

import logging
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import health
from . import logging as structured_logging
from .config import OperatorConfig
from .controllers import PowerMonitorController, PowerMonitorInternalController, TokenExpiryController
from .services.kubernetes import KubernetesStore, load_kube_config
from .services.store import Scheme
from .tracing import initialize_tracing

logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **_: Any) -> None:
    """Configure the operator and wire the controllers into kopf's memo."""
    # Set up structured JSON logging
    structured_logging.setup_structured_logging()
    initialize_tracing()

    config = OperatorConfig.from_env()
    load_kube_config()
    client = KubernetesStore()
    scheme = Scheme()

    memo.config = config
    memo.power_monitor = PowerMonitorController(client, scheme, config)
    memo.power_monitor_internal = PowerMonitorInternalController(client, scheme, config)
    memo.token_expiry = TokenExpiryController(client, scheme, config)

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = 0
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = 4

    # Metrics plus /healthz and /readyz
    health.start_server(config.metrics_port)
    health.mark_ready()
    logger.info(
        f"power monitor operator started: cluster={config.cluster} "
        f"namespace={config.deployment_namespace} metrics_port={config.metrics_port}"
    )


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    health.mark_not_ready()
