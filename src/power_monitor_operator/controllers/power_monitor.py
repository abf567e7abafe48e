"""Controller for the user-facing PowerMonitor resource."""

from __future__ import annotations

import logging

from ..builders.power_monitor import Detail, new_power_monitor_internal
from ..config import OperatorConfig
from ..constants import API_GROUP_VERSION, FINALIZER, KIND_POWER_MONITOR, POWER_MONITOR_INSTANCE_NAME
from ..reconciler import Deleter, Finalizer, Outcome, Runner, Updater
from ..services.store import NotFoundError, ObjectStore, Scheme, StoreError
from ..tracing import trace_span
from ..utils.events import emit_invalid_resource
from ..utils.objects import is_deleting
from .status import set_invalid_status, update_power_monitor_status

logger = logging.getLogger(__name__)


class PowerMonitorController:
    """Translates the PowerMonitor into its internal object and mirrors status back.

    Only the instance named ``powermonitor`` is reconciled; any other
    instance is marked invalid.
    """

    def __init__(self, client: ObjectStore, scheme: Scheme, config: OperatorConfig):
        self.client = client
        self.scheme = scheme
        self.config = config

    def reconcile(self, name: str) -> Outcome:
        try:
            pm = self.client.get(API_GROUP_VERSION, KIND_POWER_MONITOR, name)
        except NotFoundError:
            return Outcome()
        except StoreError as e:
            return Outcome(error=e)

        if name != POWER_MONITOR_INSTANCE_NAME:
            logger.info(f"ignoring {KIND_POWER_MONITOR} {name}; only {POWER_MONITOR_INSTANCE_NAME} is reconciled")
            try:
                set_invalid_status(self.client, name)
            except StoreError as e:
                return Outcome(error=e)
            emit_invalid_resource(pm, f"Only a single instance named {POWER_MONITOR_INSTANCE_NAME} is reconciled")
            return Outcome()

        with trace_span("reconcile_power_monitor", attributes={"power_monitor.name": name}):
            if is_deleting(pm):
                steps = [
                    Deleter(new_power_monitor_internal(Detail.METADATA, pm, self.config)),
                    Finalizer(pm, FINALIZER),
                ]
                return Runner(steps, self.client, self.scheme).run()

            steps = [
                Updater(pm, new_power_monitor_internal(Detail.FULL, pm, self.config)),
                Finalizer(pm, FINALIZER),
            ]
            outcome = Runner(steps, self.client, self.scheme).run()

            try:
                update_power_monitor_status(self.client, name)
            except StoreError as e:
                logger.warning(f"failed to mirror status onto {KIND_POWER_MONITOR} {name}: {e}")
                if outcome.error is None:
                    return Outcome(requeue=outcome.requeue, requeue_after=outcome.requeue_after, error=e)
            return outcome
