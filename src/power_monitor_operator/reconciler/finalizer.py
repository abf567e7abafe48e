"""Finalizer gate step."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..services.store import NotFoundError, ObjectStore, Scheme, StoreError
from ..utils.events import emit_finalizer_added, emit_finalizer_removed
from ..utils.objects import describe, is_deleting, meta, name_of, namespace_of
from .result import Action, Result, StepError

logger = logging.getLogger(__name__)


@dataclass
class Finalizer:
    """Keeps ``finalizer`` on a live object and releases it once cleanup ran.

    Must be the last step of a pass: when the object is being deleted,
    every earlier step is cleanup, and removing the marker lets the store
    drop the object.
    """

    resource: dict[str, Any]
    finalizer: str

    def reconcile(self, client: ObjectStore, scheme: Scheme) -> Result:
        identity = describe(self.resource)
        try:
            latest = client.get(
                self.resource["apiVersion"],
                self.resource["kind"],
                name_of(self.resource),
                namespace_of(self.resource) or None,
            )
        except NotFoundError:
            return Result()
        except StoreError as e:
            return Result(Action.REQUEUE, StepError(identity, "finalizer", "failed to refresh", e))

        finalizers = list(meta(latest).get("finalizers") or [])
        present = self.finalizer in finalizers
        deleting = is_deleting(latest)

        if deleting and present:
            finalizers.remove(self.finalizer)
            meta(latest)["finalizers"] = finalizers
            return self._persist(client, latest, "removed")
        if not deleting and not present:
            finalizers.append(self.finalizer)
            meta(latest)["finalizers"] = finalizers
            return self._persist(client, latest, "added")
        return Result()

    def _persist(self, client: ObjectStore, obj: dict[str, Any], change: str) -> Result:
        identity = describe(obj)
        try:
            client.update(obj)
        except StoreError as e:
            return Result(Action.STOP, StepError(identity, "finalizer", f"failed to persist {change} finalizer", e))

        logger.info(f"finalizer {self.finalizer} {change} on {identity}")
        if change == "added":
            emit_finalizer_added(obj, self.finalizer)
        else:
            emit_finalizer_removed(obj, self.finalizer)
        return Result(Action.STOP)
