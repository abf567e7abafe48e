"""Server-side apply step."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from ..constants import FIELD_MANAGER
from ..services.store import AlreadyExistsError, ConflictError, ObjectStore, Scheme, SchemeError, StoreError
from ..utils.objects import describe, meta, name_of, namespace_of
from .result import Action, Result, StepError

logger = logging.getLogger(__name__)


def set_controller_reference(owner: dict[str, Any], obj: dict[str, Any], scheme: Scheme) -> None:
    """Make ``owner`` the controlling owner of ``obj``.

    Raises:
        SchemeError: If the owner's type is not registered
        ValueError: If the owner has no uid or another controller already owns obj
    """
    api_version, kind = scheme.resolve(owner)
    uid = owner.get("metadata", {}).get("uid")
    if not uid:
        raise ValueError(f"owner {describe(owner)} has no uid")

    ref = {
        "apiVersion": api_version,
        "kind": kind,
        "name": name_of(owner),
        "uid": uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }
    refs = [r for r in meta(obj).get("ownerReferences") or [] if r.get("uid") != uid]
    for existing in refs:
        if existing.get("controller"):
            raise ValueError(
                f"{describe(obj)} is already controlled by {existing.get('kind')} {existing.get('name')}"
            )
    refs.append(ref)
    meta(obj)["ownerReferences"] = refs


@dataclass
class Updater:
    """Applies ``resource`` with forced ownership, optionally owned by ``owner``.

    The owner reference is only stamped when the owner is cluster scoped or
    lives in the resource's namespace.
    """

    owner: dict[str, Any] | None
    resource: dict[str, Any]
    on_error: Action = Action.CONTINUE
    field_manager: str = field(default=FIELD_MANAGER)

    def reconcile(self, client: ObjectStore, scheme: Scheme) -> Result:
        obj = copy.deepcopy(self.resource)
        identity = describe(obj)

        if self.owner is not None and namespace_of(self.owner) in ("", namespace_of(obj)):
            try:
                set_controller_reference(self.owner, obj, scheme)
            except (SchemeError, ValueError) as e:
                return Result(Action.STOP, StepError(identity, "updater", "failed to set owner reference", e))

        try:
            client.apply(obj, field_manager=self.field_manager, force=True)
        except (ConflictError, AlreadyExistsError) as e:
            logger.debug(f"apply of {identity} raced with another writer, requeueing: {e}")
            return Result(Action.REQUEUE)
        except StoreError as e:
            return Result(self.on_error, StepError(identity, "updater", "apply failed", e))

        logger.debug(f"applied {identity}")
        return Result()
