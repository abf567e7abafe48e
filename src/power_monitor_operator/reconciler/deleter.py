"""Delete step."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..constants import DELETE_MIN_WAIT_SECONDS, DELETE_POLL_INTERVAL_SECONDS
from ..services.store import NotFoundError, ObjectStore, Scheme, StoreError
from ..utils.objects import describe, name_of, namespace_of
from .result import Action, PollTimeoutError, Result, StepError
from .retry import retry_with_timeout

logger = logging.getLogger(__name__)


@dataclass
class Deleter:
    """Deletes ``resource``; an already absent object counts as deleted.

    With ``wait_timeout`` set, the step also waits for the object to
    disappear (for example while a namespace drains).
    """

    resource: dict[str, Any]
    on_error: Action = Action.CONTINUE
    wait_timeout: float | None = None

    def reconcile(self, client: ObjectStore, scheme: Scheme) -> Result:
        identity = describe(self.resource)
        try:
            client.delete(self.resource)
        except NotFoundError:
            logger.debug(f"{identity} already deleted")
            return Result()
        except StoreError as e:
            return Result(self.on_error, StepError(identity, "deleter", "delete failed", e))

        if self.wait_timeout is None:
            return Result()

        def gone() -> None:
            try:
                client.get(
                    self.resource["apiVersion"],
                    self.resource["kind"],
                    name_of(self.resource),
                    namespace_of(self.resource) or None,
                )
            except NotFoundError:
                return
            raise RuntimeError(f"{identity} still exists")

        try:
            retry_with_timeout(
                gone,
                timeout=max(self.wait_timeout, DELETE_MIN_WAIT_SECONDS),
                interval=DELETE_POLL_INTERVAL_SECONDS,
            )
        except PollTimeoutError as e:
            return Result(self.on_error, StepError(identity, "deleter", "timed out waiting for deletion", e))
        return Result()
