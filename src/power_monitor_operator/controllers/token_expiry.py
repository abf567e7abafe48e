"""Watcher that removes the monitoring token secret ahead of its expiry."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from .. import metrics
from ..config import OperatorConfig
from ..constants import ANNOTATION_TOKEN_EXPIRATION, SECRET_UWM_TOKEN_NAME, UNPARSEABLE_EXPIRY_REQUEUE_SECONDS
from ..reconciler import Deleter, Outcome, Runner
from ..services.store import NotFoundError, ObjectStore, Scheme, StoreError
from ..utils.events import emit_token_expired
from ..utils.objects import describe
from ..utils.secrets import format_expiration, get_expiration

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenExpiryController:
    """Deletes the token secret once it enters its refresh window.

    The secret is due at ``expiry - 2 * token_refresh_interval``. Deleting it
    makes the next PowerMonitorInternal pass request a fresh token. Until
    then the watcher asks to be called again exactly at the due time.
    """

    def __init__(
        self,
        client: ObjectStore,
        scheme: Scheme,
        config: OperatorConfig,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.client = client
        self.scheme = scheme
        self.config = config
        self.now = now

    def is_watched(self, name: str, namespace: str | None) -> bool:
        return name == SECRET_UWM_TOKEN_NAME and namespace == self.config.deployment_namespace

    def reconcile(self, name: str, namespace: str) -> Outcome:
        if not self.is_watched(name, namespace):
            return Outcome()

        try:
            secret = self.client.get("v1", "Secret", name, namespace)
        except NotFoundError:
            return Outcome()
        except StoreError as e:
            return Outcome(error=e)

        try:
            expiry = get_expiration(secret)
        except ValueError as e:
            logger.warning(f"cannot parse {ANNOTATION_TOKEN_EXPIRATION} on {describe(secret)}: {e}")
            return Outcome(requeue_after=UNPARSEABLE_EXPIRY_REQUEUE_SECONDS)

        if expiry is None:
            return self._delete(secret, "missing_annotation", f"Token secret {name} has no expiration annotation")

        now = self.now()
        due = expiry - timedelta(seconds=self.config.token_buffer)
        if due <= now:
            return self._delete(
                secret, "expired", f"Token secret {name} expires at {format_expiration(expiry)}; rotating",
            )

        wait = (due - now).total_seconds()
        logger.debug(f"{describe(secret)} is due for rotation in {wait:.0f}s")
        return Outcome(requeue_after=wait)

    def _delete(self, secret: dict[str, Any], reason: str, message: str) -> Outcome:
        target = {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {
                "name": secret["metadata"]["name"],
                "namespace": secret["metadata"]["namespace"],
            },
        }
        outcome = Runner([Deleter(target)], self.client, self.scheme).run()
        if outcome.error is None:
            metrics.token_expired_total.labels(reason=reason).inc()
            logger.info(message)
            emit_token_expired(secret, message)
        return outcome
