"""Base handler class with common functionality for all watched kinds."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

import kopf

from .. import metrics
from ..config import OperatorConfig
from ..logging import CONTROLLER_NAME, log_resource_event
from ..reconciler import Outcome
from ..tracing import set_span_status, trace_span
from ..utils.context import with_correlation_id
from ..utils.errors import sanitize_exception
from ..utils.events import emit_reconcile_failed, emit_reconcile_started, emit_reconcile_succeeded

# Delay used when a pass asks to run again soon without naming a delay
IMMEDIATE_REQUEUE_DELAY = 1.0


def raise_for_outcome(outcome: Outcome, error_delay: float) -> None:
    """Translate a pass outcome into kopf retry semantics.

    Raises:
        kopf.TemporaryError: If the pass failed or asked to run again
    """
    if outcome.error is not None:
        raise kopf.TemporaryError(sanitize_exception(outcome.error), delay=error_delay)
    if outcome.requeue_after is not None:
        raise kopf.TemporaryError("requeue requested", delay=outcome.requeue_after)
    if outcome.requeue:
        raise kopf.TemporaryError("requeue requested", delay=IMMEDIATE_REQUEUE_DELAY)


class BaseHandler:
    """Base class for handlers with logging, metrics and per-object locking."""

    def __init__(self, kind: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "PowerMonitor")
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        """Extract common resource context from metadata."""
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", ""),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    @staticmethod
    def lock_key(meta: dict[str, Any]) -> str:
        return f"{meta.get('namespace', '')}/{meta.get('name', '')}"

    def lock_for(self, key: str) -> threading.Lock:
        """Lock serializing passes for one object across handlers and timers."""
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def forget(self, key: str) -> None:
        with self._locks_guard:
            self._locks.pop(key, None)

    def reconcile_with_metrics(
        self,
        body: dict[str, Any],
        config: OperatorConfig,
        reconcile_fn: Callable[[], Outcome],
        emit_events: bool = True,
    ) -> None:
        """Execute one pass with locking, tracing, metrics and events.

        Args:
            body: The object the pass is for
            config: Operator configuration
            reconcile_fn: Function running the pass
            emit_events: Whether to post started/succeeded events (timers do not)

        Raises:
            kopf.TemporaryError: If the pass failed or asked to run again
        """
        meta = body.get("metadata", {})
        key = self.lock_key(meta)

        with with_correlation_id(), self.lock_for(key):
            if emit_events:
                emit_reconcile_started(body)
            metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

            start_time = time.time()
            with trace_span(f"reconcile_{self.kind}", kind=self.kind, attributes={"name": meta.get("name", "")}):
                try:
                    outcome = reconcile_fn()
                except Exception as e:
                    metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
                    metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
                    self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
                    emit_reconcile_failed(body, f"Reconciliation failed: {sanitize_exception(e)}")
                    set_span_status(False, sanitize_exception(e))
                    raise
                finally:
                    duration = time.time() - start_time
                    metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

                if outcome.error is not None:
                    metrics.error_total.labels(kind=self.kind, error_type=type(outcome.error).__name__).inc()
                    metrics.reconcile_total.labels(kind=self.kind, result="failed").inc()
                    self.log_error(meta, "Reconciliation failed", error=outcome.error, reason="ReconciliationFailed")
                    emit_reconcile_failed(body, f"Reconciliation failed: {sanitize_exception(outcome.error)}")
                    set_span_status(False, sanitize_exception(outcome.error))
                elif outcome.requeue or outcome.requeue_after is not None:
                    metrics.reconcile_total.labels(kind=self.kind, result="requeued").inc()
                    self.log_info(meta, "Reconciliation requeued", event="requeue", reason="Requeued")
                else:
                    metrics.reconcile_total.labels(kind=self.kind, result="success").inc()
                    if emit_events:
                        emit_reconcile_succeeded(body)
                    set_span_status(True)

        raise_for_outcome(outcome, config.error_requeue_delay)
