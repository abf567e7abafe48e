"""Sequential execution of reconcile steps."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from .. import metrics
from ..constants import REQUEUE_DELAY_SECONDS
from ..services.store import ObjectStore, Scheme
from ..tracing import trace_span
from .base import Reconciler
from .result import Action

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    """What the caller should do after a pass.

    Attributes:
        requeue: Run the pass again soon
        requeue_after: Run the pass again after this many seconds
        error: Error to report for the pass
    """

    requeue: bool = False
    requeue_after: float | None = None
    error: Exception | None = None


@dataclass
class Runner:
    """Runs steps strictly in order, honouring each step's action.

    Continue moves on even when the step reported an error; Stop ends the
    pass with the most recent error; Requeue ends the pass with a short
    delay and no error. A completed pass reports the most recent error.
    """

    reconcilers: Sequence[Reconciler]
    client: ObjectStore
    scheme: Scheme
    requeue_delay: float = field(default=REQUEUE_DELAY_SECONDS)

    def run(self) -> Outcome:
        last_error: Exception | None = None

        for step in self.reconcilers:
            step_name = type(step).__name__
            with trace_span(f"step.{step_name}"):
                result = step.reconcile(self.client, self.scheme)
            metrics.step_total.labels(step=step_name, action=str(result.action)).inc()
            logger.debug(f"step {step_name} -> {result.action}" + (f" ({result.error})" if result.error else ""))

            if result.error is not None:
                last_error = result.error

            if result.action is Action.STOP:
                return Outcome(requeue=True, error=last_error)
            if result.action is Action.REQUEUE:
                return Outcome(requeue_after=self.requeue_delay)

        return Outcome(error=last_error)
