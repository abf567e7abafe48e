"""Reconcile steps and the runner that sequences them."""

from .base import Reconciler
from .deleter import Deleter
from .finalizer import Finalizer
from .result import Action, PollTimeoutError, Result, SecretNotFoundError, StepError
from .retry import Poller, retry_on_conflict, retry_with_timeout
from .runner import Outcome, Runner
from .updater import Updater

__all__ = [
    "Action",
    "Result",
    "StepError",
    "SecretNotFoundError",
    "PollTimeoutError",
    "Reconciler",
    "Updater",
    "Deleter",
    "Finalizer",
    "Runner",
    "Outcome",
    "Poller",
    "retry_on_conflict",
    "retry_with_timeout",
]
