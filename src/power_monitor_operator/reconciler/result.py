"""Outcome of a single reconcile step."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Action(enum.Enum):
    """What the runner does after a step."""

    CONTINUE = "Continue"
    REQUEUE = "Requeue"
    STOP = "Stop"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Result:
    """Action to take next plus the error the step ran into, if any.

    ``Result()`` is success: continue with no error.
    """

    action: Action = Action.CONTINUE
    error: Exception | None = None


class StepError(Exception):
    """Error raised by a step against a specific object.

    The message reads ``<namespace>/<name> (<Kind>): <step>: <detail>: <cause>``
    and the original exception is kept as ``__cause__``.
    """

    def __init__(self, identity: str, step: str, detail: str, cause: BaseException | None = None) -> None:
        self.identity = identity
        self.step = step
        self.detail = detail
        message = f"{identity}: {step}: {detail}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.__cause__ = cause


class SecretNotFoundError(Exception):
    """One or more secrets referenced by the deployment are missing."""

    def __init__(self, missing: list[str], namespace: str) -> None:
        self.missing = list(missing)
        self.namespace = namespace
        if len(self.missing) == 1:
            message = f"secret {self.missing[0]} not found in {namespace} namespace"
        else:
            message = f"secrets {', '.join(self.missing)} not found in {namespace} namespace"
        super().__init__(message)


class PollTimeoutError(Exception):
    """A prerequisite did not appear before the poll deadline."""
