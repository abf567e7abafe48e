"""Reconciler step contract."""

from __future__ import annotations

from typing import Protocol

from ..services.store import ObjectStore, Scheme
from .result import Result


class Reconciler(Protocol):
    """A single idempotent step of a reconcile pass."""

    def reconcile(self, client: ObjectStore, scheme: Scheme) -> Result:
        """Drive one object (or one concern) towards its desired state."""
        ...
