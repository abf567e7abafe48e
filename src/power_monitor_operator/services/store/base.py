"""Object store interface used by reconcilers."""

from __future__ import annotations

from typing import Any, Protocol


class StoreError(Exception):
    """Base error for object store operations.

    Attributes:
        status: HTTP-like status code reported by the store, when known
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class NotFoundError(StoreError):
    """The requested object does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status=404)


class ConflictError(StoreError):
    """The write was based on a stale version of the object."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status=409)


class AlreadyExistsError(StoreError):
    """A create raced with another writer."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status=409)


class ObjectStore(Protocol):
    """Protocol defining the object store operations reconcilers depend on.

    Objects are Kubernetes manifests as plain dicts carrying ``apiVersion``,
    ``kind`` and ``metadata``.
    """

    def get(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Fetch an object. Raises NotFoundError when absent."""
        ...

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        """List objects of a kind."""
        ...

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Create an object. Raises AlreadyExistsError on a name clash."""
        ...

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace an object. Raises ConflictError on a stale resourceVersion."""
        ...

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace the status subresource of an object."""
        ...

    def delete(self, obj: dict[str, Any]) -> None:
        """Delete an object. Raises NotFoundError when absent."""
        ...

    def apply(self, obj: dict[str, Any], field_manager: str, force: bool = True) -> dict[str, Any]:
        """Server-side apply ``obj`` under the given field manager."""
        ...

    def request_token(
        self,
        name: str,
        namespace: str,
        audiences: list[str],
        ttl_seconds: int,
    ) -> str:
        """Request a bound token for a service account."""
        ...
