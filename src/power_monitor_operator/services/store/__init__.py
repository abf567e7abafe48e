"""Object store abstractions."""

from .base import AlreadyExistsError, ConflictError, NotFoundError, ObjectStore, StoreError
from .scheme import Scheme, SchemeError

__all__ = [
    "ObjectStore",
    "StoreError",
    "NotFoundError",
    "ConflictError",
    "AlreadyExistsError",
    "Scheme",
    "SchemeError",
]
