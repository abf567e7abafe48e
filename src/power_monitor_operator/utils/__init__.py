"""Utility functions for the Power Monitor Operator."""

from .conditions import find_condition, sanitize_conditions, update_condition
from .context import get_context_dict, get_correlation_id, with_correlation_id
from .errors import sanitize_error_message, sanitize_exception
from .events import emit_event
from .rate_limit import rate_limit_k8s
from .secrets import content_hash, get_expiration

__all__ = [
    "update_condition",
    "find_condition",
    "sanitize_conditions",
    "emit_event",
    "sanitize_error_message",
    "sanitize_exception",
    "rate_limit_k8s",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
    "content_hash",
    "get_expiration",
]
