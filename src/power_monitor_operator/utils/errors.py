"""Error sanitization utilities to keep credentials out of statuses, events and logs."""

import re

# Patterns whose captured value must never leave the operator
SENSITIVE_PATTERNS = [
    r"(bearer\s+)[A-Za-z0-9\-_\.=]+",
    r"(authorization[:=]\s*)[^\s,;\)]+",
    r"(eyJ)[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]*",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "token",
    "password",
    "tls.key",
    "ca.crt",
    "client-key",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, r"\1[REDACTED]", sanitized, flags=re.IGNORECASE)

    # Labels such as "uwm-token:" are not key/value pairs
    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"((?<![\w\-.])\"?{re.escape(field)}\"?\s*[:=]\s*)\"?[^\s,;\)\"]+\"?",
            r"\1[REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize exception message."""
    return sanitize_error_message(str(error))
