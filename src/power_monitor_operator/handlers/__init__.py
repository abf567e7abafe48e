"""Handler modules for the watched resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import power_monitor  # noqa: F401
from . import power_monitor_internal  # noqa: F401
from . import token_expiry  # noqa: F401
