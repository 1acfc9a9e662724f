"""Common utilities - logging, config, exceptions."""

from pin_lockout.common.logging import get_logger
from pin_lockout.common.config import (
    LockoutConfig,
    Settings,
    get_settings,
    load_lockout_config,
    reset_settings,
)
from pin_lockout.common.exceptions import (
    PinLockoutException,
    ConfigurationError,
    ValidationError,
    PersistenceError,
    AuditError,
    AuditLogIntegrityError,
)

__all__ = [
    # Logging
    "get_logger",
    # Config
    "LockoutConfig",
    "Settings",
    "get_settings",
    "load_lockout_config",
    "reset_settings",
    # Exceptions
    "PinLockoutException",
    "ConfigurationError",
    "ValidationError",
    "PersistenceError",
    "AuditError",
    "AuditLogIntegrityError",
]
