"""Configuration module - process settings and lockout policy."""

from pin_lockout.common.config.lockout import (
    DEFAULT_CONFIG_FILE,
    LockoutConfig,
    load_lockout_config,
)
from pin_lockout.common.config.settings import (
    AuditStorageType,
    Environment,
    LogLevel,
    Settings,
    StateBackend,
    get_settings,
    reset_settings,
)

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "LockoutConfig",
    "load_lockout_config",
    "AuditStorageType",
    "Environment",
    "LogLevel",
    "Settings",
    "StateBackend",
    "get_settings",
    "reset_settings",
]
