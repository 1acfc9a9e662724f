"""Logging helpers."""

from pin_lockout.common.logging.logger import (
    LOG_FORMAT,
    PACKAGE_LOGGER,
    configure_logging,
    get_logger,
)

__all__ = ["LOG_FORMAT", "PACKAGE_LOGGER", "configure_logging", "get_logger"]
