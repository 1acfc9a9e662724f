#!/usr/bin/env python3
"""Main entry point for the PIN lockout engine."""

from pin_lockout.common.config.settings import get_settings
from pin_lockout.common.logging import get_logger
from pin_lockout.service import create_lockout_service

logger = get_logger(__name__)


def main():
    """Main entry point."""
    settings = get_settings()
    service = create_lockout_service(settings)
    config = service.config
    logger.info(f"PIN lockout engine initialized in {settings.environment.value} mode")
    logger.info(
        f"Policy: {config.max_attempts} attempts, "
        f"{config.base_lockout_minutes}m base lockout, "
        f"state backend {settings.state_backend.value}"
    )
    service.shutdown()


if __name__ == "__main__":
    main()
