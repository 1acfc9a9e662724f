"""Tests for logging setup."""

import logging

from pin_lockout.common.logging import PACKAGE_LOGGER, configure_logging, get_logger


class TestLogging:
    """Tests for get_logger and configure_logging."""
    
    def test_single_handler(self):
        """Test repeated calls do not stack handlers."""
        logger = get_logger("pin_lockout_test.single")
        get_logger("pin_lockout_test.single")
        
        assert len(logger.handlers) == 1
    
    def test_level_case_insensitive(self):
        """Test level names are accepted in any case."""
        assert get_logger("pin_lockout_test.level", "debug").level == logging.DEBUG
    
    def test_configure_package_logger(self):
        """Test module loggers sit under the configured package logger."""
        root = configure_logging("WARNING")
        configure_logging("WARNING")
        
        assert root.name == PACKAGE_LOGGER
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert logging.getLogger("pin_lockout.service").getEffectiveLevel() == logging.WARNING
        
        configure_logging("INFO")
