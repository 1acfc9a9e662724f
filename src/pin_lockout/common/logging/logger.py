"""Logging setup for the lockout engine.

Modules log through logging.getLogger(__name__); only the package root
logger ("pin_lockout") gets a handler, so every module propagates to it.
"""

import logging

PACKAGE_LOGGER = "pin_lockout"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    """Get a logger with a single stream handler attached."""
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())
    
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    
    return logger


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Configure the package root logger.
    
    Calling it again only changes the level; no second handler is added.
    """
    return get_logger(PACKAGE_LOGGER, level)
