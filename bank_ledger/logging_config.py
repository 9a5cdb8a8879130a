"""
Logging configuration.

Every module logs through logging.getLogger(__name__), so all
records end up under the "bank_ledger" logger configured here.
"""

import logging

LOGGER_NAME = "bank_ledger"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Attach a single stream handler to the application logger.

    Safe to call more than once: existing handlers are replaced,
    so reloading the app does not duplicate log lines.
    """
    logger = logging.getLogger(LOGGER_NAME)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    return logger
