"""Logging setup shared by the app, the worker and the cleanup script."""

import logging
import sys

from config import LOG_LEVEL

LOGGER_ROOT = "tgdrop"

_configured = False


def setup_logging(level: str = LOG_LEVEL) -> None:
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    root = logging.getLogger(LOGGER_ROOT)
    root.setLevel(level)
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a child of the application logger, e.g. ``tgdrop.services.upload``."""
    return logging.getLogger(f"{LOGGER_ROOT}.{name}")
