"""
Centralized logging for the viz3d backend.

Usage:
    from api.shared.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Stored upload %s (%d bytes)", identifier, size)
    logger.warning("Cache unavailable: %s", err)
"""

import logging
import sys

_configured = False

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once; later calls are no-ops."""
    global _configured
    if _configured:
        return

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    # SQL echo is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger named after the calling module (``__name__``)."""
    return logging.getLogger(name)
