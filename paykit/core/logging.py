"""Logging helpers for host applications."""

import logging

from paykit.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | int | None = None) -> None:
    """Attach a stream handler to the ``paykit`` logger.

    ``level`` defaults to ``Settings.log_level`` (``PAYMENTS_LOG_LEVEL``).
    The library never configures logging on import; hosts that do not
    already have a logging setup can call this once at startup.
    """
    if level is None:
        level = get_settings().log_level
    logger = logging.getLogger("paykit")
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
