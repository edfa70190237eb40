from __future__ import annotations

import logging
import os
from typing import Optional

PACKAGE_LOGGER = "yt_quota"

_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DEFAULT_DATEFMT = "%Y-%m-%dT%H:%M:%SZ"


def setup_logging(level: Optional[str] = None, fmt: str = _DEFAULT_FORMAT, datefmt: str = _DEFAULT_DATEFMT) -> logging.Logger:
    """Configure quota logging and return the `yt_quota` package logger.

    The level (`LOG_LEVEL` env var when not supplied) is set on the package
    logger, so a host that already configured the root logger keeps its own
    handlers and levels for everything else.
    """

    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, log_level, logging.INFO)
    logging.basicConfig(level=numeric_level, format=fmt, datefmt=datefmt)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(numeric_level)
    return package_logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger inside the `yt_quota` namespace."""

    if not name or name == "__main__":
        name = PACKAGE_LOGGER
    elif name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"

    if not logging.getLogger().handlers:
        # Hosts that never configured logging still get readable output.
        setup_logging()
    return logging.getLogger(name)
