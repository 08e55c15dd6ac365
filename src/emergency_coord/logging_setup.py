from __future__ import annotations

import logging
from typing import Optional

from emergency_coord.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a stream handler to the package logger. Safe to call twice."""
    package_logger = logging.getLogger("emergency_coord")
    package_logger.setLevel((level or LOG_LEVEL).upper())
    if not any(getattr(h, "_emergency_coord", False) for h in package_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._emergency_coord = True  # type: ignore[attr-defined]
        package_logger.addHandler(handler)
