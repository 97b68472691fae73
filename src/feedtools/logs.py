"""Logging setup shared by the CLI and scripts."""

from __future__ import annotations

import logging
from typing import Optional

from .config import get_settings


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure root logging once and return the package logger."""

    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )
    return logging.getLogger("feedtools")
