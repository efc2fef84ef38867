"""Logging setup shared by the API process and command-line use."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from .config import Config

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a stdout handler to the package logger once and return it."""

    logger = logging.getLogger("squad_league")
    logger.setLevel(level or Config.LOG_LEVEL)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(handler)
    return logger


__all__ = ["setup_logging"]
