"""
Application logger.

All modules log through `from src.core.logger import logger` using loguru's
brace-style lazy formatting: `logger.warning("Invalid tier row {}", row_id)`.
"""

from __future__ import annotations

import sys

from loguru import logger

from src.config.settings import config

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

logger.remove()
logger.add(sys.stderr, level=config.log_level, format=_FORMAT, backtrace=False, diagnose=False)

__all__ = ["logger"]
