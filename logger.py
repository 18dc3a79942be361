"""Logging setup with Loguru."""

import sys

from loguru import logger

__all__ = ["setup_logging"]

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure the Loguru stdout sink.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Emit one JSON object per line (for log shippers)
    """
    # Remove default handler
    logger.remove()

    if json_format:
        logger.add(sys.stdout, level=level, serialize=True)
    else:
        logger.add(sys.stdout, format=CONSOLE_FORMAT, level=level, colorize=True)

    logger.debug(f"Logging configured: level={level}, json={json_format}")
