"""Loguru sink configuration."""

import sys
from pathlib import Path

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"


def configure_logging(level: str = "INFO") -> None:
    """Replace the default handler with a colorized console sink."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=LOG_FORMAT,
        colorize=True,
    )


def add_run_log(path: Path, level: str = "DEBUG") -> int:
    """Attach a run-scoped log file sink.

    Args:
        path: Log file to create.
        level: Minimum level written to the file.

    Returns:
        Handler id to pass to ``logger.remove`` when the run ends.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    return logger.add(
        str(path),
        level=level,
        format=FILE_FORMAT,
        encoding="utf-8",
        colorize=False,
    )
