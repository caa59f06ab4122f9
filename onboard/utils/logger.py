"""Logging setup for the onboarding CLI."""

import sys
from pathlib import Path

from loguru import logger

_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>"


def setup_logging(verbose: bool = False, log_file: str | Path | None = None) -> None:
    """Route wizard logs to stderr, plus an optional debug log file.

    Without --verbose only warnings reach the terminal so log lines do not
    interleave with the prompts.
    """
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING", format=_FORMAT)
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(path, level="DEBUG", rotation="1 MB", retention=3, encoding="utf-8")
