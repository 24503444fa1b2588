from __future__ import annotations

import logging
import os


def setup_logging(level: int | str | None = None) -> None:
    """Configure stdlib logging with a consistent, project-wide format.

    When `level` is omitted, `LIKELY_LOG_LEVEL` is read from the environment
    (falling back to INFO).
    """
    if level is None:
        level = os.getenv("LIKELY_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = level.upper()

    root_logger = logging.getLogger()
    if root_logger.handlers:
        # Avoid duplicate handlers if called multiple times (e.g., tests + CLI).
        root_logger.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
