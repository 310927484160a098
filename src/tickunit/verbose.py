"""Run log setup: every suite run writes a debug.log next to its reports."""

from __future__ import annotations

import logging
import sys
from pathlib import Path


def setup_logger(debug_file: Path, verbose: bool = False, logger_name: str = "tickunit") -> logging.Logger:
    """
    Return the logger a suite run and its test cases report through.

    Args:
        debug_file: Log file for the run, created along with its directory.
        verbose: Echo the same records to stderr.
        logger_name: Logger to configure. Configuring a name again replaces
            the handlers of the earlier run.

    Returns:
        The configured logger, detached from the root logger.
    """
    logger = logging.getLogger(logger_name)

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    logger.disabled = False
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S"
    )

    debug_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(debug_file, mode='a')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if verbose:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.DEBUG)
        stderr_handler.setFormatter(formatter)
        logger.addHandler(stderr_handler)

    return logger
