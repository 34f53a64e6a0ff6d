"""
Logging destinations.

Modules log through ``logging.getLogger(__name__)``; this module decides
where those records end up.
"""

import sys
import logging

from pathlib import Path

LOG_FORMAT = "%(levelname).1s%(asctime)s %(name)s] %(message)s"
DATE_FORMAT = "%m%d %H:%M:%S"

_SEVERITIES = (
    ("INFO", logging.INFO),
    ("WARNING", logging.WARNING),
    ("ERROR", logging.ERROR),
)


def configure_logging(
    prefix: Path | None = None,
    to_stderr: bool = False,
    level: int = logging.INFO,
) -> logging.Logger:
    """Install handlers on the package logger.

    Args:
        prefix: When set, write ``<prefix>_INFO``, ``<prefix>_WARNING`` and
            ``<prefix>_ERROR`` files, each receiving records of that severity
            and above
        to_stderr: Also echo records to stderr
        level: Minimum level handled

    Returns:
        The configured ``atari_rl`` logger
    """
    logger = logging.getLogger("atari_rl")
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if prefix is not None:
        for name, severity in _SEVERITIES:
            handler = logging.FileHandler(f"{prefix}_{name}")
            handler.setLevel(max(severity, level))
            handler.setFormatter(formatter)
            logger.addHandler(handler)

    if to_stderr or prefix is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    return logger
