from __future__ import annotations

import logging
import os

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Third-party loggers that drown out crawl progress at DEBUG.
_NOISY = ("aiohttp.access", "aiohttp.client", "asyncio", "urllib3")


def setup_logging(level: str | int | None = None) -> int:
    """
    Configure application logging and return the effective level.

    ``level`` falls back to ``CRAWLER_LOG_LEVEL`` and then INFO; unknown
    names resolve to INFO rather than failing the run.
    """
    if level is None:
        level = os.getenv("CRAWLER_LOG_LEVEL", "INFO")

    if isinstance(level, str):
        level = _LEVELS.get(level.upper(), logging.INFO)

    logging.basicConfig(level=level, format=LOG_FORMAT)
    for name in _NOISY:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return level
