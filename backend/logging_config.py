"""Centralized logging configuration."""

import logging
from typing import Optional

from config import settings

# Third-party loggers held at WARNING regardless of LOG_LEVEL
QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "urllib3",
    "yfinance",
    "peewee",
    "rq.worker",
    "redis",
)


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging for the API, worker and scripts.

    Args:
        level: Overrides ``settings.LOG_LEVEL`` (the debug script passes
               ``"DEBUG"`` for ``--debug``).
    """
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%H:%M:%S",
        level=getattr(logging, (level or settings.LOG_LEVEL).upper()),
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
