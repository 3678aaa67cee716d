"""Centralized logging configuration."""

import logging

from config import settings

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "alembic.runtime.migration",
    "httpx",
    "httpcore",
    "multipart",
    "python_multipart",
)


def setup_logging() -> None:
    """Configure logging for the application.

    The root level comes from ``settings.LOG_LEVEL``. Third-party loggers are
    held at WARNING, except that ``settings.LOG_SQL`` lets SQLAlchemy's
    statement log through at INFO.
    """
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%H:%M:%S",
        level=getattr(logging, settings.LOG_LEVEL),
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if settings.LOG_SQL:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
