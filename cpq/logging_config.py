"""
logging_config.py — Loguru setup for the CPQ activity service

Loguru is the only log backend. The services log through stdlib
getLogger("cpq.<area>"); an intercept handler forwards those records so
they share Loguru's format, request_id context, and rotation.

Business Rules:
- Production (APP_URL set and not localhost) → JSON lines on stdout plus a
  rotating file under /var/log/cpq
- Activity entries that were dropped or left unsuppressed are WARNINGs from
  cpq.activity.*; in production they also go to activity-warnings.log so
  lost audit entries can be reconciled later
- Development → coloured console, no files
- LOG_LEVEL env var sets the minimum level

Called by: cpq/main.py (lifespan startup)
Depends on: loguru
"""

import logging
import os
import sys

from loguru import logger

LOG_DIR = "/var/log/cpq"

_DEV_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "{extra[request_id]} {message}"
)

_QUIET = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "apscheduler")


def _is_activity_warning(record) -> bool:
    return record["level"].no >= logging.WARNING and record["extra"].get("origin", "").startswith("cpq.activity")


def setup_logging() -> None:
    """Replace Loguru's default handler and route stdlib logging into it."""
    logger.remove()
    logger.configure(extra={"request_id": "-"})

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    app_url = os.getenv("APP_URL", "")
    production = bool(app_url) and "localhost" not in app_url

    if production:
        logger.add(sys.stdout, level=level, format="{message}", serialize=True)
        logger.add(
            f"{LOG_DIR}/cpq.log",
            level=level,
            rotation="50 MB",
            retention="7 days",
            compression="gz",
            serialize=True,
        )
        logger.add(
            f"{LOG_DIR}/activity-warnings.log",
            level="WARNING",
            filter=_is_activity_warning,
            rotation="10 MB",
            retention="30 days",
            serialize=True,
        )
    else:
        logger.add(sys.stdout, level=level, format=_DEV_FORMAT, colorize=True)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in _QUIET:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging configured", level=level, production=production)


class _InterceptHandler(logging.Handler):
    """Forward a stdlib LogRecord to Loguru, keeping the caller's frame."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.bind(origin=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )
