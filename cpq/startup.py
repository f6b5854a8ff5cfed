"""
startup.py — Database Startup Migrations (Idempotent)

Tables and indexes are defined in the ORM models and created via
Base.metadata.create_all(checkfirst=True). This file also clears bulk
markers that were stale before the process started, so a crash of the
previous process does not keep suppressing per-row activity until the
first scheduled sweep.

Called by: main.py lifespan
Depends on: database.py (engine), models (Base), services/bulk_registry.py
"""

import logging
import os

from .database import engine

log = logging.getLogger(__name__)


def run_startup_migrations() -> None:
    """Execute all idempotent startup operations. Safe to call on every app boot."""
    if os.environ.get("TESTING"):
        log.info("TESTING mode — skipping startup migrations")
        return

    from .models import Base

    Base.metadata.create_all(bind=engine, checkfirst=True)
    log.info("ORM schema sync complete (create_all checkfirst=True)")

    _sweep_stale_markers()
    log.info("Startup migrations complete")


def _sweep_stale_markers() -> None:
    from .services.bulk_registry import get_registry

    removed = get_registry().sweep()
    if removed:
        log.warning("Removed %d stale bulk marker(s) left by a previous run", removed)
