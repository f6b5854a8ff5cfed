"""
activity_sink.py — Append-only writer for activity_logs

Business Rules:
- append() never raises: a lost activity entry is not a failed save
- A failed write is retried once (settings.activity_sink_retries), then
  dropped with a WARNING
- Entries are written, never updated or deleted

Called by: services/flush_coordinator.py, services/activity_service.py
Depends on: database.py (SessionLocal), models/activity.py
"""

import logging

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..database import SessionLocal
from ..models import ActivityLog
from ..schemas.activity import LogEntry

log = logging.getLogger("cpq.activity.sink")


class TransientSinkFailure(Exception):
    """The backing store rejected or lost an activity write."""


def entry_row(entry: LogEntry) -> dict:
    return entry.model_dump()


def insert_entry(conn, entry: LogEntry) -> None:
    """Write one entry on an existing connection (same transaction as the caller)."""
    conn.execute(insert(ActivityLog.__table__).values(**entry_row(entry)))


class ActivitySink:
    def __init__(self, session_factory=SessionLocal, retries: int | None = None):
        self._session_factory = session_factory
        self._retries = settings.activity_sink_retries if retries is None else retries

    def _write(self, entry: LogEntry) -> int:
        db = self._session_factory()
        try:
            row = ActivityLog(**entry_row(entry))
            db.add(row)
            db.commit()
            return row.id
        except SQLAlchemyError as e:
            db.rollback()
            raise TransientSinkFailure(str(e)) from e
        finally:
            db.close()

    def append(self, entry: LogEntry) -> bool:
        attempts = 1 + max(self._retries, 0)
        for attempt in range(1, attempts + 1):
            try:
                row_id = self._write(entry)
            except TransientSinkFailure as e:
                if attempt < attempts:
                    log.info("Activity write failed (attempt %d), retrying: %s", attempt, e)
                    continue
                log.warning(
                    "Activity entry dropped after %d attempts: team=%s action=%s entity=%s — %s",
                    attempts, entry.team_id, entry.action_type, entry.entity_id, e,
                )
                return False
            log.info(
                "Activity logged #%s: %s on %s %s (team %s)",
                row_id, entry.action_type, entry.entity_type, entry.entity_id or "-", entry.team_id,
            )
            return True
        return False
