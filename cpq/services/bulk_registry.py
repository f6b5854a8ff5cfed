"""
bulk_registry.py — Durable, team-scoped "bulk operation in progress" markers

A caller brackets a sequence of row mutations (import, bulk delete, bulk
update) with begin()/end(). While any fresh marker exists for a team, the
mutation suppression gate skips per-row activity entries for that team and
the caller writes one summary entry instead.

Markers are rows in bulk_operations, committed through SessionLocal, so
every pooled connection and every worker process sees them. A
connection-level setting would be invisible to the next pooled connection.

Business Rules:
- begin() with an existing operation_id is a no-op (retried calls are fine)
- begin() with an operation_id held by another team → WARNING, returns False
- begin() failure → WARNING, returns False; suppression is then best-effort
- end() only removes the marker when it belongs to the given team
- end() failure → WARNING, returns False; marker stays until swept
  (over-suppression, never under-suppression)
- is_active() is team-wide, not per operation, and ignores markers older
  than the staleness threshold
- sweep() deletes stale markers; scheduled hourly (scheduler.py)

Called by: services/component_service.py, services/suppression_gate.py,
           routers/activity.py, scheduler.py
Depends on: database.py (SessionLocal), models/activity.py (BulkOperation)
"""

import logging
import secrets
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import delete, exists, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..config import settings
from ..database import SessionLocal
from ..models import BulkOperation
from ..models.activity import BULK_OPERATION_TYPES

log = logging.getLogger("cpq.activity.bulk")


class RegistryWriteFailure(Exception):
    """A marker insert or delete did not reach the database."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_operation_id(kind: str) -> str:
    """Caller-side id, e.g. "bulk-import-1767427200000-k3j9x2ab1"."""
    return f"bulk-{kind}-{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}"


def marker_exists(conn, team_id: int, cutoff: datetime) -> bool:
    """True iff a marker newer than cutoff exists for the team.

    Takes a Connection or Session so the gate can check on the same
    connection that is performing the row write.
    """
    stmt = select(
        exists().where(
            BulkOperation.team_id == team_id,
            BulkOperation.created_at >= cutoff,
        )
    )
    return bool(conn.execute(stmt).scalar())


class BulkOperationRegistry:
    def __init__(
        self,
        session_factory=SessionLocal,
        staleness: timedelta | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self.staleness = staleness or timedelta(minutes=settings.bulk_marker_staleness_min)
        self._clock = clock

    def cutoff(self) -> datetime:
        return self._clock() - self.staleness

    # ── Writes ────────────────────────────────────────────────────────

    def _insert(self, operation_id: str, team_id: int, kind: str) -> int | None:
        """Insert-if-absent. Returns None when created, else the owning team id."""
        db = self._session_factory()
        try:
            existing = db.get(BulkOperation, operation_id)
            if existing is not None:
                return existing.team_id
            db.add(BulkOperation(
                operation_id=operation_id,
                team_id=team_id,
                operation_type=kind,
                created_at=self._clock(),
            ))
            db.commit()
            return None
        except IntegrityError:
            # concurrent begin() with the same id won the race
            db.rollback()
            winner = db.get(BulkOperation, operation_id)
            return winner.team_id if winner is not None else team_id
        except SQLAlchemyError as e:
            db.rollback()
            raise RegistryWriteFailure(str(e)) from e
        finally:
            db.close()

    def _delete(self, *criteria) -> int:
        db = self._session_factory()
        try:
            result = db.execute(delete(BulkOperation).where(*criteria))
            db.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            db.rollback()
            raise RegistryWriteFailure(str(e)) from e
        finally:
            db.close()

    def begin(self, operation_id: str, team_id: int, operation_kind: str) -> bool:
        """Register a marker. Returns False if suppression could not be armed."""
        if operation_kind not in BULK_OPERATION_TYPES:
            raise ValueError(f"operation_kind must be one of {BULK_OPERATION_TYPES}")
        try:
            owner = self._insert(operation_id, team_id, operation_kind)
        except RegistryWriteFailure as e:
            log.warning(
                "Bulk marker %s not registered for team %s — per-row logs may leak: %s",
                operation_id, team_id, e,
            )
            return False
        if owner is None:
            log.info("Bulk %s started: %s (team %s)", operation_kind, operation_id, team_id)
        elif owner != team_id:
            log.warning(
                "Bulk marker %s is held by team %s, not team %s — suppression not armed",
                operation_id, owner, team_id,
            )
            return False
        else:
            log.debug("Bulk marker %s already registered — no-op", operation_id)
        return True

    def end(self, operation_id: str, team_id: int) -> bool:
        """Remove the team's marker. Never raises; a failed delete is left for the sweep."""
        try:
            removed = self._delete(
                BulkOperation.operation_id == operation_id,
                BulkOperation.team_id == team_id,
            )
        except RegistryWriteFailure as e:
            log.warning("Bulk marker %s not removed, sweep will expire it: %s", operation_id, e)
            return False
        log.info("Bulk operation ended: %s (%d marker removed)", operation_id, removed)
        return True

    def sweep(self, staleness: timedelta | None = None) -> int:
        """Delete markers older than staleness. Returns how many were removed."""
        cutoff = self._clock() - (staleness or self.staleness)
        try:
            removed = self._delete(BulkOperation.created_at < cutoff)
        except RegistryWriteFailure as e:
            log.warning("Bulk marker sweep failed: %s", e)
            return 0
        if removed:
            log.warning("Swept %d stale bulk marker(s) older than %s", removed, cutoff.isoformat())
        return removed

    # ── Reads ─────────────────────────────────────────────────────────

    def is_active(self, team_id: int) -> bool:
        with self._session_factory() as db:
            return marker_exists(db, team_id, self.cutoff())

    def active_operations(self, team_id: int) -> list[BulkOperation]:
        with self._session_factory() as db:
            return (
                db.query(BulkOperation)
                .filter(BulkOperation.team_id == team_id, BulkOperation.created_at >= self.cutoff())
                .order_by(BulkOperation.created_at)
                .all()
            )

    # ── Bracket helper ────────────────────────────────────────────────

    @contextmanager
    def bulk_operation(self, team_id: int, operation_kind: str, operation_id: str | None = None):
        """begin() on enter, end() on exit (including on error).

        Yields the operation id. Suppression is armed only if begin() succeeded;
        the bulk work runs either way.
        """
        operation_id = operation_id or new_operation_id(operation_kind)
        self.begin(operation_id, team_id, operation_kind)
        try:
            yield operation_id
        finally:
            self.end(operation_id, team_id)


_registry: BulkOperationRegistry | None = None


def get_registry() -> BulkOperationRegistry:
    global _registry
    if _registry is None:
        _registry = BulkOperationRegistry()
    return _registry
