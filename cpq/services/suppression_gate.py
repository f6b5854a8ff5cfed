"""
suppression_gate.py — Per-row activity logging for components, bulk-aware

Every component insert/update/delete flows through SQLAlchemy mapper events
installed here. Before writing an individual "created"/"updated"/"deleted"
entry the gate checks the bulk operation registry on the same connection
that performs the row write. While any fresh marker exists for the team,
nothing is written at all; the bulk caller logs one summary instead.

Business Rules:
- Active marker for team → zero individual entries for that team
- No marker → exactly one individual entry per row mutation
- Updates that change no column are not logged
- A gate failure is a WARNING; it never fails the row write

Called by: main.py (install on startup), tests
Depends on: services/bulk_registry.py, services/activity_formatter.py,
            services/activity_sink.py, models/catalog.py
"""

import logging

from sqlalchemy import event, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import object_session

from ..models import Component
from ..schemas.activity import Actor, LogEntry
from .activity_formatter import format_summary
from .activity_sink import insert_entry
from .bulk_registry import BulkOperationRegistry, get_registry, marker_exists

log = logging.getLogger("cpq.activity.gate")

# Columns whose change alone is not a user-visible edit
_IGNORED_COLUMNS = {"updated_at"}


class MutationSuppressionGate:
    def __init__(self, registry: BulkOperationRegistry | None = None):
        self.registry = registry or get_registry()

    def is_suppressed(self, conn, team_id: int) -> bool:
        return marker_exists(conn, team_id, self.registry.cutoff())

    def log_row_mutation(
        self,
        conn,
        team_id: int,
        action: str,
        entity_id,
        entity_name: str | None,
        actor: Actor | None = None,
        entity_type: str = "component",
        locale: str | None = None,
    ) -> bool:
        """Write one individual entry unless a bulk marker is active.

        Returns True if an entry was written.
        """
        if self.is_suppressed(conn, team_id):
            log.debug("Suppressed %s %s %s (bulk operation active for team %s)",
                      action, entity_type, entity_id, team_id)
            return False

        actor = actor or Actor()
        entry = LogEntry(
            team_id=team_id,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            entity_name=entity_name,
            action_type=action,
            change_summary=format_summary(
                action, {"name": entity_name, "entity_type": entity_type}, locale
            ),
            user_id=actor.user_id,
            user_email=actor.email,
            user_name=actor.name,
        )
        insert_entry(conn, entry)
        return True


# ── Mapper event wiring ─────────────────────────────────────────────────

_listeners: list[tuple[str, object]] = []


def _has_column_changes(target) -> bool:
    state = inspect(target)
    for attr in state.mapper.column_attrs:
        if attr.key in _IGNORED_COLUMNS:
            continue
        if state.attrs[attr.key].history.has_changes():
            return True
    return False


def _session_context(target) -> tuple[Actor | None, str | None]:
    session = object_session(target)
    if session is None:
        return None, None
    return session.info.get("actor"), session.info.get("locale")


def _make_listener(gate: MutationSuppressionGate, action: str):
    def _listener(mapper, connection, target):
        if action == "updated" and not _has_column_changes(target):
            return
        actor, locale = _session_context(target)
        # Savepoint so a failed activity insert cannot abort the row write (PostgreSQL)
        nested = connection.begin_nested() if connection.dialect.name == "postgresql" else None
        try:
            gate.log_row_mutation(
                connection,
                team_id=target.team_id,
                action=action,
                entity_id=target.id,
                entity_name=target.name,
                actor=actor,
                locale=locale,
            )
            if nested is not None:
                nested.commit()
        except SQLAlchemyError as e:
            if nested is not None:
                nested.rollback()
            log.warning("Component %s activity not logged for #%s: %s", action, target.id, e)

    return _listener


def install_component_listeners(gate: MutationSuppressionGate | None = None) -> MutationSuppressionGate:
    """Attach the gate to Component insert/update/delete. Idempotent."""
    gate = gate or MutationSuppressionGate()
    remove_component_listeners()
    for identifier, action in (
        ("after_insert", "created"),
        ("after_update", "updated"),
        ("after_delete", "deleted"),
    ):
        fn = _make_listener(gate, action)
        event.listen(Component, identifier, fn)
        _listeners.append((identifier, fn))
    log.info("Component activity gate installed")
    return gate


def remove_component_listeners() -> None:
    while _listeners:
        identifier, fn = _listeners.pop()
        event.remove(Component, identifier, fn)
