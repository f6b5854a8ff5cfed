"""
flush_coordinator.py — Turns pending edits and item batches into log entries

Owns the lifecycle of editing contexts (one open quotation, one open
component dialog) and decides when accumulated state becomes activity
entries. Three lifecycle events flush a context, whichever fires first:

  1. batch window expiry   — item additions only
  2. close_context()       — explicit close/save, flushes synchronously
  3. teardown_context()    — navigation away / unmount / shutdown, best effort

Business Rules:
- flush() is idempotent: nothing pending → no entry, no error
- Parameter changes never flush on a timer; a user mid-edit never sees a
  half-finished change logged
- One flush → at most one items_added and at most one parameters_changed
- State for the context is cleared whatever the sink outcome
- Sink failures stay inside the sink; nothing here blocks the user's save

Called by: routers/activity.py, main.py (teardown_all on shutdown)
Depends on: services/change_accumulator.py, services/batch_scheduler.py,
            services/activity_formatter.py, services/activity_sink.py
"""

import logging
from datetime import datetime
from typing import Callable

from ..config import settings
from ..schemas.activity import EditingContext, ItemRef, LogEntry
from .activity_formatter import build_change_details, format_summary
from .activity_sink import ActivitySink
from .batch_scheduler import BatchWindowScheduler, TimerBackend, utcnow
from .change_accumulator import ChangeAccumulator

log = logging.getLogger("cpq.activity.flush")


class FlushCoordinator:
    def __init__(
        self,
        sink: ActivitySink,
        timers: TimerBackend,
        window_seconds: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.sink = sink
        self.accumulator = ChangeAccumulator()
        self.batches = BatchWindowScheduler(
            timers,
            on_window_closed=self._on_window_closed,
            window_seconds=settings.batch_window_seconds if window_seconds is None else window_seconds,
            clock=clock,
        )
        self._contexts: dict[str, EditingContext] = {}

    # ── Lifecycle ─────────────────────────────────────────────────────

    def open_context(self, ctx: EditingContext) -> EditingContext:
        """Register (or refresh) an editing context. Pending state is kept."""
        self._contexts[ctx.context_id] = ctx
        log.debug("Context opened: %s (%s, team %s)", ctx.context_id, ctx.entity_type, ctx.team_id)
        return ctx

    def get_context(self, context_id: str) -> EditingContext | None:
        return self._contexts.get(context_id)

    def is_open(self, context_id: str) -> bool:
        return context_id in self._contexts

    def close_context(self, context_id: str) -> list[LogEntry]:
        """Explicit close/save: flush synchronously, then forget the context."""
        entries = self.flush(context_id)
        self._contexts.pop(context_id, None)
        return entries

    def teardown_context(self, context_id: str) -> list[LogEntry]:
        """Forced teardown. Runs even if close was bypassed; never raises."""
        try:
            return self.flush(context_id)
        except Exception as e:
            log.warning("Teardown flush failed for %s, pending activity lost: %s", context_id, e)
            self.accumulator.clear(context_id)
            self.batches.take(context_id)
            return []
        finally:
            self._contexts.pop(context_id, None)

    def teardown_all(self) -> int:
        """Teardown every open context (application shutdown). Returns entries written."""
        written = 0
        for context_id in list(self._contexts):
            written += len(self.teardown_context(context_id))
        orphaned = self.batches.cancel_all()
        if orphaned:
            log.warning("Dropped %d item batch(es) with no open context on shutdown", orphaned)
        return written

    def open_contexts(self) -> list[str]:
        return list(self._contexts)

    # ── Event intake ──────────────────────────────────────────────────

    def _require(self, context_id: str) -> EditingContext:
        ctx = self._contexts.get(context_id)
        if ctx is None:
            raise KeyError(f"Editing context not open: {context_id}")
        return ctx

    def record_change(self, context_id: str, field_key: str, display_label: str | None, old_value, new_value) -> None:
        self._require(context_id)
        self.accumulator.record_change(context_id, field_key, display_label, old_value, new_value)

    def add_item(self, context_id: str, item: ItemRef) -> int:
        """Queue an item addition. Returns the number of items now pending."""
        self._require(context_id)
        return len(self.batches.add(context_id, item).items)

    # ── Flush ─────────────────────────────────────────────────────────

    def flush(self, context_id: str) -> list[LogEntry]:
        """Emit at most one items_added and one parameters_changed entry."""
        entries = []
        item_entry = self._flush_items(context_id)
        if item_entry:
            entries.append(item_entry)
        param_entry = self._flush_parameters(context_id)
        if param_entry:
            entries.append(param_entry)
        return entries

    def _on_window_closed(self, context_id: str) -> None:
        # Timer path: items only. Parameter changes wait for close/teardown.
        self._flush_items(context_id)

    def _flush_items(self, context_id: str) -> LogEntry | None:
        items = self.batches.take(context_id)
        ctx = self._contexts.get(context_id)
        if not items:
            return None
        if ctx is None:
            log.warning("Dropping %d batched items for unknown context %s", len(items), context_id)
            return None
        log.debug("Flushing item batch for %s: %d items", context_id, len(items))
        return self._emit(ctx, "items_added", {"items": items})

    def _flush_parameters(self, context_id: str) -> LogEntry | None:
        delta = self.accumulator.pop_delta(context_id)
        ctx = self._contexts.get(context_id)
        if not delta or ctx is None:
            return None
        log.debug("Flushing parameter changes for %s: %s", context_id, [d.field_key for d in delta])
        return self._emit(ctx, "parameters_changed", {"changes": delta})

    def _emit(self, ctx: EditingContext, action_type: str, payload: dict) -> LogEntry:
        actor = ctx.actor
        entry = LogEntry(
            team_id=ctx.team_id,
            entity_type=ctx.entity_type,
            entity_id=ctx.context_id,
            entity_name=ctx.entity_name,
            action_type=action_type,
            change_summary=format_summary(action_type, payload, ctx.locale),
            change_details=build_change_details(action_type, payload),
            user_id=actor.user_id if actor else None,
            user_email=actor.email if actor else None,
            user_name=actor.name if actor else None,
        )
        self.sink.append(entry)
        return entry


_coordinator: FlushCoordinator | None = None


def get_coordinator() -> FlushCoordinator:
    """Process-wide coordinator backed by the APScheduler timers."""
    global _coordinator
    if _coordinator is None:
        from ..scheduler import APSchedulerTimers, scheduler

        _coordinator = FlushCoordinator(ActivitySink(), APSchedulerTimers(scheduler))
    return _coordinator
