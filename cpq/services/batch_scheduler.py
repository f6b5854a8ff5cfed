"""
batch_scheduler.py — Debounced item-addition batches, one timer per context

Each item added to an open context lands in that context's pending batch
and pushes the batch deadline to now + W. The window slides: a steady
trickle of additions closer together than W never flushes until the
trickle stops or the context closes.

Business Rules:
- At most one armed timer per context; re-arming replaces the old one
- The timer callback receives only the context_id and reads the batch at
  fire time, so it always sees the latest items
- A fire whose deadline has since been pushed forward is ignored
- Contexts are independent; the lock only guards the dict, never I/O

Called by: services/flush_coordinator.py
Depends on: scheduler.py (APSchedulerTimers), schemas/activity.py (ItemRef)
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from ..schemas.activity import ItemRef

log = logging.getLogger("cpq.activity.batch")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimerBackend(Protocol):
    """Single-shot timers keyed by context id."""

    def arm(self, key: str, run_at: datetime, callback: Callable[[str], None]) -> None: ...

    def cancel(self, key: str) -> None: ...


@dataclass
class PendingItemBatch:
    context_id: str
    window_deadline: datetime
    items: list[ItemRef] = field(default_factory=list)


class BatchWindowScheduler:
    """Sliding-window batcher for additive events."""

    def __init__(
        self,
        timers: TimerBackend,
        on_window_closed: Callable[[str], None],
        window_seconds: float,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._timers = timers
        self._on_window_closed = on_window_closed
        self._window = timedelta(seconds=window_seconds)
        self._clock = clock
        self._batches: dict[str, PendingItemBatch] = {}
        self._lock = threading.Lock()

    def add(self, context_id: str, item: ItemRef) -> PendingItemBatch:
        with self._lock:
            deadline = self._clock() + self._window
            batch = self._batches.get(context_id)
            if batch is None:
                batch = PendingItemBatch(context_id=context_id, window_deadline=deadline)
                self._batches[context_id] = batch
            batch.items.append(item)
            batch.window_deadline = deadline
        self._timers.arm(context_id, deadline, self._fire)
        log.debug(
            "Item batched for %s (%d pending, window closes %s)",
            context_id, len(batch.items), deadline.isoformat(),
        )
        return batch

    def _fire(self, context_id: str) -> None:
        with self._lock:
            batch = self._batches.get(context_id)
            if batch is None:
                return
            if self._clock() < batch.window_deadline:
                # re-armed after this timer was scheduled; the newer timer owns the flush
                return
        self._on_window_closed(context_id)

    def take(self, context_id: str) -> list[ItemRef]:
        """Remove and return the pending items, cancelling the timer."""
        with self._lock:
            batch = self._batches.pop(context_id, None)
        self._timers.cancel(context_id)
        return batch.items if batch else []

    def cancel_all(self) -> int:
        """Drop every pending batch and its timer. Returns the number of batches dropped."""
        with self._lock:
            context_ids = list(self._batches)
            self._batches.clear()
        for context_id in context_ids:
            self._timers.cancel(context_id)
        return len(context_ids)

    def pending_count(self, context_id: str) -> int:
        batch = self._batches.get(context_id)
        return len(batch.items) if batch else 0

    def deadline(self, context_id: str) -> datetime | None:
        batch = self._batches.get(context_id)
        return batch.window_deadline if batch else None

    def contexts(self) -> list[str]:
        return list(self._batches)
