"""Notification cycle — the transient record of one burst.

A burst is one outermost notify() together with the deferred passes it
schedules. While a pass is running, notifications raised by callbacks are
queued here instead of recursing; the dispatcher drains the queue once the
pass unwinds.

Budget: every pass charges one unit. When the budget runs out the burst is
abandoned, which is what stops subscriber feedback loops.
"""

from __future__ import annotations

import enum


class DispatchState(enum.Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    DEFERRED = "deferred"


class NotificationCycle:
    """Dispatch status, pending paths and per-burst call budget."""

    __slots__ = ("max_updates", "calls_this_cycle", "_dispatching", "_draining", "_pending")

    def __init__(self, max_updates: int = 100) -> None:
        self.max_updates = max_updates
        self.calls_this_cycle = 0
        self._dispatching = False
        self._draining = False
        # dict as an insertion-ordered set
        self._pending: dict[str, None] = {}

    @property
    def is_dispatching(self) -> bool:
        return self._dispatching

    @property
    def state(self) -> DispatchState:
        if not self._dispatching and not self._draining:
            return DispatchState.IDLE
        if self._draining:
            return DispatchState.DEFERRED
        return DispatchState.DISPATCHING

    @property
    def pending_paths(self) -> list[str]:
        return list(self._pending)

    def begin(self) -> None:
        """Enter a pass. Passes never nest."""
        self._dispatching = True

    def end(self) -> None:
        self._dispatching = False

    def defer(self, path: str) -> None:
        """Queue a path raised during a pass. Duplicates coalesce."""
        self._pending[path] = None

    def take_pending(self) -> list[str]:
        """Remove and return queued paths in insertion order."""
        batch = list(self._pending)
        self._pending.clear()
        self._draining = bool(batch)
        return batch

    def charge(self) -> bool:
        """Spend one unit of budget. False once the burst is over budget."""
        self.calls_this_cycle += 1
        return self.calls_this_cycle <= self.max_updates

    def reset(self) -> None:
        """Return to idle with an empty queue and a fresh budget."""
        self.calls_this_cycle = 0
        self._dispatching = False
        self._draining = False
        self._pending.clear()
