"""Subscription dispatcher — subscriber registry plus reentrancy and storm control.

notify(path) runs one pass: subscribers registered on exactly that path, in
registration order, then wildcard subscribers. A callback that mutates the
store while a pass is running does not recurse; its path is queued on the
NotificationCycle and replayed in a follow-up pass once the current pass
unwinds to the outermost notify(). Every pass is charged against the burst
budget, so a subscriber that keeps writing to the path it watches is cut off
instead of looping forever.

Callback exceptions stop at this boundary. Errors that look like a broken
observer (TypeError, NameError, AttributeError) also evict the subscriber,
since it would fail again on every future notification.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable

from treeflux._cycle import DispatchState, NotificationCycle
from treeflux.config import Limits
from treeflux.sanitize import WILDCARD, Sanitizer
from treeflux.stream import ChangeEvent, EventStream

logger = logging.getLogger("treeflux.dispatch")

Callback = Callable[[Any, str], None]
Unsubscribe = Callable[[], None]

DEFECT_ERRORS = (TypeError, NameError, AttributeError)

# Process-unique subscriber ids
_ids = itertools.count(1)


@dataclass(frozen=True, slots=True)
class Subscriber:
    id: int
    path: str
    callback: Callback


def _noop() -> None:
    pass


class Dispatcher:
    """Owns the subscriber registry and the notification cycle.

    Args:
        resolve: Returns the current value at a path.
        tree: Returns the whole value tree, handed to wildcard subscribers.
        limits: Subscriber ceiling and per-burst budget.
        sanitizer: Validates subscription paths.
        events: Receives a ChangeEvent after each pass.

    """

    def __init__(
        self,
        resolve: Callable[[str], Any],
        tree: Callable[[], dict],
        *,
        limits: Limits | None = None,
        sanitizer: Sanitizer | None = None,
        events: EventStream | None = None,
    ) -> None:
        self.limits = limits or Limits()
        self._resolve = resolve
        self._tree = tree
        self._sanitizer = sanitizer or Sanitizer(self.limits.max_depth)
        self._events = events
        self._cycle = NotificationCycle(self.limits.max_updates_per_cycle)
        # path -> {subscriber id -> Subscriber}; dicts keep registration order
        self._subscribers: dict[str, dict[int, Subscriber]] = {}
        self._count = 0

    @property
    def state(self) -> DispatchState:
        return self._cycle.state

    @property
    def subscriber_count(self) -> int:
        return self._count

    def subscribe(self, path_or_callback: str | Callback, callback: Callback | None = None) -> Unsubscribe:
        """Register a callback on a path, or on every change when given only a callback.

        Returns an idempotent unsubscribe function. Refused registrations
        get a no-op one.
        """
        if callable(path_or_callback) and callback is None:
            path, cb = WILDCARD, path_or_callback
        elif isinstance(path_or_callback, str):
            path, cb = path_or_callback, callback
        else:
            logger.error("Invalid subscription path type: %s", type(path_or_callback).__name__)
            return _noop

        if not callable(cb):
            logger.error("Callback for %r must be callable", path)
            return _noop
        if path != WILDCARD and self._sanitizer.split_path(path) is None:
            return _noop
        if self._count >= self.limits.max_subscribers:
            logger.warning(
                "Maximum subscribers (%d) reached. Subscription to %r ignored.",
                self.limits.max_subscribers, path,
            )
            return _noop

        subscriber = Subscriber(next(_ids), path, cb)
        self._subscribers.setdefault(path, {})[subscriber.id] = subscriber
        self._count += 1

        def unsubscribe() -> None:
            self._remove(subscriber)

        return unsubscribe

    def notify(self, changed_path: str = WILDCARD) -> None:
        """Notify subscribers of a change at changed_path.

        Inside a running pass this only queues the path.
        """
        cycle = self._cycle
        if cycle.is_dispatching:
            cycle.defer(changed_path)
            return

        try:
            if not self._run_pass(changed_path):
                return
            batch = cycle.take_pending()
            while batch:
                for path in batch:
                    if not self._run_pass(path):
                        return
                batch = cycle.take_pending()
        finally:
            cycle.reset()

    def clear(self) -> None:
        """Drop every subscriber."""
        self._subscribers.clear()
        self._count = 0

    def _run_pass(self, path: str) -> bool:
        cycle = self._cycle
        if not cycle.charge():
            logger.error(
                "Maximum updates per cycle (%d) exceeded at %r. Possible infinite loop "
                "detected; remaining notifications dropped.",
                cycle.max_updates, path,
            )
            return False

        cycle.begin()
        try:
            if path != WILDCARD:
                self._notify_scope(path, path, self._resolve)
            self._notify_scope(WILDCARD, path, lambda _: self._tree())
            if self._events is not None:
                self._events.emit(ChangeEvent(path, self._tree()))
        finally:
            cycle.end()
        return True

    def _notify_scope(self, scope: str, changed_path: str, value_of: Callable[[str], Any]) -> None:
        bucket = self._subscribers.get(scope)
        if not bucket:
            return
        for subscriber in list(bucket.values()):
            # Unsubscribed by an earlier callback in this pass
            live = self._subscribers.get(scope)
            if live is None or subscriber.id not in live:
                continue
            try:
                subscriber.callback(value_of(changed_path), changed_path)
            except Exception as exc:
                logger.exception("Error in state subscriber for path %r", changed_path)
                if isinstance(exc, DEFECT_ERRORS):
                    self._remove(subscriber)
                    logger.warning(
                        "Removed problematic subscriber on %r after %s",
                        scope, type(exc).__name__,
                    )

    def _remove(self, subscriber: Subscriber) -> None:
        bucket = self._subscribers.get(subscriber.path)
        if bucket is None or bucket.pop(subscriber.id, None) is None:
            return
        self._count -= 1
        if not bucket:
            del self._subscribers[subscriber.path]
