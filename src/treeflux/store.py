"""Store — path-addressed value tree with change notification.

A Store owns one value tree and composes the sanitizer, the subscription
dispatcher and the computed registry around it. There is no global instance;
construct one per application.

    store = Store({"count": 0})
    store.subscribe("count", lambda value, path: print(path, value))
    store.set("count", 1)                  # count 1
    store.update("count", lambda c: c + 1)  # count 2

set() takes two call shapes. A mapping is shallow-merged into the root and
announced on the wildcard path; a string path plus a value is a targeted
write announced on that exact path, only when the value actually changed.
The shape is resolved once into a MergeTree or SetPath operation.

Invalid input never raises: it is logged and the call degrades to a no-op or
a default return value.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from treeflux._cycle import DispatchState
from treeflux.action import action as _action
from treeflux.computed import Computed, ComputedRegistry
from treeflux.config import Limits
from treeflux.dispatch import Callback, Dispatcher, Unsubscribe
from treeflux.sanitize import WILDCARD, Sanitizer, differs
from treeflux.stream import ChangeEvent, EventStream

logger = logging.getLogger("treeflux.store")

T = TypeVar("T")

_MISSING = object()


@dataclass(frozen=True, slots=True)
class MergeTree:
    """Shallow-merge a partial tree into the root."""

    partial: Mapping


@dataclass(frozen=True, slots=True)
class SetPath:
    """Write one value at a dot-delimited path."""

    path: str
    value: Any


SetOperation = MergeTree | SetPath


def as_operation(path_or_partial: object, value: Any = None) -> SetOperation | None:
    """Resolve the two set() call shapes. None when neither applies."""
    if isinstance(path_or_partial, Mapping):
        return MergeTree(path_or_partial)
    if isinstance(path_or_partial, str):
        return SetPath(path_or_partial, value)
    return None


def _index(key: str) -> int | None:
    # str.isdigit() also accepts non-ASCII digits that int() refuses
    return int(key) if key.isascii() and key.isdigit() else None


def _child(node: Any, key: str) -> Any:
    if isinstance(node, dict):
        return node.get(key, _MISSING)
    if isinstance(node, (list, tuple)):
        index = _index(key)
        if index is not None and index < len(node):
            return node[index]
    return _MISSING


def _assign(node: Any, key: str, value: Any) -> bool:
    if isinstance(node, dict):
        node[key] = value
        return True
    if isinstance(node, list):
        index = _index(key)
        if index is not None and index < len(node):
            node[index] = value
            return True
    return False


class Store:
    """Reactive, path-addressed state container.

    Args:
        initial: Starting tree. Sanitized on the way in.
        limits: Depth, subscriber and per-burst ceilings.

    """

    def __init__(self, initial: Mapping | None = None, *, limits: Limits | None = None) -> None:
        self.limits = limits or Limits()
        self.events: EventStream = EventStream()
        self._sanitizer = Sanitizer(self.limits.max_depth)
        self._tree: dict = self._sanitize_tree(initial)
        self._dispatcher = Dispatcher(
            self.get,
            lambda: self._tree,
            limits=self.limits,
            sanitizer=self._sanitizer,
            events=self.events,
        )
        self._computed = ComputedRegistry(self._dispatcher.subscribe)

    # --- Reads ---

    def get(self, path: str | None = None, default: Any = None) -> Any:
        """Read the value at path, or the whole tree when path is omitted.

        Returns default as soon as a segment is missing, lands on a
        non-container, or is rejected by the sanitizer.
        """
        if path is None:
            return self._tree
        keys = self._sanitizer.split_path(path)
        if keys is None:
            return default
        node: Any = self._tree
        for key in keys:
            node = _child(node, key)
            if node is _MISSING:
                return default
        return node

    def snapshot(self) -> dict:
        """Deep copy of the whole tree, detached from the store."""
        return copy.deepcopy(self._tree)

    @property
    def dispatch_state(self) -> DispatchState:
        return self._dispatcher.state

    @property
    def subscriber_count(self) -> int:
        return self._dispatcher.subscriber_count

    # --- Writes ---

    def set(self, path_or_partial: str | Mapping, value: Any = None) -> None:
        operation = as_operation(path_or_partial, value)
        if isinstance(operation, MergeTree):
            self._merge(operation.partial)
        elif isinstance(operation, SetPath):
            self._set_path(operation.path, operation.value)
        else:
            logger.error("Invalid path_or_partial type: %s", type(path_or_partial).__name__)

    def update(self, path: str, updater: Callable[[Any], Any]) -> None:
        """Read-modify-write: set(path, updater(get(path)))."""
        if path == WILDCARD:
            logger.warning("Cannot update the wildcard path")
            return
        if self._sanitizer.split_path(path) is None:
            return
        self.set(path, updater(self.get(path)))

    def restore(self, snapshot: Mapping) -> None:
        """Replace the tree with a copy of snapshot and notify wildcard subscribers."""
        if not isinstance(snapshot, Mapping):
            logger.error("Snapshot must be a mapping, got %s", type(snapshot).__name__)
            return
        self._tree = self._sanitize_tree(copy.deepcopy(snapshot))
        self.notify()

    def reset(self, new_tree: Mapping | None = None) -> None:
        """Replace the tree, drop every computed entry and notify wildcard subscribers."""
        self._tree = self._sanitize_tree(new_tree)
        self._computed.clear()
        self.notify()

    def notify(self, changed_path: str = WILDCARD) -> None:
        self._dispatcher.notify(changed_path)

    # --- Observers ---

    def subscribe(self, path_or_callback: str | Callback, callback: Callback | None = None) -> Unsubscribe:
        return self._dispatcher.subscribe(path_or_callback, callback)

    def computed(self, name: str, compute_fn: Callable[[], T], dependencies=()) -> Computed[T]:
        return self._computed.computed(name, compute_fn, dependencies)

    def get_computed(self, name: str) -> Any:
        return self._computed.get_computed(name)

    def dispose_computed(self, name: str) -> None:
        self._computed.dispose(name)

    def changes(self, path: str | None = None) -> EventStream[ChangeEvent]:
        """ChangeEvents from ``events``, optionally limited to one path.

        The result is derived from ``events``; dispose it to detach.
        """
        return self.events.filter(
            lambda event: isinstance(event, ChangeEvent) and (path is None or event.path == path)
        )

    def action(self, name: str, fn: Callable | None = None):
        """Wrap fn as a named action: ``fn(store, *args)``, announced on ``events``.

        Usable as ``store.action("name", fn)`` or as a decorator,
        ``@store.action("name")``.
        """
        decorate = _action(self, name)
        return decorate if fn is None else decorate(fn)

    # --- Internals ---

    def _sanitize_tree(self, tree: object) -> dict:
        if tree is None:
            return {}
        if not isinstance(tree, Mapping):
            logger.error("State tree must be a mapping, got %s", type(tree).__name__)
            return {}
        return self._sanitizer.sanitize_value(tree)

    def _merge(self, partial: Mapping) -> None:
        sanitized = self._sanitizer.sanitize_value(partial)
        self._tree = {**self._tree, **sanitized}
        self.notify()

    def _set_path(self, path: str, value: Any) -> None:
        if path == WILDCARD:
            logger.warning("Cannot set the wildcard path; use set(mapping) to merge")
            return
        keys = self._sanitizer.split_path(path)
        if keys is None:
            return

        *parents, last = keys
        node: Any = self._tree
        for key in parents:
            child = _child(node, key)
            if isinstance(child, tuple):
                logger.warning("Cannot write through the tuple at %r in %r", key, path)
                return
            if not isinstance(child, (dict, list)):
                child = {}
                if not _assign(node, key, child):
                    logger.warning("Cannot create %r under a %s in %r", key, type(node).__name__, path)
                    return
            node = child

        old = _child(node, last)
        new = self._sanitizer.sanitize_value(value)
        if not _assign(node, last, new):
            logger.warning("Cannot assign %r under a %s in %r", last, type(node).__name__, path)
            return
        if old is _MISSING or differs(old, new):
            self.notify(path)

    def __repr__(self) -> str:
        return f"Store({self._tree!r})"
