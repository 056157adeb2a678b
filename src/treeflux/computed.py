"""Computed values — derived state recomputed when declared paths change.

A computed entry wraps a function and a list of dependency paths. It is
evaluated once on registration and cached; each dependency path gets an
ordinary dispatcher subscription that re-evaluates the function and replaces
the cache when the result differs.

From the dispatcher's point of view a computed entry is just another
subscriber, so a failing recompute is logged (and possibly evicted) like any
other callback.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, Iterable, TypeVar

from treeflux.sanitize import differs
from treeflux.stream import EventStream

logger = logging.getLogger("treeflux.computed")

T = TypeVar("T")

_UNSET = object()


class _Entry:
    __slots__ = ("name", "compute_fn", "dependencies", "cached", "unsubscribers", "changes", "disposed")

    def __init__(self, name: str, compute_fn: Callable[[], Any], dependencies: tuple[str, ...]) -> None:
        self.name = name
        self.compute_fn = compute_fn
        self.dependencies = dependencies
        self.cached: Any = _UNSET
        self.unsubscribers: list[Callable[[], None]] = []
        self.changes: EventStream = EventStream()
        self.disposed = False


class Computed(Generic[T]):
    """Accessor for one computed entry. Call it to read the cached value."""

    __slots__ = ("_entry", "_registry")

    def __init__(self, entry: _Entry, registry: ComputedRegistry) -> None:
        self._entry = entry
        self._registry = registry

    @property
    def name(self) -> str:
        return self._entry.name

    @property
    def changes(self) -> EventStream[T]:
        """Stream of new values, emitted each time the cache changes."""
        return self._entry.changes

    @property
    def disposed(self) -> bool:
        return self._entry.disposed

    def __call__(self) -> T | None:
        cached = self._entry.cached
        return None if cached is _UNSET else cached

    get = __call__

    def dispose(self) -> None:
        """Unsubscribe from all dependencies and drop the cached value."""
        self._registry._dispose_entry(self._entry)

    def __repr__(self) -> str:
        entry = self._entry
        state = "disposed" if entry.disposed else f"cached={entry.cached!r}"
        return f"Computed({entry.name!r}, {state})"


class ComputedRegistry:
    """Named computed entries kept up to date through dispatcher subscriptions."""

    def __init__(self, subscribe: Callable[..., Callable[[], None]]) -> None:
        self._subscribe = subscribe
        self._entries: dict[str, _Entry] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def computed(
        self,
        name: str,
        compute_fn: Callable[[], T],
        dependencies: Iterable[str] = (),
    ) -> Computed[T]:
        """Register compute_fn under name, recomputed whenever a dependency path changes.

        Registering an existing name replaces the old entry.

        Usage:
            store = Store({"first": "Ada", "last": "Lovelace"})
            full = store.computed(
                "full",
                lambda: f"{store.get('first')} {store.get('last')}",
                ["first", "last"],
            )
            full()  # "Ada Lovelace"
            store.set("first", "Grace")
            full()  # "Grace Lovelace"
        """
        if isinstance(dependencies, str):
            dependencies = (dependencies,)
        entry = _Entry(name, compute_fn, tuple(dependencies))
        handle: Computed[T] = Computed(entry, self)

        if not isinstance(name, str) or not name.strip():
            logger.error("Computed name must be a non-empty string, got %r", name)
            entry.disposed = True
            return handle
        if name in self._entries:
            logger.debug("Replacing computed %r", name)
            self.dispose(name)

        try:
            entry.cached = compute_fn()
        except Exception:
            logger.exception("Initial evaluation of computed %r failed", name)
            entry.disposed = True
            return handle

        self._entries[name] = entry
        for dep in entry.dependencies:
            entry.unsubscribers.append(
                self._subscribe(dep, lambda _value, _path, e=entry: self._recompute(e))
            )
        return handle

    def get_computed(self, name: str) -> Any:
        entry = self._entries.get(name)
        if entry is None or entry.cached is _UNSET:
            return None
        return entry.cached

    def dispose(self, name: str) -> None:
        """Tear down one entry. Unknown names are ignored."""
        entry = self._entries.get(name)
        if entry is not None:
            self._dispose_entry(entry)

    def clear(self) -> None:
        """Dispose every entry: cached values and dependency subscriptions."""
        for entry in list(self._entries.values()):
            self._dispose_entry(entry)

    def _recompute(self, entry: _Entry) -> None:
        if entry.disposed:
            return
        new = entry.compute_fn()
        old = entry.cached
        if differs(old, new):
            entry.cached = new
            entry.changes.emit(new)

    def _dispose_entry(self, entry: _Entry) -> None:
        if entry.disposed:
            return
        entry.disposed = True
        if self._entries.get(entry.name) is entry:
            del self._entries[entry.name]
        for unsubscribe in entry.unsubscribers:
            unsubscribe()
        entry.unsubscribers.clear()
        entry.cached = _UNSET
        entry.changes.dispose()
