"""Push-based event stream with operator chaining.

Each Store owns one stream and pushes a ChangeEvent after every notification
pass and an ActionEvent after every action. map/filter return new streams
(immutable chain). dispose() tears down the entire chain.

A listener that raises is logged and skipped; the emitter never sees the
exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger("treeflux.stream")

T = TypeVar("T")
U = TypeVar("U")

Disposer = Callable[[], None]


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """``state:change``: one notification pass has completed."""

    path: str
    state: dict


@dataclass(frozen=True, slots=True)
class ActionEvent:
    """``state:action``: a named action returned successfully."""

    name: str
    args: tuple
    result: Any


class EventStream(Generic[T]):
    """Push-based event stream with operator chaining."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[T], None]] = []
        # Streams derived through map/filter, torn down with this one
        self._derived: list[EventStream] = []
        self._detach: Disposer | None = None
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def emit(self, value: T) -> None:
        """Deliver value to every listener registered at the time of the call."""
        if self._disposed:
            return
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Error in event stream listener")

    def subscribe(self, callback: Callable[[T], None]) -> Disposer:
        """Add a listener. The returned function removes it and is safe to call twice."""
        self._listeners.append(callback)
        return lambda: _discard(self._listeners, callback)

    def map(self, fn: Callable[[T], U]) -> EventStream[U]:
        """Derived stream carrying fn(value) for each value."""
        return self._derive(lambda out, value: out.emit(fn(value)))

    def filter(self, fn: Callable[[T], bool]) -> EventStream[T]:
        """Derived stream carrying only the values fn accepts."""
        return self._derive(lambda out, value: out.emit(value) if fn(value) else None)

    def dispose(self) -> None:
        """Stop emitting, drop listeners, and dispose every derived stream."""
        self._disposed = True
        self._listeners.clear()
        derived, self._derived = self._derived, []
        for stream in derived:
            stream.dispose()
        if self._detach is not None:
            detach, self._detach = self._detach, None
            detach()

    def _derive(self, forward: Callable[[EventStream, T], None]) -> EventStream:
        out: EventStream = EventStream()
        self._derived.append(out)
        unsubscribe = self.subscribe(lambda value: forward(out, value))

        def detach() -> None:
            unsubscribe()
            _discard(self._derived, out)

        out._detach = detach
        return out


def _discard(items: list, item: object) -> None:
    if item in items:
        items.remove(item)
