"""Actions — named mutation functions announced on the store's event stream.

An action receives the store as its first argument. When it returns, an
ActionEvent carrying its name, arguments and result is pushed to
``store.events``. When it raises, the error is logged and re-raised: the
action body is the caller's own code, not a subscriber.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Callable, Concatenate, ParamSpec, TypeVar

from treeflux.stream import ActionEvent

if TYPE_CHECKING:
    from treeflux.store import Store

logger = logging.getLogger("treeflux.action")

P = ParamSpec("P")
R = TypeVar("R")


def action(store: Store, name: str) -> Callable[[Callable[Concatenate[Store, P], R]], Callable[P, R]]:
    """Decorator factory binding fn to store under name.

    Usage:
        store = Store({"todos": []})

        @action(store, "add_todo")
        def add_todo(store, text):
            store.update("todos", lambda todos: [*todos, text])
            return len(store.get("todos"))

        add_todo("write tests")  # 1, and an ActionEvent on store.events
    """

    def decorate(fn: Callable[Concatenate[Store, P], R]) -> Callable[P, R]:
        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                result = fn(store, *args, **kwargs)
            except Exception:
                logger.exception("Error in action %s", name)
                raise
            store.events.emit(ActionEvent(name, args, result))
            return result

        return wrapper

    return decorate
