"""Textual integration for treeflux. Opt-in — requires textual.

Bridges store subscriptions to a Textual app: callbacks are skipped while the
app is not running or is paused for widget replacement, cross-thread calls
are marshaled through ``app.call_from_thread``, and ``NoMatches`` from widget
queries is swallowed. Textual coupling stays in this module.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

# Keyed by id(app); an id is present only inside a pause() block.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded callbacks during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def subscribe(app, store, path_or_callback, callback=None):
    """store.subscribe() that safely bridges to Textual widgets.

    Same call shapes as Store.subscribe; returns its unsubscribe function.

    Usage:
        unsubscribe = stx.subscribe(app, store, "count", lambda value, path: (
            app.query_one("#count", Label).update(str(value))
        ))
    """
    if callback is None and callable(path_or_callback):
        path, fn = "*", path_or_callback
    else:
        path, fn = path_or_callback, callback
    _main = threading.get_ident()

    def _guarded(value, changed_path):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, value, changed_path)
        else:
            _safe(value, changed_path)

    def _safe(value, changed_path):
        try:
            fn(value, changed_path)
        except NoMatches:
            pass

    if not callable(fn):
        # Let the store report and refuse it
        return store.subscribe(path, fn)
    return store.subscribe(path, _guarded)
