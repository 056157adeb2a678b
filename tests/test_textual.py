"""Tests for treeflux.textual — Textual integration layer."""

import threading

import pytest
from textual.css.query import NoMatches

from treeflux import Store
from treeflux import textual as stx


class _MockApp:
    """Minimal mock matching the Textual App interface stx needs."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self._call_from_thread_log = []

    def call_from_thread(self, fn, *args):
        self._call_from_thread_log.append((fn, args))
        fn(*args)


class TestSubscribe:
    def test_fires_when_safe(self):
        app = _MockApp()
        s = Store()
        effects = []
        stx.subscribe(app, s, "count", lambda value, path: effects.append(value))
        s.set("count", 2)
        assert effects == [2]

    def test_wildcard_form(self):
        app = _MockApp()
        s = Store()
        paths = []
        stx.subscribe(app, s, lambda tree, path: paths.append(path))
        s.set("a", 1)
        assert paths == ["a"]

    def test_skips_when_not_running(self):
        app = _MockApp(is_running=False)
        s = Store()
        effects = []
        stx.subscribe(app, s, "count", lambda value, path: effects.append(value))
        s.set("count", 2)
        assert effects == []

    def test_skips_during_pause(self):
        app = _MockApp()
        s = Store()
        effects = []
        stx.subscribe(app, s, "count", lambda value, path: effects.append(value))
        with stx.pause(app):
            s.set("count", 2)
        s.set("count", 3)
        assert effects == [3]

    def test_catches_nomatch(self):
        """NoMatches from widget queries are silently swallowed."""
        app = _MockApp()
        s = Store()

        def _raise_nomatch(value, path):
            raise NoMatches("StatusFooter")

        stx.subscribe(app, s, "count", _raise_nomatch)
        s.set("count", 2)
        assert s.subscriber_count == 1

    def test_real_errors_reach_store_handling(self):
        """Other exceptions go through the store's subscriber error handling."""
        app = _MockApp()
        s = Store()

        def _raise_type_error(value, path):
            raise TypeError("boom")

        stx.subscribe(app, s, "count", _raise_type_error)
        s.set("count", 2)
        assert s.subscriber_count == 0

    def test_unsubscribe(self):
        app = _MockApp()
        s = Store()
        effects = []
        unsubscribe = stx.subscribe(app, s, "count", lambda value, path: effects.append(value))
        s.set("count", 2)
        unsubscribe()
        unsubscribe()
        s.set("count", 3)
        assert effects == [2]

    def test_missing_callback_refused(self):
        app = _MockApp()
        s = Store()
        stx.subscribe(app, s, "count")()
        assert s.subscriber_count == 0

    def test_thread_marshal(self):
        """Triggers from a background thread use call_from_thread."""
        app = _MockApp()
        s = Store()
        effects = []
        stx.subscribe(app, s, "count", lambda value, path: effects.append(value))

        t = threading.Thread(target=lambda: s.set("count", 2))
        t.start()
        t.join()

        assert effects == [2]
        assert len(app._call_from_thread_log) == 1


class TestPause:
    def test_pause_restores_on_exception(self):
        app = _MockApp()
        assert stx.is_safe(app)

        with pytest.raises(RuntimeError):
            with stx.pause(app):
                assert not stx.is_safe(app)
                raise RuntimeError("oops")

        assert stx.is_safe(app)

    def test_pause_does_not_mutate_app(self):
        app = _MockApp()
        attrs_before = set(vars(app))
        with stx.pause(app):
            attrs_during = set(vars(app))
        assert attrs_before == attrs_during
        assert attrs_before == set(vars(app))

    def test_multiple_apps_independent(self):
        app_a = _MockApp()
        app_b = _MockApp()
        with stx.pause(app_a):
            assert not stx.is_safe(app_a)
            assert stx.is_safe(app_b)
