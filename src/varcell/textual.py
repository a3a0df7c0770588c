"""Textual integration for varcell. Opt-in — requires textual.

TextualScheduler runs Variable timers and deferred disposal on a Textual
app's own event loop. bind() connects a Variable or Binding to a widget
effect with the guards widget code needs.

Textual coupling stays in this module; the core never imports textual.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

# Module-owned pause state — keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


class _TextualTimer:
    __slots__ = ("_timer",)

    def __init__(self, timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.stop()


class TextualScheduler:
    """Scheduler over a Textual App: set_interval, call_later, call_from_thread.

    Construct it on the app's thread (e.g. in on_mount), then:
        varcell.config.set_scheduler(TextualScheduler(self))
    """

    def __init__(self, app) -> None:
        self._app = app
        self._main = threading.get_ident()

    def interval(self, ms, fn):
        if ms <= 0:
            raise ValueError(f"interval must be positive, got {ms!r}")
        return _TextualTimer(self._app.set_interval(ms / 1000, fn))

    def idle(self, fn) -> None:
        self._app.call_later(fn)

    def call_threadsafe(self, fn) -> None:
        if threading.get_ident() != self._main:
            self._app.call_from_thread(fn)
        else:
            fn()


@contextmanager
def pause(app):
    """Suspend bound effects during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def bind(app, source, effect, *, fire_immediately=False):
    """Subscribe a widget effect to a Variable or Binding.

    Skips the effect during pause/not-running, catches NoMatches from
    widget queries, and marshals cross-thread calls via call_from_thread.
    Returns the unsubscribe function.
    """
    _main = threading.get_ident()

    def _guarded(value):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, value)
        else:
            _safe(value)

    def _safe(value):
        try:
            effect(value)
        except NoMatches:
            pass

    if fire_immediately:
        _guarded(source.get())
    return source.subscribe(_guarded)
