"""Tests for observe() — Variables driven by signals on other objects."""

import pytest

from varcell import EventEmitter, Variable, VariableDroppedError


class TestObserve:
    def test_signal_with_callback(self):
        battery = EventEmitter()
        level = Variable(0).observe(battery, "charged", lambda pct: pct)
        battery.emit("charged", 80)
        assert level.get() == 80

    def test_callback_receives_all_args(self):
        window = EventEmitter()
        size = Variable().observe(window, "resized", lambda w, h: f"{w}x{h}")
        window.emit("resized", 800, 600)
        assert size.get() == "800x600"

    def test_other_signals_ignored(self):
        battery = EventEmitter()
        level = Variable(0).observe(battery, "charged", lambda pct: pct)
        battery.emit("unplugged", 5)
        assert level.get() == 0

    def test_signal_without_callback_rereads(self):
        source = EventEmitter()
        v = Variable("same")
        log = []
        v.subscribe(log.append)
        v.observe(source, "ping")
        source.emit("ping")
        assert v.get() == "same"
        assert log == []

    def test_many_sources_one_function(self):
        a, b = EventEmitter(), EventEmitter()
        count = iter(range(1, 100))
        v = Variable(0).observe([(a, "tick"), (b, "tock")], lambda *_: next(count))
        a.emit("tick")
        b.emit("tock")
        a.emit("tock")  # not connected on a
        assert v.get() == 2

    def test_many_sources_with_callback_argument(self):
        a = EventEmitter()
        v = Variable().observe([(a, "changed")], None, lambda value: value.upper())
        a.emit("changed", "hi")
        assert v.get() == "HI"

    def test_notifies_subscribers(self):
        source = EventEmitter()
        v = Variable(0).observe(source, "n", lambda n: n)
        log = []
        v.subscribe(log.append)
        source.emit("n", 1)
        source.emit("n", 1)
        source.emit("n", 2)
        assert log == [1, 2]

    def test_drop_disconnects(self, sched):
        a, b = EventEmitter(), EventEmitter()
        v = Variable(0, scheduler=sched)
        v.observe(a, "x", lambda: 1)
        v.observe([(b, "y")], lambda: 2)
        v.drop()
        assert a.handler_count() == 0
        assert b.handler_count() == 0
        a.emit("x")
        assert v.get() == 0

    def test_observe_after_drop_raises(self, sched):
        v = Variable(0, scheduler=sched)
        v.drop()
        with pytest.raises(VariableDroppedError):
            v.observe(EventEmitter(), "x")


class TestEventEmitter:
    def test_connect_emit(self):
        e = EventEmitter()
        received = []
        e.connect("a", lambda *args: received.append(args))
        e.emit("a", 1, 2)
        assert received == [(1, 2)]

    def test_disconnect_idempotent(self):
        e = EventEmitter()
        handler_id = e.connect("a", lambda: None)
        e.disconnect(handler_id)
        e.disconnect(handler_id)
        assert e.handler_count("a") == 0

    def test_handler_count_by_name(self):
        e = EventEmitter()
        e.connect("a", lambda: None)
        e.connect("b", lambda: None)
        assert e.handler_count("a") == 1
        assert e.handler_count() == 2
