"""Tests for watch() — long-lived processes feeding lines into a Variable."""

import pytest

from varcell import ProcessError, Variable


class TestWatch:
    def test_lines_set_value(self, sched, runner):
        v = Variable(scheduler=sched, runner=runner).watch("tail -f /var/log/app.log")
        proc = runner.processes[0]
        assert proc.cmd == ["tail", "-f", "/var/log/app.log"]
        proc.emit("first")
        proc.emit("second")
        assert v.get() == "second"

    def test_transform_receives_previous(self, sched, runner):
        v = Variable([], scheduler=sched, runner=runner).watch(
            ["journalctl", "-f"], lambda line, prev: prev + [line]
        )
        proc = runner.processes[0]
        proc.emit("a")
        proc.emit("b")
        assert v.get() == ["a", "b"]

    def test_is_watching(self, sched, runner):
        v = Variable(scheduler=sched, runner=runner).watch("monitor")
        assert v.is_watching()
        assert not v.is_polling()

    def test_stop_watch_kills_once(self, sched, runner):
        v = Variable(scheduler=sched, runner=runner).watch("monitor")
        v.stop_watch()
        v.stop_watch()
        assert runner.processes[0].kill_count == 1
        assert not v.is_watching()

    def test_stop_watch_without_driver(self, sched, runner):
        Variable(scheduler=sched, runner=runner).stop_watch()

    def test_lines_after_stop_ignored(self, sched, runner):
        v = Variable("idle", scheduler=sched, runner=runner).watch("monitor")
        v.stop_watch()
        runner.processes[0].emit("late")
        assert v.get() == "idle"

    def test_error_routed(self, sched, runner):
        errors = []
        v = Variable(scheduler=sched, runner=runner).watch("monitor").on_error(errors.append)
        err = ProcessError(["monitor"], "permission denied", stderr="permission denied")
        runner.processes[0].fail(err)
        assert errors == [err]
        assert v.get() is None

    def test_transform_error_routed(self, sched, runner):
        errors = []
        v = Variable(0, scheduler=sched, runner=runner).watch("monitor", lambda line, _: int(line))
        v.on_error(errors.append)
        runner.processes[0].emit("NaN?")
        assert isinstance(errors[0], ValueError)
        assert v.get() == 0

    def test_rewatch_replaces_process(self, sched, runner):
        v = Variable(scheduler=sched, runner=runner)
        v.watch("first")
        v.watch("second")
        old, new = runner.processes
        assert old.killed
        assert not new.killed
        old.emit("stale")
        new.emit("fresh")
        assert v.get() == "fresh"

    def test_start_watch_resumes(self, sched, runner):
        v = Variable(scheduler=sched, runner=runner).watch("monitor")
        v.stop_watch()
        v.start_watch()
        v.start_watch()  # already watching: no second process
        assert len(runner.processes) == 2
        runner.processes[1].emit("back")
        assert v.get() == "back"

    def test_empty_command_rejected(self, sched, runner):
        with pytest.raises(ValueError):
            Variable(scheduler=sched, runner=runner).watch([])


class TestDriverExclusivity:
    def test_watch_stops_poll(self, sched, runner):
        """Polling every 10, watch attached at 5: no tick at 10 or later."""
        v = Variable(0, scheduler=sched, runner=runner).poll(10, lambda n: n + 1)
        sched.advance(5)
        v.watch("monitor")
        sched.advance(100)
        assert v.get() == 0
        assert sched.active_timers == 0
        assert v.is_watching()
        assert not v.is_polling()

    def test_poll_stops_watch(self, sched, runner):
        v = Variable(0, scheduler=sched, runner=runner).watch("monitor")
        v.poll(10, lambda n: n + 1)
        proc = runner.processes[0]
        assert proc.killed
        proc.emit("ignored")
        sched.advance(10)
        assert v.get() == 1
        assert v.is_polling()
        assert not v.is_watching()

    def test_start_poll_stops_watch(self, sched, runner):
        v = Variable(0, scheduler=sched, runner=runner).poll(10, lambda n: n + 1)
        v.watch("monitor")
        v.start_poll()
        assert runner.processes[0].killed
        assert v.is_polling()

    def test_drop_kills_process(self, sched, runner):
        v = Variable(scheduler=sched, runner=runner).watch("monitor")
        v.drop()
        proc = runner.processes[0]
        assert proc.kill_count == 1
        proc.emit("late")
        sched.run_idle()
        assert v.get() is None
