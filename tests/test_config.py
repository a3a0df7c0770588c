"""Tests for process-wide collaborator defaults."""

from varcell import ManualScheduler, SubprocessRunner, ThreadScheduler, Variable, config


class TestConfig:
    def test_lazy_defaults(self):
        assert isinstance(config.get_scheduler(), ThreadScheduler)
        assert isinstance(config.get_runner(), SubprocessRunner)

    def test_defaults_are_stable(self):
        assert config.get_scheduler() is config.get_scheduler()

    def test_set_and_reset(self):
        sched = ManualScheduler()
        config.set_scheduler(sched)
        assert config.get_scheduler() is sched
        config.reset()
        assert config.get_scheduler() is not sched

    def test_variable_uses_configured_scheduler(self):
        sched = ManualScheduler()
        config.set_scheduler(sched)
        v = Variable(0).poll(10, lambda n: n + 1)
        sched.advance(10)
        assert v.get() == 1

    def test_configured_after_construction(self, runner):
        v = Variable()
        config.set_runner(runner)
        v.watch("monitor")
        assert runner.processes[0].cmd == ["monitor"]
        v.stop_watch()

    def test_explicit_scheduler_wins(self):
        configured, explicit = ManualScheduler(), ManualScheduler()
        config.set_scheduler(configured)
        Variable(0, scheduler=explicit).poll(10, lambda n: n)
        assert explicit.active_timers == 1
        assert configured.active_timers == 0

    def test_other_scheduler_gets_own_runner(self):
        sched = ManualScheduler()
        own = config.get_runner(sched)
        assert isinstance(own, SubprocessRunner)
        assert own is not config.get_runner()

    def test_installed_runner_wins_for_any_scheduler(self, runner):
        config.set_runner(runner)
        assert config.get_runner(ManualScheduler()) is runner

    def test_variable_scheduler_reaches_fallback_runner(self, monkeypatch):
        sched = ManualScheduler()
        built = []

        class RecordingRunner(SubprocessRunner):
            def __init__(self, scheduler=None):
                super().__init__(scheduler)
                built.append(scheduler)

            def subprocess(self, cmd, on_line, on_error):
                return None

        monkeypatch.setattr(config, "SubprocessRunner", RecordingRunner)
        Variable(scheduler=sched).watch("monitor")
        assert built == [sched]
