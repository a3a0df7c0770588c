"""Shared test fixtures for varcell."""

from __future__ import annotations

import pytest

from varcell import ManualScheduler, config


class PendingExec:
    """One exec_async() call waiting for the test to resolve it."""

    def __init__(self, cmd, on_success, on_error):
        self.cmd = cmd
        self.on_success = on_success
        self.on_error = on_error

    def succeed(self, output):
        self.on_success(output)

    def fail(self, err):
        self.on_error(err)


class FakeProcess:
    """A long-lived process the test feeds lines into."""

    def __init__(self, cmd, on_line, on_error):
        self.cmd = cmd
        self.on_line = on_line
        self.on_error = on_error
        self.kill_count = 0

    @property
    def killed(self):
        return self.kill_count > 0

    def emit(self, line):
        self.on_line(line)

    def fail(self, err):
        self.on_error(err)

    def kill(self):
        self.kill_count += 1


class FakeRunner:
    """ProcessRunner that records calls instead of spawning anything."""

    def __init__(self):
        self.execs: list[PendingExec] = []
        self.processes: list[FakeProcess] = []

    def exec_async(self, cmd, on_success, on_error):
        self.execs.append(PendingExec(cmd, on_success, on_error))

    def subprocess(self, cmd, on_line, on_error):
        process = FakeProcess(cmd, on_line, on_error)
        self.processes.append(process)
        return process


@pytest.fixture(autouse=True)
def _reset_config():
    config.reset()
    yield
    config.reset()


@pytest.fixture
def sched():
    return ManualScheduler()


@pytest.fixture
def runner():
    return FakeRunner()
