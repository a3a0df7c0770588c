"""Process-wide defaults for the collaborators a Variable needs.

A Variable built without scheduler=/runner= uses these. Call once at
startup, from the thread that owns your state:

    varcell.config.set_scheduler(ThreadScheduler(marshal=app.call_from_thread))

Nothing is read from files or the environment.
"""

from __future__ import annotations

from varcell.process import ProcessRunner, SubprocessRunner
from varcell.scheduler import Scheduler, ThreadScheduler

_scheduler: Scheduler | None = None
_runner: ProcessRunner | None = None
_default_runner: SubprocessRunner | None = None


def set_scheduler(scheduler: Scheduler | None) -> None:
    """Install the default scheduler. None restores the lazy ThreadScheduler."""
    global _scheduler
    _scheduler = scheduler


def get_scheduler() -> Scheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = ThreadScheduler()
    return _scheduler


def set_runner(runner: ProcessRunner | None) -> None:
    """Install the default process runner. None restores the lazy SubprocessRunner."""
    global _runner
    _runner = runner


def get_runner(scheduler: Scheduler | None = None) -> ProcessRunner:
    """The installed runner, else a SubprocessRunner delivering through scheduler.

    Without an installed runner, a scheduler other than the default gets a
    runner of its own so process results reach it and not the default.
    """
    global _default_runner
    if _runner is not None:
        return _runner
    if scheduler is not None and scheduler is not get_scheduler():
        return SubprocessRunner(scheduler=scheduler)
    if _default_runner is None:
        _default_runner = SubprocessRunner()
    return _default_runner


def reset() -> None:
    """Forget configured defaults. Useful between tests."""
    global _default_runner
    set_scheduler(None)
    set_runner(None)
    _default_runner = None
