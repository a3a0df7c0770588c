"""Process runners — out-of-process sources for poll() and watch().

Two modes:
- exec_async(cmd, on_success, on_error): run once, report stdout or failure.
- subprocess(cmd, on_line, on_error): long-lived child; every stdout line is
  reported until the returned handle is killed.

SubprocessRunner does the blocking work in daemon threads and hands every
callback back through its scheduler's call_threadsafe(), so Variables only
ever see results on their own thread.
"""

from __future__ import annotations

import functools
import logging
import shlex
import subprocess as _subprocess
import threading
from collections.abc import Sequence
from typing import IO, Callable, Protocol, Union

from varcell.errors import ProcessError

logger = logging.getLogger("varcell.process")

Command = Union[str, Sequence[str]]

# Seconds to wait for a terminated child before escalating to SIGKILL.
KILL_TIMEOUT = 1.0


def normalize_command(cmd: Command) -> list[str]:
    """A string is split shell-style; any other sequence is taken as argv."""
    if isinstance(cmd, str):
        argv = shlex.split(cmd)
    else:
        argv = [str(part) for part in cmd]
    if not argv:
        raise ValueError("empty command")
    return argv


class ProcessHandle(Protocol):
    def kill(self) -> None: ...


class ProcessRunner(Protocol):
    def exec_async(
        self,
        cmd: Command,
        on_success: Callable[[str], None],
        on_error: Callable[[ProcessError], None],
    ) -> None: ...

    def subprocess(
        self,
        cmd: Command,
        on_line: Callable[[str], None],
        on_error: Callable[[ProcessError], None],
    ) -> ProcessHandle: ...


class Subprocess:
    """A running child whose output lines are pumped to callbacks."""

    __slots__ = ("argv", "_proc", "_dispatch", "_killed")

    def __init__(self, argv: list[str], proc: _subprocess.Popen, dispatch, on_line, on_error) -> None:
        self.argv = argv
        self._proc = proc
        self._dispatch = dispatch
        self._killed = False
        self._pump(proc.stdout, on_line)
        self._pump(proc.stderr, lambda line: on_error(ProcessError(argv, line, stderr=line)))

    @property
    def alive(self) -> bool:
        return not self._killed and self._proc.poll() is None

    def _pump(self, stream: IO[str], deliver: Callable[[str], None]) -> None:
        def _deliver(line: str) -> None:
            # Lines already marshaled when kill() ran are stale.
            if not self._killed:
                deliver(line)

        def _read() -> None:
            try:
                for line in stream:
                    if self._killed:
                        break
                    self._dispatch(functools.partial(_deliver, line.rstrip("\n")))
            except Exception:
                logger.exception("Reader for %s crashed", self.argv)
            finally:
                stream.close()

        threading.Thread(target=_read, daemon=True).start()

    def kill(self) -> None:
        """Terminate the child. Safe to call repeatedly."""
        if self._killed:
            return
        self._killed = True
        if self._proc.poll() is not None:
            return
        self._proc.terminate()
        try:
            self._proc.wait(timeout=KILL_TIMEOUT)
        except _subprocess.TimeoutExpired:
            self._proc.kill()
        logger.debug("Killed %s", self.argv)


class _DeadProcess:
    """Handle for a child that never started."""

    __slots__ = ()

    alive = False

    def kill(self) -> None:
        pass


class SubprocessRunner:
    """ProcessRunner backed by the subprocess module and daemon threads.

    Callbacks are marshaled through scheduler.call_threadsafe(); when no
    scheduler is given the configured default is looked up per call.
    """

    def __init__(self, scheduler=None) -> None:
        self._scheduler = scheduler

    def _dispatch(self, fn: Callable[[], None]) -> None:
        scheduler = self._scheduler
        if scheduler is None:
            from varcell import config

            scheduler = config.get_scheduler()
        scheduler.call_threadsafe(fn)

    def exec_async(self, cmd, on_success, on_error) -> None:
        argv = normalize_command(cmd)

        def _run() -> None:
            try:
                proc = _subprocess.run(argv, capture_output=True, text=True)
            except OSError as exc:
                err = ProcessError(argv, str(exc))
                self._dispatch(functools.partial(on_error, err))
                return
            if proc.returncode != 0:
                message = proc.stderr.strip() or f"exited with status {proc.returncode}"
                err = ProcessError(argv, message, returncode=proc.returncode, stderr=proc.stderr)
                self._dispatch(functools.partial(on_error, err))
            else:
                self._dispatch(functools.partial(on_success, proc.stdout.rstrip("\n")))

        threading.Thread(target=_run, daemon=True).start()

    def subprocess(self, cmd, on_line, on_error) -> Subprocess | _DeadProcess:
        argv = normalize_command(cmd)
        try:
            proc = _subprocess.Popen(
                argv,
                stdout=_subprocess.PIPE,
                stderr=_subprocess.PIPE,
                text=True,
                bufsize=1,
            )
        except OSError as exc:
            err = ProcessError(argv, str(exc))
            self._dispatch(functools.partial(on_error, err))
            return _DeadProcess()
        logger.debug("Spawned %s (pid %d)", argv, proc.pid)
        return Subprocess(argv, proc, self._dispatch, on_line, on_error)
