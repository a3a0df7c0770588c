"""Schedulers — the timer, idle and thread-marshal primitives Variables use.

A Variable never touches a clock or an event loop directly. It asks its
scheduler for three things:

- interval(ms, fn): call fn every ms milliseconds until the handle is cancelled
- idle(fn): call fn once, after the current call stack has unwound
- call_threadsafe(fn): run fn on the scheduler's owning thread

ThreadScheduler is the default. It serializes callbacks onto one owning
thread: its own dispatch thread, or a UI thread reached through a marshal
function (e.g. a UI app's call_from_thread). AsyncioScheduler keeps
everything on one asyncio loop. ManualScheduler is a deterministic fake
clock for tests.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import queue
import threading
from collections import deque
from typing import Callable, Protocol

logger = logging.getLogger("varcell.scheduler")


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def interval(self, ms: float, fn: Callable[[], None]) -> TimerHandle: ...

    def idle(self, fn: Callable[[], None]) -> None: ...

    def call_threadsafe(self, fn: Callable[[], None]) -> None: ...


def _check_interval(ms: float) -> None:
    if ms <= 0:
        raise ValueError(f"interval must be positive, got {ms!r}")


# ─── Threads ─────────────────────────────────────────────────────────────────


class _ThreadTimer:
    """Daemon thread ticking on an Event wait. cancel() stops it promptly."""

    __slots__ = ("_seconds", "_fn", "_dispatch", "_stopped")

    def __init__(self, ms: float, fn: Callable[[], None], dispatch) -> None:
        self._seconds = ms / 1000
        self._fn = fn
        self._dispatch = dispatch
        self._stopped = threading.Event()
        threading.Thread(target=self._loop, daemon=True).start()

    def _loop(self) -> None:
        while not self._stopped.wait(self._seconds):
            self._dispatch(self._fire)

    def _fire(self) -> None:
        # A tick may be marshaled after cancel(); drop it.
        if not self._stopped.is_set():
            self._fn()

    def cancel(self) -> None:
        self._stopped.set()


class ThreadScheduler:
    """Timers on daemon threads, callbacks run one at a time on an owning thread.

    Usage:
        scheduler = ThreadScheduler()                              # own dispatch thread
        scheduler = ThreadScheduler(marshal=app.call_from_thread)  # UI thread

    Without a marshal the scheduler starts a dispatch thread that owns your
    state: ticks, process results, threadsafe calls and idle callbacks all
    queue there. With a marshal, construct it on the thread that owns your
    state; callbacks raised on other threads go through marshal.

    idle() never runs fn inline; it waits behind whatever the owning thread
    is doing now.
    """

    def __init__(self, marshal: Callable[[Callable[[], None]], None] | None = None) -> None:
        self._marshal = marshal
        self._queue: queue.SimpleQueue[Callable[[], None]] = queue.SimpleQueue()
        if marshal is not None:
            self._owner = threading.current_thread()
        else:
            self._owner = threading.Thread(target=self._run, name="varcell-scheduler", daemon=True)
            self._owner.start()

    def _run(self) -> None:
        while True:
            fn = self._queue.get()
            try:
                fn()
            except Exception:
                logger.exception("Scheduled callback %r failed", fn)

    def call_threadsafe(self, fn: Callable[[], None]) -> None:
        if threading.current_thread() is self._owner:
            fn()
        elif self._marshal is not None:
            self._marshal(fn)
        else:
            self._queue.put(fn)

    def interval(self, ms: float, fn: Callable[[], None]) -> _ThreadTimer:
        _check_interval(ms)
        return _ThreadTimer(ms, fn, self.call_threadsafe)

    def idle(self, fn: Callable[[], None]) -> None:
        if self._marshal is None:
            self._queue.put(fn)
            return
        # marshal hops onto the owner's loop, so post from a helper thread.
        t = threading.Timer(0, self._marshal, args=[fn])
        t.daemon = True
        t.start()


# ─── asyncio ─────────────────────────────────────────────────────────────────


class _LoopTimer:
    __slots__ = ("_loop", "_seconds", "_fn", "_handle", "_cancelled")

    def __init__(self, loop: asyncio.AbstractEventLoop, ms: float, fn: Callable[[], None]) -> None:
        self._loop = loop
        self._seconds = ms / 1000
        self._fn = fn
        self._cancelled = False
        self._handle = loop.call_later(self._seconds, self._tick)

    def _tick(self) -> None:
        if self._cancelled:
            return
        self._handle = self._loop.call_later(self._seconds, self._tick)
        self._fn()

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()


class AsyncioScheduler:
    """Single-threaded scheduling on an asyncio event loop.

    Pass a loop, or construct inside a running coroutine to use the running one.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop if loop is not None else asyncio.get_running_loop()

    def interval(self, ms: float, fn: Callable[[], None]) -> _LoopTimer:
        _check_interval(ms)
        return _LoopTimer(self._loop, ms, fn)

    def idle(self, fn: Callable[[], None]) -> None:
        self._loop.call_soon(fn)

    def call_threadsafe(self, fn: Callable[[], None]) -> None:
        self._loop.call_soon_threadsafe(fn)


# ─── Deterministic fake ──────────────────────────────────────────────────────


class _ManualTimer:
    __slots__ = ("_scheduler", "ms", "fn", "due", "seq", "cancelled")

    def __init__(self, scheduler: ManualScheduler, ms: float, fn: Callable[[], None], seq: int) -> None:
        self._scheduler = scheduler
        self.ms = ms
        self.fn = fn
        self.due = scheduler.now + ms
        self.seq = seq
        self.cancelled = False

    def cancel(self) -> None:
        if not self.cancelled:
            self.cancelled = True
            self._scheduler._timers.remove(self)


class ManualScheduler:
    """A fake clock. Nothing happens until the test says so.

    Usage:
        sched = ManualScheduler()
        v = Variable(0, scheduler=sched).poll(10, lambda n: n + 1)
        sched.advance(25)   # two ticks, at t=10 and t=20
        sched.run_idle()    # drain deferred work (e.g. disposal after drop())
    """

    def __init__(self) -> None:
        self.now: float = 0
        self._timers: list[_ManualTimer] = []
        self._idle: deque[Callable[[], None]] = deque()
        self._pending: deque[Callable[[], None]] = deque()
        self._seq = itertools.count()

    @property
    def active_timers(self) -> int:
        return len(self._timers)

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def interval(self, ms: float, fn: Callable[[], None]) -> _ManualTimer:
        _check_interval(ms)
        timer = _ManualTimer(self, ms, fn, next(self._seq))
        self._timers.append(timer)
        return timer

    def idle(self, fn: Callable[[], None]) -> None:
        self._idle.append(fn)

    def call_threadsafe(self, fn: Callable[[], None]) -> None:
        self._pending.append(fn)

    def run_pending(self) -> None:
        while self._pending:
            self._pending.popleft()()

    def run_idle(self) -> None:
        """Run queued threadsafe calls, then every idle callback (including ones queued meanwhile)."""
        self.run_pending()
        while self._idle:
            self._idle.popleft()()

    def advance(self, ms: float) -> None:
        """Move the clock forward, firing due ticks in time order."""
        target = self.now + ms
        while True:
            self.run_pending()
            due = [t for t in self._timers if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self.now = timer.due
            timer.due += timer.ms
            timer.fn()
        self.now = target
