"""Variables — mutable values that notify subscribers and drive themselves.

A Variable holds one value. set() notifies subscribers only when the value
actually changes. A Variable can also keep itself up to date from a
recurring poll (a function or a command run each tick), a watch (a
long-lived process whose output lines become values), or signals on other
objects (observe). derive() builds a Variable from other Variables.

At most one driver (poll or watch) is active at a time. Every driver start
bumps a generation counter; results carrying an older generation are
discarded, so a stopped, replaced or dropped driver can never write.

drop() stops the driver, fires the dropped event, then defers disposal of
the notifier to the scheduler's next idle pass so dispatch already in
flight finishes first.

All state lives in _anchor — instances are thin handles holding an _id.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

from varcell import _anchor, config
from varcell.binding import Binding, Emitter, Unsubscribe
from varcell.errors import VariableDroppedError
from varcell.events import EventSource
from varcell.notifier import Notifier
from varcell.process import Command, normalize_command

logger = logging.getLogger("varcell.variable")

T = TypeVar("T")
U = TypeVar("U")

Transform = Callable[[str, Any], Any]


def _passthrough(output: str, _prev: Any) -> Any:
    return output


def _takes_previous(fn: Callable) -> bool | None:
    """Does fn accept the previous value as its single argument?

    None when the signature cannot be inspected.
    """
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return None
    try:
        signature.bind(None)
    except TypeError:
        return False
    return True


# ─── Driver state ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PollSpec:
    interval_ms: float
    source: Union[Callable[..., Any], Command]
    transform: Transform = _passthrough


@dataclass(frozen=True)
class WatchSpec:
    source: Command
    transform: Transform = _passthrough


@dataclass(frozen=True)
class Polling:
    spec: PollSpec
    handle: Any  # TimerHandle
    generation: int


@dataclass(frozen=True)
class Watching:
    spec: WatchSpec
    handle: Any  # ProcessHandle
    generation: int


Driver = Union[Polling, Watching, None]


# ─── Variable ────────────────────────────────────────────────────────────────


class Variable(Generic[T]):
    """A single value with change notification and optional drivers."""

    __slots__ = ("_id",)

    def __init__(self, value: T | None = None, *, scheduler=None, runner=None) -> None:
        self._id = _anchor.new_id()
        notifier = Notifier()
        _anchor.values[self._id] = value
        _anchor.notifiers[self._id] = notifier
        _anchor.dropped[self._id] = False
        _anchor.schedulers[self._id] = scheduler
        _anchor.runners[self._id] = runner
        _anchor.drivers[self._id] = None
        _anchor.generations[self._id] = 0
        _anchor.connections[self._id] = []
        notifier.connect_dropped(self._on_dropped)
        notifier.connect_error(self._route_error)

    @property
    def _notifier(self) -> Notifier:
        return _anchor.notifiers[self._id]

    @property
    def _scheduler(self):
        return _anchor.schedulers.get(self._id) or config.get_scheduler()

    @property
    def _runner(self):
        return _anchor.runners.get(self._id) or config.get_runner(self._scheduler)

    def _check_alive(self, operation: str) -> None:
        if _anchor.dropped[self._id]:
            raise VariableDroppedError(f"{operation}() on dropped {self!r}")

    # --- Value and notification ---

    def get(self) -> T | None:
        return _anchor.values[self._id]

    def set(self, value: T) -> None:
        """Write a new value. Subscribers run synchronously, only on change."""
        self._check_alive("set")
        old = _anchor.values[self._id]
        if old is not value and old != value:
            _anchor.values[self._id] = value
            self._notifier.emit_changed()

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        """Call back with the committed value after every change.

        Returns a function that removes this subscription. Calling it again
        does nothing.
        """
        self._check_alive("subscribe")
        notifier = self._notifier
        handler_id = notifier.connect_changed(lambda: callback(self.get()))

        def _unsubscribe() -> None:
            notifier.disconnect(handler_id)

        return _unsubscribe

    def on_error(self, callback: Callable[[BaseException], None]) -> Variable[T]:
        """Route driver failures to callback. Replaces any previous handler."""
        _anchor.error_handlers[self._id] = callback
        return self

    def on_dropped(self, callback: Callable[[], None]) -> Variable[T]:
        """Run callback once, when drop() is called."""
        self._check_alive("on_dropped")
        self._notifier.connect_dropped(callback)
        return self

    def _route_error(self, err: BaseException) -> None:
        handler = _anchor.error_handlers.get(self._id)
        if handler is None:
            logger.debug("%r: no error handler, dropping %s", self, err)
            return
        handler(err)

    # --- Lifecycle ---

    def is_dropped(self) -> bool:
        return _anchor.dropped[self._id]

    def drop(self) -> None:
        """Stop drivers, fire dropped, dispose the notifier on the next idle pass.

        Calling drop() again is a no-op.
        """
        if _anchor.dropped[self._id]:
            return
        _anchor.dropped[self._id] = True
        notifier = self._notifier
        scheduler = self._scheduler
        var_id = self._id

        def _dispose() -> None:
            notifier.run_dispose(lambda: _anchor.release(var_id))

        try:
            notifier.emit_dropped()
        finally:
            scheduler.idle(_dispose)

    def _on_dropped(self) -> None:
        # First dropped listener, so drivers stop before user handlers run.
        self._stop_driver()
        connections = _anchor.connections[self._id]
        for source, handler_id in connections:
            source.disconnect(handler_id)
        connections.clear()
        logger.debug("Dropped %r", self)

    # --- Drivers ---

    def is_polling(self) -> bool:
        return isinstance(_anchor.drivers.get(self._id), Polling)

    def is_watching(self) -> bool:
        return isinstance(_anchor.drivers.get(self._id), Watching)

    def _next_generation(self) -> int:
        generation = _anchor.generations[self._id] + 1
        _anchor.generations[self._id] = generation
        return generation

    def _is_current(self, generation: int) -> bool:
        return _anchor.generations.get(self._id) == generation and not _anchor.dropped[self._id]

    def _stop_driver(self) -> None:
        driver: Driver = _anchor.drivers.get(self._id)
        if driver is None:
            return
        _anchor.drivers[self._id] = None
        self._next_generation()
        if isinstance(driver, Polling):
            driver.handle.cancel()
        else:
            driver.handle.kill()
        logger.debug("Stopped %s on %r", type(driver).__name__.lower(), self)

    def _apply(self, transform: Transform, output: str) -> None:
        """set(transform(output, prev)), routing a failing transform to on_error."""
        try:
            value = transform(output, self.get())
        except Exception as exc:
            self._notifier.emit_error(exc)
            return
        self.set(value)

    def poll(
        self,
        interval_ms: float,
        source: Union[Callable[..., T], Command],
        transform: Transform | None = None,
    ) -> Variable[T]:
        """Update every interval_ms from a function or a command.

        A function is called with the previous value (or with nothing, if it
        takes no arguments) and its result is set directly. When the
        function's signature cannot be inspected, the first tick tries the
        previous value and falls back to no arguments on TypeError.

        A command is run out of process each tick; its stdout goes through
        transform(output, prev) before being set.

        Replaces any active poll or watch.
        """
        self._check_alive("poll")
        if interval_ms <= 0:
            raise ValueError(f"interval must be positive, got {interval_ms!r}")
        if not callable(source):
            source = normalize_command(source)
        self._stop_driver()
        _anchor.poll_specs[self._id] = PollSpec(interval_ms, source, transform or _passthrough)
        return self.start_poll()

    def start_poll(self) -> Variable[T]:
        """Resume the last configured poll. No-op if already polling or never configured."""
        self._check_alive("start_poll")
        spec: PollSpec | None = _anchor.poll_specs.get(self._id)
        if spec is None or self.is_polling():
            return self
        self._stop_driver()
        generation = self._next_generation()
        if callable(spec.source):
            tick = self._function_tick(spec.source, generation)
        else:
            tick = self._command_tick(spec, generation)
        handle = self._scheduler.interval(spec.interval_ms, tick)
        _anchor.drivers[self._id] = Polling(spec, handle, generation)
        logger.debug("Polling %r every %sms", self, spec.interval_ms)
        return self

    def _function_tick(self, fn: Callable[..., T], generation: int) -> Callable[[], None]:
        takes_previous = _takes_previous(fn)

        def call() -> T:
            nonlocal takes_previous
            if takes_previous is not None:
                return fn(self.get()) if takes_previous else fn()
            # Opaque signature: try the one-argument form, settle on first success.
            try:
                value = fn(self.get())
            except TypeError:
                value = fn()
                takes_previous = False
            else:
                takes_previous = True
            return value

        def tick() -> None:
            if not self._is_current(generation):
                return
            try:
                value = call()
            except Exception as exc:
                self._notifier.emit_error(exc)
                return
            self.set(value)

        return tick

    def _command_tick(self, spec: PollSpec, generation: int) -> Callable[[], None]:
        def on_output(output: str) -> None:
            if self._is_current(generation):
                self._apply(spec.transform, output)

        def on_error(err: BaseException) -> None:
            if self._is_current(generation):
                self._notifier.emit_error(err)

        def tick() -> None:
            if self._is_current(generation):
                self._runner.exec_async(spec.source, on_output, on_error)

        return tick

    def stop_poll(self) -> None:
        if self.is_polling():
            self._stop_driver()

    def watch(self, source: Command, transform: Transform | None = None) -> Variable[T]:
        """Run a long-lived command; each output line becomes transform(line, prev).

        Replaces any active poll or watch.
        """
        self._check_alive("watch")
        argv = normalize_command(source)
        self._stop_driver()
        _anchor.watch_specs[self._id] = WatchSpec(argv, transform or _passthrough)
        return self.start_watch()

    def start_watch(self) -> Variable[T]:
        """Resume the last configured watch. No-op if already watching or never configured."""
        self._check_alive("start_watch")
        spec: WatchSpec | None = _anchor.watch_specs.get(self._id)
        if spec is None or self.is_watching():
            return self
        self._stop_driver()
        generation = self._next_generation()

        def on_line(line: str) -> None:
            if self._is_current(generation):
                self._apply(spec.transform, line)

        def on_error(err: BaseException) -> None:
            if self._is_current(generation):
                self._notifier.emit_error(err)

        handle = self._runner.subprocess(spec.source, on_line, on_error)
        _anchor.drivers[self._id] = Watching(spec, handle, generation)
        logger.debug("Watching %r with %s", self, spec.source)
        return self

    def stop_watch(self) -> None:
        if self.is_watching():
            self._stop_driver()

    # --- Signals ---

    def observe(
        self,
        sources: EventSource | Sequence[tuple[EventSource, str]],
        signal_or_fn: str | Callable[..., T] | None = None,
        callback: Callable[..., T] | None = None,
    ) -> Variable[T]:
        """Set this variable whenever a signal fires.

        observe(source, "name")                  re-read the current value
        observe(source, "name", fn)              set(fn(*signal_args))
        observe([(a, "x"), (b, "y")], fn)        any listed signal → set(fn(*args))

        Connections are dropped along with the variable.
        """
        self._check_alive("observe")
        if callable(signal_or_fn):
            compute = signal_or_fn
        elif callback is not None:
            compute = callback
        else:

            def compute(*_args):
                return self.get()

        def _on_signal(*args) -> None:
            if not _anchor.dropped[self._id]:
                self.set(compute(*args))

        if isinstance(signal_or_fn, str):
            pairs = [(sources, signal_or_fn)]
        else:
            pairs = list(sources)

        connections = _anchor.connections[self._id]
        for source, signal in pairs:
            connections.append((source, source.connect(signal, _on_signal)))
        return self

    # --- Projections ---

    def __call__(self, transform: Callable[[T], U] | None = None) -> Binding:
        """A read-only Binding over this variable, optionally transformed."""
        return Binding(self, transform)

    @staticmethod
    def derive(deps, transform=None, *, scheduler=None) -> Variable:
        """See the module-level derive()."""
        return derive(deps, transform, scheduler=scheduler)

    def __str__(self) -> str:
        return f"Variable<{self.get()}>"

    def __repr__(self) -> str:
        return f"Variable<{self.get()!r}>"


# ─── derive ──────────────────────────────────────────────────────────────────


def _identity(value):
    return value


def _collect(*values) -> list:
    return list(values)


def _inherited_scheduler(deps: Sequence[Any]):
    for dep in deps:
        if isinstance(dep, Variable):
            return _anchor.schedulers.get(dep._id)
    return None


def derive(
    deps: Emitter | Sequence[Emitter],
    transform: Callable[..., Any] | None = None,
    *,
    scheduler=None,
) -> Variable:
    """Build a Variable whose value is transform applied to other Variables.

    Single dependency: derive(a, fn) tracks fn(a.get()); without fn it is a
    pass-through copy.

    Several dependencies: derive([a, b], fn) tracks fn(a.get(), b.get()).
    Any dependency changing recomputes over the current values of all of
    them. Without fn the value is the list of current values.

    Dropping the derived variable unsubscribes it from every dependency.

    Usage:
        width = Variable(3)
        height = Variable(4)
        area = derive([width, height], lambda w, h: w * h)
        area.get()  # 12
        height.set(5)
        area.get()  # 15
    """
    if isinstance(deps, (list, tuple)):
        scheduler = scheduler or _inherited_scheduler(deps)
        return _derive_many(deps, transform or _collect, scheduler)
    scheduler = scheduler or _inherited_scheduler([deps])
    return _derive_one(deps, transform or _identity, scheduler)


def _derive_one(dep: Emitter, transform: Callable[[Any], Any], scheduler) -> Variable:
    var = Variable(transform(dep.get()), scheduler=scheduler)
    unsubscribe = dep.subscribe(lambda value: var.set(transform(value)))
    var.on_dropped(unsubscribe)
    return var


def _derive_many(deps: Sequence[Emitter], transform: Callable[..., Any], scheduler) -> Variable:
    bindings = [Binding.of(dep) if isinstance(dep, Variable) else dep for dep in deps]

    def compute():
        return transform(*(binding.get() for binding in bindings))

    var = Variable(compute(), scheduler=scheduler)
    unsubscribers = [binding.subscribe(lambda _value: var.set(compute())) for binding in bindings]

    def _unsubscribe_all() -> None:
        for unsubscribe in unsubscribers:
            unsubscribe()

    var.on_dropped(_unsubscribe_all)
    return var
