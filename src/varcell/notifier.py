"""Change notifier — the signal object each Variable owns.

Three events: changed, error, dropped. Listeners connect per event and get
an integer handler id back; disconnect(id) removes exactly that listener.
Emission is synchronous and in connection order. A listener disconnected
by an earlier listener of the same emission is skipped, so unsubscribing
takes effect immediately, even mid-dispatch.

run_dispose() called while an emission is in progress waits for the
outermost emission to return.
"""

from __future__ import annotations

import itertools
import threading
from typing import Callable

CHANGED = "changed"
ERROR = "error"
DROPPED = "dropped"


class Notifier:
    """Per-variable signal hub with changed/error/dropped events."""

    __slots__ = ("_listeners", "_ids", "_disposed", "_depth", "_finalizers", "_lock")

    def __init__(self) -> None:
        self._listeners: dict[str, dict[int, Callable]] = {
            CHANGED: {},
            ERROR: {},
            DROPPED: {},
        }
        self._ids = itertools.count(1)
        self._disposed = False
        self._depth = 0
        # Set while a disposal waits for emission to finish.
        self._finalizers: list[Callable[[], None]] | None = None
        self._lock = threading.Lock()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _connect(self, event: str, fn: Callable) -> int:
        handler_id = next(self._ids)
        self._listeners[event][handler_id] = fn
        return handler_id

    def connect_changed(self, fn: Callable[[], None]) -> int:
        return self._connect(CHANGED, fn)

    def connect_error(self, fn: Callable[[BaseException], None]) -> int:
        return self._connect(ERROR, fn)

    def connect_dropped(self, fn: Callable[[], None]) -> int:
        return self._connect(DROPPED, fn)

    def disconnect(self, handler_id: int) -> None:
        """Remove a listener. Unknown or already-removed ids are ignored."""
        for listeners in self._listeners.values():
            if listeners.pop(handler_id, None) is not None:
                return

    def listener_count(self, event: str = CHANGED) -> int:
        return len(self._listeners[event])

    def _emit(self, event: str, *args) -> None:
        if self._disposed:
            return
        listeners = self._listeners[event]
        with self._lock:
            self._depth += 1
        try:
            for handler_id, fn in list(listeners.items()):
                if handler_id in listeners:
                    fn(*args)
        finally:
            with self._lock:
                self._depth -= 1
                finalizers = self._finalizers if self._depth == 0 else None
            if finalizers is not None:
                self._dispose(finalizers)

    def emit_changed(self) -> None:
        self._emit(CHANGED)

    def emit_error(self, err: BaseException) -> None:
        self._emit(ERROR, err)

    def emit_dropped(self) -> None:
        self._emit(DROPPED)

    def run_dispose(self, finalizer: Callable[[], None] | None = None) -> None:
        """Release every listener, then call finalizer. Later emits are no-ops.

        If a listener is being dispatched right now (on any thread), both
        happen when the outermost emission returns.
        """
        with self._lock:
            if self._disposed:
                return
            if self._finalizers is None:
                self._finalizers = []
            if finalizer is not None:
                self._finalizers.append(finalizer)
            if self._depth:
                return
            finalizers = self._finalizers
        self._dispose(finalizers)

    def _dispose(self, finalizers: list[Callable[[], None]]) -> None:
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            self._finalizers = None
        for listeners in self._listeners.values():
            listeners.clear()
        for finalizer in finalizers:
            finalizer()

    def __repr__(self) -> str:
        counts = ", ".join(f"{k}={len(v)}" for k, v in self._listeners.items())
        state = "disposed" if self._disposed else "active"
        return f"Notifier({counts}, {state})"
