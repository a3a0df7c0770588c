"""Event sources — push-based signal emitters a Variable can observe.

Anything with connect(name, handler) -> id and disconnect(id) qualifies.
EventEmitter is a minimal concrete one for code that has no signal system
of its own.
"""

from __future__ import annotations

import itertools
from typing import Callable, Protocol


class EventSource(Protocol):
    def connect(self, name: str, handler: Callable[..., None]) -> int: ...

    def disconnect(self, handler_id: int) -> None: ...


class EventEmitter:
    """Named signals with positional arguments.

    Usage:
        battery = EventEmitter()
        level = Variable(0).observe(battery, "charged", lambda pct: pct)
        battery.emit("charged", 80)
        level.get()  # 80
    """

    def __init__(self) -> None:
        self._handlers: dict[int, tuple[str, Callable[..., None]]] = {}
        self._ids = itertools.count(1)

    def connect(self, name: str, handler: Callable[..., None]) -> int:
        handler_id = next(self._ids)
        self._handlers[handler_id] = (name, handler)
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        self._handlers.pop(handler_id, None)

    def handler_count(self, name: str | None = None) -> int:
        if name is None:
            return len(self._handlers)
        return sum(1 for signal, _ in self._handlers.values() if signal == name)

    def emit(self, name: str, *args) -> None:
        for signal, handler in list(self._handlers.values()):
            if signal == name:
                handler(*args)
