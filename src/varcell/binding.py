"""Bindings — read-only, optionally transformed views over a Variable.

A Binding never writes. It reads through to its emitter (a Variable or
another Binding) and applies its transform on every read, so it is always
as fresh as the source. Widgets and templated views consume Variables
through Bindings rather than holding the Variable itself.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, Protocol, TypeVar

T = TypeVar("T")
U = TypeVar("U")

Unsubscribe = Callable[[], None]


class Emitter(Protocol):
    def get(self) -> Any: ...

    def subscribe(self, callback: Callable[[Any], None]) -> Unsubscribe: ...


class Binding(Generic[T]):
    """Lazy projection of an emitter through an optional transform."""

    __slots__ = ("_emitter", "_transform")

    def __init__(self, emitter: Emitter, transform: Callable[[Any], T] | None = None) -> None:
        self._emitter = emitter
        self._transform = transform

    @classmethod
    def of(cls, emitter: Emitter) -> Binding:
        """Untransformed binding over a Variable or another Binding."""
        return cls(emitter)

    def get(self) -> T:
        value = self._emitter.get()
        if self._transform is None:
            return value
        return self._transform(value)

    def map(self, fn: Callable[[T], U]) -> Binding[U]:
        """New binding applying fn after this binding's transform."""
        inner = self._transform
        if inner is None:
            return Binding(self._emitter, fn)
        return Binding(self._emitter, lambda value: fn(inner(value)))

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        """Call back with the transformed value whenever the source changes."""
        return self._emitter.subscribe(lambda _value: callback(self.get()))

    def __str__(self) -> str:
        return f"Binding<{self.get()}>"

    def __repr__(self) -> str:
        return f"Binding<{self.get()!r}>"
