"""Minimal reactive primitive for stores.

Declare state with :class:`observable` class attributes on a
:class:`ReactiveStore` subclass. Assigning a different value notifies every
subscriber; :meth:`ReactiveStore.batch` (or the :func:`action` decorator)
coalesces several assignments into one notification::

    class Counter(ReactiveStore):
        count = observable(0)

        @action
        def reset(self) -> None:
            self.count = 0
"""

from __future__ import annotations

import contextlib
import functools
import logging
from collections.abc import Callable, Iterator
from typing import Any, Generic, TypeVar, overload

_logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])

_MISSING: Any = object()


class observable(Generic[T]):  # noqa: N801
    """Data descriptor holding one per-instance reactive field.

    Parameters
    ----------
    default : T
        Initial value for immutable defaults.
    factory : callable, optional
        Called once per instance for mutable defaults (lists, dicts).
    """

    def __init__(self, default: T = _MISSING, *, factory: Callable[[], T] | None = None) -> None:
        if default is _MISSING and factory is None:
            raise TypeError("observable() needs a default or a factory")
        self._default = default
        self._factory = factory
        self._name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self._name = name

    @overload
    def __get__(self, instance: None, owner: type) -> observable[T]: ...

    @overload
    def __get__(self, instance: object, owner: type) -> T: ...

    def __get__(self, instance: object | None, owner: type) -> observable[T] | T:
        if instance is None:
            return self
        values = instance.__dict__
        if self._name not in values:
            values[self._name] = self._factory() if self._factory is not None else self._default
        value: T = values[self._name]
        return value

    def __set__(self, instance: object, value: T) -> None:
        current = self.__get__(instance, type(instance))
        instance.__dict__[self._name] = value
        if current is value or current == value:
            return
        notify = getattr(instance, "_notify_change", None)
        if notify is not None:
            notify(self._name)


class ReactiveStore:
    """Base for stores exposing a ``subscribe(callback) -> unsubscribe`` point."""

    def __init__(self, **kwargs: Any) -> None:
        self._subscribers: list[Callable[[], None]] = []
        self._batch_depth = 0
        self._batch_dirty = False
        super().__init__(**kwargs)

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call *callback* after every change; returns the unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._subscribers.remove(callback)

        return unsubscribe

    @contextlib.contextmanager
    def batch(self) -> Iterator[None]:
        """Defer notifications until the outermost batch exits."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._batch_dirty:
                self._batch_dirty = False
                self._notify()

    def _notify_change(self, name: str) -> None:
        # Fields may be assigned before __init__ has set up subscribers.
        if "_subscribers" not in self.__dict__:
            return
        if self._batch_depth:
            self._batch_dirty = True
            return
        self._notify()

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            try:
                callback()
            except Exception:
                _logger.exception("Store subscriber %r failed", callback)


def action(fn: F) -> F:
    """Run a store method inside :meth:`ReactiveStore.batch`."""

    @functools.wraps(fn)
    def wrapper(self: ReactiveStore, *args: Any, **kwargs: Any) -> Any:
        with self.batch():
            return fn(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]
