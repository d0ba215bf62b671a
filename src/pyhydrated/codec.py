"""Value traversal codec.

Converts arbitrary store state into a JSON-safe snapshot on write and
coerces stored snapshots back into string-keyed mappings on read.

Encoding classifies every value in three tiers, each tried only when the
previous one does not match:

* **atomic** -- ``None``, ``bool``, ``str`` and finite numbers, returned as-is
* **complex** -- sequences and mappings, traversed recursively
* **custom** -- objects implementing :class:`SupportsToJson` (or pydantic
  models), converted once and the result traversed as atomic/complex

Complex and custom values are tracked on a per-call stack so reference
cycles are reported as :class:`~pyhydrated.exceptions.UnsupportedValueError`
instead of recursing forever.
"""

from __future__ import annotations

import functools
import math
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol, TypeAlias, runtime_checkable

from pydantic import BaseModel

from pyhydrated.exceptions import CyclicValueError, UnsupportedValueError

Snapshot: TypeAlias = None | bool | int | float | str | list["Snapshot"] | dict[str, "Snapshot"]


@runtime_checkable
class SupportsToJson(Protocol):
    """Capability for values that know how to convert themselves.

    ``to_json`` must return an atomic value, a sequence or a mapping.
    Only one level of delegation is honoured: if the returned value is
    itself only custom-encodable, encoding fails.
    """

    def to_json(self) -> Any: ...


class _Nil:
    """Marker for "this tier does not handle the value"."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "NIL"


NIL = _Nil()


class _Traversal:
    """Stack of containers currently being visited by one ``encode`` call."""

    __slots__ = ("seen",)

    def __init__(self) -> None:
        self.seen: list[Any] = []

    def enter(self, value: Any) -> None:
        for item in self.seen:
            if item is value:
                raise CyclicValueError(value)
        self.seen.append(value)

    def leave(self, value: Any) -> None:
        assert self.seen, "seen must not be empty"  # noqa: S101
        last = self.seen.pop()
        assert last is value, "last seen object must be identical"  # noqa: S101


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _traverse_atomic(value: Any) -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return NIL
        return value
    return NIL


def _traverse_complex(value: Any, traversal: _Traversal) -> Any:
    if _is_sequence(value):
        if not value:
            return value
        traversal.enter(value)
        items = [_traverse_write(item, traversal) for item in value]
        traversal.leave(value)
        return items
    if isinstance(value, Mapping):
        traversal.enter(value)
        mapping: dict[str, Any] = {}
        for key, item in value.items():
            if isinstance(key, str):
                mapping[key] = _traverse_write(item, traversal)
        traversal.leave(value)
        return mapping
    return NIL


def _custom_converter(value: Any) -> Callable[[], Any] | None:
    if isinstance(value, SupportsToJson):
        return value.to_json
    if isinstance(value, BaseModel):
        return functools.partial(value.model_dump, mode="json")
    return None


def _traverse_custom(value: Any, traversal: _Traversal) -> Any:
    convert = _custom_converter(value)
    if convert is None:
        raise UnsupportedValueError(value)
    try:
        traversal.enter(value)
        intermediate = convert()
        traversed = _traverse_atomic(intermediate)
        if traversed is NIL:
            traversed = _traverse_complex(intermediate, traversal)
        if traversed is NIL:
            raise UnsupportedValueError(value)
        traversal.leave(value)
        return traversed
    except UnsupportedValueError:
        raise
    except Exception as exc:
        raise UnsupportedValueError(value, cause=exc) from exc


def _traverse_write(value: Any, traversal: _Traversal) -> Any:
    atomic = _traverse_atomic(value)
    if atomic is not NIL:
        return atomic
    try:
        traversed = _traverse_complex(value, traversal)
    except CyclicValueError as exc:
        raise UnsupportedValueError(value, cause=exc) from exc
    if traversed is not NIL:
        return traversed
    return _traverse_custom(value, traversal)


def encode(value: Any) -> Snapshot:
    """Convert *value* into a JSON-safe snapshot.

    Raises
    ------
    UnsupportedValueError
        If *value* (or anything reachable from it) cannot be represented,
        including reference cycles and nesting deeper than the
        interpreter's recursion limit.
    """
    try:
        return _traverse_write(value, _Traversal())
    except RecursionError as exc:
        raise UnsupportedValueError(value, cause=exc) from exc


def _traverse_read(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _traverse_read(item) for key, item in value.items() if isinstance(key, str)}
    if _is_sequence(value):
        return [_traverse_read(item) for item in value]
    return value


def decode(value: Any) -> dict[str, Any]:
    """Coerce a stored snapshot into a string-keyed mapping.

    Never raises: entries with non-string keys are dropped and any
    top-level value that is not a mapping, or that is nested too deeply
    to walk, decodes to ``{}``.
    """
    try:
        traversed = _traverse_read(value)
    except RecursionError:
        return {}
    if isinstance(traversed, dict):
        return traversed
    return {}
