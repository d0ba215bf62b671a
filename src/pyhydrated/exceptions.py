"""Custom exception hierarchy for pyhydrated."""

from __future__ import annotations

from typing import Any


class HydratedError(Exception):
    """Base exception for all pyhydrated errors."""


class HydratedConfigError(HydratedError):
    """Invalid or missing configuration."""


class StorageNotConfiguredError(HydratedError):
    """The process-wide default storage was accessed before it was set.

    This is a setup error, most likely a missing call to
    :func:`pyhydrated.storage.set_default_storage` before the first store
    is constructed::

        storage = await FileStorage.build(directory)
        set_default_storage(storage)
        counter = Counter()
    """

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or (
                "Storage was accessed before it was initialized. "
                "Call set_default_storage(...) or pass storage= explicitly."
            )
        )


class HydrationError(HydratedError):
    """A store was used in a way its hydration lifecycle does not allow."""


class StorageError(HydratedError):
    """Storage backend failure (I/O, corrupt file, invalid record)."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class HydratedCryptoError(StorageError):
    """At-rest encryption or decryption failure."""


class UnsupportedValueError(HydratedError):
    """A value could not be converted to a storable snapshot.

    If a value is not directly storable, the codec asks it to convert
    itself (``to_json()`` or a pydantic dump). When that call fails, the
    failure is kept in :attr:`cause`. When the call succeeds but returns
    something that still is not storable, :attr:`cause` is ``None``.
    A reference cycle is reported the same way, with a
    :class:`CyclicValueError` as the cause.
    """

    def __init__(self, value: Any, *, cause: BaseException | None = None) -> None:
        self.unsupported_value = value
        self.cause = cause
        super().__init__(self._describe())

    def _describe(self) -> str:
        try:
            shown = repr(self.unsupported_value)
        except Exception:
            shown = f"<{type(self.unsupported_value).__name__} object>"
        if self.cause is not None:
            return f"Converting object to an encodable object failed: {shown}"
        return f"Converting object did not return an encodable object: {shown}"


class CyclicValueError(HydratedError):
    """A container was reached again while it was still being traversed.

    Never raised out of :func:`pyhydrated.codec.encode` directly; it is the
    ``cause`` of the :class:`UnsupportedValueError` that is.
    """

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__("Cyclic error while state traversing")
