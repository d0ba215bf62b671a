"""Storage port and the process-wide default storage.

Stores receive their storage explicitly (``storage=``) or fall back to a
single process-wide default. Ordering for applications using the default:

1. build the storage (``await FileStorage.build(...)``)
2. ``set_default_storage(storage)``
3. construct stores
4. on shutdown: ``detach()``/``flush()`` stores, ``await storage.close()``,
   then ``reset_default_storage()``
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from pyhydrated.exceptions import StorageNotConfiguredError
from pyhydrated.storage.file import FileStorage, StorageEnvelope
from pyhydrated.storage.memory import MemoryStorage


@runtime_checkable
class Storage(Protocol):
    """Key/value persistence consumed by the hydration engine.

    ``read`` must be synchronous (backends cache records in memory);
    mutations are coroutines whose failure is their only error signal.
    """

    def read(self, key: str) -> Any | None: ...

    async def write(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def clear(self) -> None: ...

    async def close(self) -> None: ...


_default_storage: Storage | None = None


def set_default_storage(storage: Storage | None) -> None:
    """Set (or unset with ``None``) the storage used by stores built without ``storage=``."""
    global _default_storage
    _default_storage = storage


def get_default_storage() -> Storage:
    """Return the process-wide storage.

    Raises
    ------
    StorageNotConfiguredError
        If :func:`set_default_storage` was never called.
    """
    if _default_storage is None:
        raise StorageNotConfiguredError()
    return _default_storage


def reset_default_storage() -> None:
    """Forget the process-wide storage (teardown / tests)."""
    set_default_storage(None)


__all__ = [
    "FileStorage",
    "MemoryStorage",
    "Storage",
    "StorageEnvelope",
    "get_default_storage",
    "reset_default_storage",
    "set_default_storage",
]
