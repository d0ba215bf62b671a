"""In-memory storage backend."""

from __future__ import annotations

import copy
from typing import Any


class MemoryStorage:
    """Dict-backed storage.

    Values are deep-copied on the way in and out so callers can never
    mutate a stored record through a shared reference.
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._records: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def read(self, key: str) -> Any | None:
        value = self._records.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def write(self, key: str, value: Any) -> None:
        self._records[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._records.pop(key, None)

    async def clear(self) -> None:
        self._records.clear()

    async def close(self) -> None:
        return None
