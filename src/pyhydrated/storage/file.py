"""Crash-safe JSON file storage.

All records live in a single file inside the configured directory. The
whole file is loaded once by :meth:`FileStorage.build` so :meth:`read`
can be synchronous; every mutation rewrites the file through a temporary
sibling and ``os.replace`` so a crash never leaves a half-written file.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pyhydrated._crypto import StorageCipher
from pyhydrated.exceptions import StorageError

_logger = logging.getLogger(__name__)

#: On-disk format version written into every file.
FORMAT_VERSION = 1

DEFAULT_FILE_NAME = "hydrated_box.json"


class StorageEnvelope(BaseModel):
    """Top-level structure of the storage file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: int = FORMAT_VERSION
    records: dict[str, Any] = Field(default_factory=dict)


def _load_records(path: Path, cipher: StorageCipher | None) -> dict[str, Any]:
    """Read the storage file, returning ``{}`` when it is missing or unreadable."""
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise StorageError(f"Cannot read storage file {path}: {exc}") from exc

    try:
        if cipher is not None:
            data = cipher.decrypt(data)
        envelope = StorageEnvelope.model_validate_json(data)
    except (StorageError, ValidationError):
        # Same recovery as an empty box: drop the unreadable file and start over.
        _logger.warning("Discarding unreadable storage file %s", path, exc_info=True)
        path.unlink(missing_ok=True)
        return {}

    if envelope.version != FORMAT_VERSION:
        _logger.warning(
            "Storage file %s has format version %d (expected %d); loading records as-is",
            path,
            envelope.version,
            FORMAT_VERSION,
        )
    return dict(envelope.records)


def _atomic_write(path: Path, data: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise StorageError(f"Cannot write storage file {path}: {exc}") from exc


class FileStorage:
    """Storage backed by one (optionally encrypted) JSON file.

    Use :meth:`build` rather than the constructor so the existing file is
    loaded off the event loop::

        storage = await FileStorage.build("/var/lib/myapp", cipher=HydratedAesCipher(key))
    """

    def __init__(
        self,
        path: Path,
        *,
        cipher: StorageCipher | None = None,
        records: dict[str, Any] | None = None,
    ) -> None:
        self._path = path
        self._cipher = cipher
        self._records: dict[str, Any] = records if records is not None else {}
        self._lock = asyncio.Lock()
        self._closed = False

    @classmethod
    async def build(
        cls,
        directory: str | os.PathLike[str],
        *,
        cipher: StorageCipher | None = None,
        file_name: str = DEFAULT_FILE_NAME,
    ) -> FileStorage:
        """Load (or start) the storage file ``directory/file_name``."""
        path = Path(directory) / file_name
        loop = asyncio.get_running_loop()
        records = await loop.run_in_executor(None, _load_records, path, cipher)
        _logger.debug("Loaded %d record(s) from %s", len(records), path)
        return cls(path, cipher=cipher, records=records)

    @property
    def path(self) -> Path:
        return self._path

    def read(self, key: str) -> Any | None:
        value = self._records.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def write(self, key: str, value: Any) -> None:
        self._require_open(key)
        async with self._lock:
            records = dict(self._records)
            records[key] = copy.deepcopy(value)
            await self._persist(records)
            self._records = records

    async def delete(self, key: str) -> None:
        self._require_open(key)
        async with self._lock:
            if key not in self._records:
                return
            records = dict(self._records)
            del records[key]
            await self._persist(records)
            self._records = records

    async def clear(self) -> None:
        self._require_open()
        async with self._lock:
            self._records.clear()
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._remove_file)

    async def close(self) -> None:
        self._closed = True

    def _require_open(self, key: str = "") -> None:
        if self._closed:
            raise StorageError(f"Storage {self._path} is closed", key=key)

    def _encode_file(self, records: dict[str, Any]) -> bytes:
        data = StorageEnvelope(records=records).model_dump_json().encode("utf-8")
        if self._cipher is not None:
            data = self._cipher.encrypt(data)
        return data

    async def _persist(self, records: dict[str, Any]) -> None:
        """Write *records* to disk; the in-memory cache is only swapped in on success."""
        data = self._encode_file(records)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _atomic_write, self._path, data)

    def _remove_file(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot remove storage file {self._path}: {exc}") from exc
