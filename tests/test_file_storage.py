from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from pyhydrated._crypto import HydratedAesCipher, generate_key
from pyhydrated.exceptions import StorageError
from pyhydrated.reactive import observable
from pyhydrated.storage import FileStorage, StorageEnvelope
from pyhydrated.store import HydratedReactiveStore


class _Notes(HydratedReactiveStore):
    items = observable(factory=list)

    def to_json(self) -> dict[str, Any] | None:
        return {"items": self.items}

    def from_json(self, json: dict[str, Any]) -> None:
        self.items = list(json.get("items", []))


@pytest.mark.asyncio
async def test_missing_file_starts_empty(tmp_path: Path) -> None:
    storage = await FileStorage.build(tmp_path)

    assert storage.read("anything") is None
    assert not storage.path.exists()


@pytest.mark.asyncio
async def test_records_survive_reload(tmp_path: Path) -> None:
    storage = await FileStorage.build(tmp_path)
    await storage.write("Counter", {"count": 5})
    await storage.write("Countera", {"count": 1})

    reloaded = await FileStorage.build(tmp_path)

    assert reloaded.read("Counter") == {"count": 5}
    assert reloaded.read("Countera") == {"count": 1}
    envelope = StorageEnvelope.model_validate_json(storage.path.read_text())
    assert envelope.version == 1


@pytest.mark.asyncio
async def test_read_returns_independent_copy(tmp_path: Path) -> None:
    storage = await FileStorage.build(tmp_path)
    await storage.write("k", {"items": [1]})

    value = storage.read("k")
    value["items"].append(2)

    assert storage.read("k") == {"items": [1]}


@pytest.mark.asyncio
async def test_no_temporary_files_left_behind(tmp_path: Path) -> None:
    storage = await FileStorage.build(tmp_path)
    for count in range(3):
        await storage.write("Counter", {"count": count})

    assert sorted(p.name for p in tmp_path.iterdir()) == ["hydrated_box.json"]


@pytest.mark.asyncio
async def test_delete_is_idempotent(tmp_path: Path) -> None:
    storage = await FileStorage.build(tmp_path)
    await storage.write("Counter", {"count": 5})

    await storage.delete("Counter")
    await storage.delete("Counter")
    await storage.delete("never-written")

    assert storage.read("Counter") is None
    assert (await FileStorage.build(tmp_path)).read("Counter") is None


def _failing_atomic_write(path: Path, data: bytes) -> None:
    raise StorageError(f"Cannot write storage file {path}: disk full")


@pytest.mark.asyncio
async def test_failed_disk_write_keeps_previous_record(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    storage = await FileStorage.build(tmp_path)
    await storage.write("k", {"v": 1})
    monkeypatch.setattr("pyhydrated.storage.file._atomic_write", _failing_atomic_write)

    with pytest.raises(StorageError):
        await storage.write("k", {"v": 2})
    with pytest.raises(StorageError):
        await storage.write("other", {"v": 3})

    assert storage.read("k") == {"v": 1}
    assert storage.read("other") is None


@pytest.mark.asyncio
async def test_failed_disk_delete_keeps_record(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    storage = await FileStorage.build(tmp_path)
    await storage.write("k", {"v": 1})
    monkeypatch.setattr("pyhydrated.storage.file._atomic_write", _failing_atomic_write)

    with pytest.raises(StorageError):
        await storage.delete("k")

    assert storage.read("k") == {"v": 1}
    assert (await FileStorage.build(tmp_path)).read("k") == {"v": 1}


@pytest.mark.asyncio
async def test_clear_removes_file(tmp_path: Path) -> None:
    storage = await FileStorage.build(tmp_path)
    await storage.write("a", {"x": 1})

    await storage.clear()

    assert storage.read("a") is None
    assert not storage.path.exists()


@pytest.mark.asyncio
async def test_corrupt_file_is_discarded(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "hydrated_box.json"
    path.write_text("{not json")

    with caplog.at_level(logging.WARNING, logger="pyhydrated.storage.file"):
        storage = await FileStorage.build(tmp_path)

    assert storage.read("a") is None
    assert not path.exists()
    assert "Discarding unreadable storage file" in caplog.text


@pytest.mark.asyncio
async def test_unexpected_structure_is_discarded(tmp_path: Path) -> None:
    (tmp_path / "hydrated_box.json").write_text(json.dumps({"records": [], "extra": 1}))

    storage = await FileStorage.build(tmp_path)

    assert storage.read("records") is None


@pytest.mark.asyncio
async def test_custom_file_name(tmp_path: Path) -> None:
    storage = await FileStorage.build(tmp_path / "nested", file_name="state.json")
    await storage.write("a", {"x": 1})

    assert (tmp_path / "nested" / "state.json").exists()


@pytest.mark.asyncio
async def test_encrypted_file_round_trip(tmp_path: Path) -> None:
    key = generate_key()
    storage = await FileStorage.build(tmp_path, cipher=HydratedAesCipher(key))
    await storage.write("Secret", {"token": "hunter2"})

    assert b"hunter2" not in storage.path.read_bytes()
    reloaded = await FileStorage.build(tmp_path, cipher=HydratedAesCipher(key))
    assert reloaded.read("Secret") == {"token": "hunter2"}


@pytest.mark.asyncio
async def test_wrong_key_starts_empty(tmp_path: Path) -> None:
    storage = await FileStorage.build(tmp_path, cipher=HydratedAesCipher(generate_key()))
    await storage.write("Secret", {"token": "hunter2"})

    reloaded = await FileStorage.build(tmp_path, cipher=HydratedAesCipher(generate_key()))

    assert reloaded.read("Secret") is None


@pytest.mark.asyncio
async def test_closed_storage_rejects_writes(tmp_path: Path) -> None:
    storage = await FileStorage.build(tmp_path)
    await storage.close()

    with pytest.raises(StorageError) as excinfo:
        await storage.write("k", {"x": 1})
    assert excinfo.value.key == "k"


@pytest.mark.asyncio
async def test_store_hydrates_from_file_storage(tmp_path: Path) -> None:
    storage = await FileStorage.build(tmp_path)
    notes = _Notes(storage=storage)
    notes.items = ["buy milk"]
    await notes.flush()

    reloaded = await FileStorage.build(tmp_path)
    restored = _Notes(storage=reloaded)
    await restored.flush()

    assert restored.items == ["buy milk"]
