"""Storage configuration for pyhydrated."""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path
from typing import Any

from pyhydrated._crypto import HydratedAesCipher
from pyhydrated.exceptions import HydratedConfigError
from pyhydrated.storage.file import DEFAULT_FILE_NAME, FileStorage

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class HydratedConfig:
    """Where and how store snapshots are kept on disk.

    Parameters
    ----------
    storage_dir : Path
        Directory holding the storage file. Created on first write.
    file_name : str
        Name of the storage file inside ``storage_dir``.
    encryption_key : str or None
        Hex-encoded AES key (16, 24 or 32 bytes). When set, the storage
        file is encrypted at rest with AES-GCM.
    """

    storage_dir: Path
    file_name: str = DEFAULT_FILE_NAME
    encryption_key: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.storage_dir, Path):
            object.__setattr__(self, "storage_dir", Path(self.storage_dir))
        if not self.file_name or Path(self.file_name).name != self.file_name:
            raise HydratedConfigError(f"file_name must be a plain file name (got {self.file_name!r})")

    @classmethod
    def from_env(cls, **overrides: Any) -> HydratedConfig:
        """Create configuration from environment variables.

        Reads ``HYDRATED_STORAGE_DIR``, ``HYDRATED_FILE_NAME`` and
        ``HYDRATED_ENCRYPTION_KEY``. Explicit keyword arguments override
        environment values.

        Raises
        ------
        HydratedConfigError
            If no storage directory is configured.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "HYDRATED_STORAGE_DIR": "storage_dir",
            "HYDRATED_FILE_NAME": "file_name",
            "HYDRATED_ENCRYPTION_KEY": "encryption_key",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val:
                config_kwargs[field_name] = val

        config_kwargs.update(overrides)

        if not config_kwargs.get("storage_dir"):
            raise HydratedConfigError("storage_dir is required (set HYDRATED_STORAGE_DIR)")
        return cls(**config_kwargs)


async def build_storage(config: HydratedConfig) -> FileStorage:
    """Build the file storage described by *config*."""
    cipher = HydratedAesCipher(config.encryption_key) if config.encryption_key else None
    storage = await FileStorage.build(config.storage_dir, cipher=cipher, file_name=config.file_name)
    _logger.debug(
        "Storage ready at %s (encrypted=%s)",
        storage.path,
        cipher is not None,
    )
    return storage
