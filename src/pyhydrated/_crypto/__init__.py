"""At-rest encryption for storage backends."""

from __future__ import annotations

from typing import Protocol

from pyhydrated._crypto.aes import HydratedAesCipher, generate_key


class StorageCipher(Protocol):
    """Protocol for ciphers accepted by file storage."""

    def encrypt(self, plaintext: bytes) -> bytes: ...

    def decrypt(self, data: bytes) -> bytes: ...


__all__ = [
    "HydratedAesCipher",
    "StorageCipher",
    "generate_key",
]
