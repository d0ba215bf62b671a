"""AES-GCM encryption for snapshots at rest.

Each call to :meth:`HydratedAesCipher.encrypt` draws a fresh 96-bit nonce
and prepends it to the ciphertext, so the same key can be reused for every
write of the storage file.
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from pyhydrated.exceptions import HydratedCryptoError

_NONCE_SIZE = 12


def _parse_hex_bytes(
    value: str,
    *,
    name: str,
    allowed_nbytes: set[int] | None = None,
) -> bytes:
    text = value.strip()
    if text.startswith("0x") or text.startswith("0X"):
        text = text[2:]
    if not text:
        raise HydratedCryptoError(f"{name} is empty")
    if len(text) % 2 != 0:
        raise HydratedCryptoError(f"{name} hex length must be even (got {len(text)})")
    try:
        data = bytes.fromhex(text)
    except ValueError as exc:
        raise HydratedCryptoError(f"{name} must be hex-encoded") from exc

    if allowed_nbytes is not None and len(data) not in allowed_nbytes:
        allowed = ", ".join(str(n) for n in sorted(allowed_nbytes))
        raise HydratedCryptoError(f"{name} must be {allowed} bytes (got {len(data)})")
    return data


def generate_key() -> str:
    """Return a new random 256-bit key as uppercase hex."""
    return AESGCM.generate_key(bit_length=256).hex().upper()


class HydratedAesCipher:
    """Symmetric cipher used by :class:`~pyhydrated.storage.FileStorage`.

    Parameters
    ----------
    key_hex : str
        Hex-encoded AES key of 16, 24 or 32 bytes.

    Raises
    ------
    HydratedCryptoError
        If the key is not valid hex or has the wrong length.
    """

    def __init__(self, key_hex: str) -> None:
        key = _parse_hex_bytes(key_hex, name="AES key", allowed_nbytes={16, 24, 32})
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt *plaintext*, returning ``nonce || ciphertext || tag``."""
        try:
            nonce = os.urandom(_NONCE_SIZE)
            return nonce + self._aead.encrypt(nonce, plaintext, None)
        except Exception as exc:
            raise HydratedCryptoError(f"AES encryption failed: {exc}") from exc

    def decrypt(self, data: bytes) -> bytes:
        """Reverse :meth:`encrypt`.

        Raises
        ------
        HydratedCryptoError
            If the payload is truncated, was produced with another key, or
            has been tampered with.
        """
        if len(data) <= _NONCE_SIZE:
            raise HydratedCryptoError(f"AES payload too short ({len(data)} bytes)")
        nonce, ciphertext = data[:_NONCE_SIZE], data[_NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag as exc:
            raise HydratedCryptoError("AES decryption failed: authentication tag mismatch") from exc
        except Exception as exc:
            raise HydratedCryptoError(f"AES decryption failed: {exc}") from exc
