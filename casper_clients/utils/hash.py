from __future__ import annotations

import hashlib

from .bytes import BytesLike, ensure_bytes, to_hex

# --- BLAKE2b-256 --------------------------------------------------------------
# The chain hashes deploy headers/bodies, account hashes and composite
# dictionary item keys with unkeyed BLAKE2b truncated to a 32-byte digest.
# hashlib's blake2b with digest_size=32 is exactly that parameterisation.

DIGEST_SIZE = 32


def blake2b256(data: BytesLike) -> bytes:
    """Return the 32-byte BLAKE2b digest of *data*."""
    h = hashlib.blake2b(digest_size=DIGEST_SIZE)
    h.update(ensure_bytes(data))
    return h.digest()


def blake2b256_hex(data: BytesLike) -> str:
    """Return lowercase hex of the BLAKE2b-256 digest (no prefix)."""
    return to_hex(blake2b256(data))


class Blake2b256:
    """Streaming BLAKE2b-256 hasher with update()/digest()/hexdigest()."""

    __slots__ = ("_h",)

    def __init__(self) -> None:
        self._h = hashlib.blake2b(digest_size=DIGEST_SIZE)

    def update(self, data: BytesLike) -> "Blake2b256":
        self._h.update(ensure_bytes(data))
        return self

    def digest(self) -> bytes:
        return self._h.digest()

    def hexdigest(self) -> str:
        return to_hex(self._h.digest())

    def copy(self) -> "Blake2b256":
        c = object.__new__(Blake2b256)
        c._h = self._h.copy()
        return c


__all__ = [
    "DIGEST_SIZE",
    "blake2b256",
    "blake2b256_hex",
    "Blake2b256",
]
