"""
Utility helpers for the contract clients.

Re-exports:
- bytes: hex/base64 helpers and little-endian integer packing
- hash: BLAKE2b-256 convenience wrappers
- retry: backoff delays and async retry helper
"""

from .bytes import (ensure_bytes, from_hex, to_base64, to_hex, u32_le,
                    u64_le)
from .hash import Blake2b256, blake2b256, blake2b256_hex
from .retry import RetryError, aretry_call, backoff_delay

__all__ = [
    # bytes
    "to_hex",
    "from_hex",
    "to_base64",
    "ensure_bytes",
    "u32_le",
    "u64_le",
    # hash
    "blake2b256",
    "blake2b256_hex",
    "Blake2b256",
    # retry
    "RetryError",
    "aretry_call",
    "backoff_delay",
]
