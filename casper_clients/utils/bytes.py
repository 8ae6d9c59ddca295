from __future__ import annotations

import base64
import struct
from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]


def ensure_bytes(data: Union[BytesLike, str]) -> bytes:
    """
    Ensure input is bytes.

    Accepts:
      - bytes / bytearray / memoryview  -> bytes(data)
      - str: treated as hex; optional '0x' prefix; even-length enforced

    Raises:
      ValueError on invalid hex strings.
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    if isinstance(data, str):
        return from_hex(data)
    raise TypeError(f"Unsupported type for ensure_bytes: {type(data)!r}")


def to_hex(b: BytesLike, prefix: bool = False) -> str:
    """
    Bytes -> hex string (lowercase). Node payloads carry bare hex, so no
    '0x' prefix unless asked for.
    """
    s = bytes(b).hex()
    return f"0x{s}" if prefix else s


def from_hex(s: str) -> bytes:
    """
    Hex string (optionally '0x' prefixed) -> bytes.

    Enforces even-length (nibbles must pair to bytes) and is case agnostic.
    """
    if not isinstance(s, str):
        raise TypeError("from_hex expects a string")
    if s.startswith(("0x", "0X")):
        s = s[2:]
    if len(s) % 2 != 0:
        raise ValueError("hex string must have even length")
    try:
        return bytes.fromhex(s)
    except ValueError as e:
        raise ValueError(f"invalid hex string: {e}") from e


def to_base64(b: BytesLike) -> str:
    """Standard (padded) base64 of *b*."""
    return base64.b64encode(bytes(b)).decode("ascii")


# --- Fixed-width little-endian integers ---------------------------------------


def u8(n: int) -> bytes:
    return struct.pack("<B", n)


def u32_le(n: int) -> bytes:
    """Encode an unsigned 32-bit integer, little-endian."""
    if not 0 <= n <= 0xFFFFFFFF:
        raise ValueError(f"u32 out of range: {n}")
    return struct.pack("<I", n)


def u64_le(n: int) -> bytes:
    """Encode an unsigned 64-bit integer, little-endian."""
    if not 0 <= n <= 0xFFFFFFFFFFFFFFFF:
        raise ValueError(f"u64 out of range: {n}")
    return struct.pack("<Q", n)


__all__ = [
    "BytesLike",
    "ensure_bytes",
    "to_hex",
    "from_hex",
    "to_base64",
    "u8",
    "u32_le",
    "u64_le",
]
