"""
casper_clients.dictionary
=========================

Dictionary item key derivation.

Contracts keep per-account and per-token state in dictionaries addressed by a
string item key. The key must be derived exactly the way the contract derives
it or the lookup comes back as "dictionary item not found" (-32003). Two
families exist:

Direct keys
    The subject's identity rendered as text. Which rendering depends on the
    dictionary: lowercase hex of the key payload (`hex_item_key`), base64 of
    the serialized key (`base64_item_key`), or the token identifier itself
    (`token_item_key`).

Composite keys
    BLAKE2b-256 over the first key's serialized bytes followed by the second
    identifier's canonical bytes, as lowercase hex. For numeric identifiers
    the canonical bytes are the U256 encoding, so index 0 hashes the single
    byte ``00`` rather than an empty span.

All functions are pure.

Examples
--------
    owner = AccountKey.account(bytes(32))
    key_and_u256_item_key(owner, 0)     # blake2b256(00 + 00*32 + 00).hex()
"""

from __future__ import annotations

from typing import Union

from .keys import AccountKey
from .types.clvalue import CLValue
from .utils.bytes import to_base64, to_hex
from .utils.hash import blake2b256_hex

__all__ = [
    "TokenId",
    "hex_item_key",
    "base64_item_key",
    "key_pair_item_key",
    "key_and_u256_item_key",
    "key_and_string_item_key",
    "token_item_key",
]

# Ordinal token ids are ints, hash-identified tokens are strings.
TokenId = Union[int, str]


def hex_item_key(key: AccountKey) -> str:
    """Lowercase hex of the key payload (no tag byte)."""
    return to_hex(key.payload)


def base64_item_key(key: AccountKey) -> str:
    """Base64 of the serialized key (tag byte + payload)."""
    return to_base64(key.to_bytes())


def key_pair_item_key(first: AccountKey, second: AccountKey) -> str:
    return blake2b256_hex(first.to_bytes() + second.to_bytes())


def key_and_u256_item_key(key: AccountKey, n: int) -> str:
    return blake2b256_hex(key.to_bytes() + CLValue.u256(n).serialize())


def key_and_string_item_key(key: AccountKey, s: str) -> str:
    return blake2b256_hex(key.to_bytes() + CLValue.string(s).serialize())


def token_item_key(token: TokenId) -> str:
    """Decimal string for ordinal ids; token hashes pass through unchanged."""
    if isinstance(token, bool):
        raise TypeError("token id must be int or str")
    if isinstance(token, int):
        if token < 0:
            raise ValueError(f"token id must be non-negative: {token}")
        return str(token)
    if isinstance(token, str):
        return token
    raise TypeError(f"token id must be int or str, got {type(token).__name__}")
