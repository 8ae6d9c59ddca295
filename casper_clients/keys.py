"""
casper_clients.keys
===================

Global-state key and public key types.

`AccountKey` is the discriminated union the contracts use as dictionary
subjects and call arguments: an account hash, a contract hash, a contract
package hash or a URef. Each variant carries a fixed-length payload and
renders with its string prefix (``account-hash-``, ``hash-``, ``uref-``).
Equality and hashing use the canonical serialized bytes (key tag + payload),
never the string form, so ``hash-AB..`` and ``contract-ab..`` compare equal.

`PublicKey` is an algorithm-tagged public key; its `account_hash()` is the
account identity contracts key their balances by.

Examples
--------
    pk = PublicKey.from_hex("01" + "aa" * 32)
    owner = pk.account_hash()              # AccountKey(ACCOUNT_HASH, ...)
    str(owner)                             # 'account-hash-…'
    AccountKey.from_string("hash-" + "11" * 32).to_bytes()[:1] == b"\\x01"
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Union

from .utils.bytes import from_hex, to_hex
from .utils.hash import blake2b256

__all__ = [
    "KeyKind",
    "KeyTag",
    "AccountKey",
    "KeyAlgorithm",
    "PublicKey",
    "KeyLike",
    "as_account_key",
]

HASH_LENGTH = 32

# URef access rights: READ | WRITE | ADD
ACCESS_READ_ADD_WRITE = 0x07


class KeyTag(IntEnum):
    """Leading byte of a serialized key."""

    ACCOUNT = 0
    HASH = 1
    UREF = 2


class KeyKind(Enum):
    ACCOUNT_HASH = "account-hash"
    CONTRACT_HASH = "contract-hash"
    CONTRACT_PACKAGE_HASH = "contract-package-hash"
    UREF = "uref"

    @property
    def tag(self) -> KeyTag:
        if self is KeyKind.ACCOUNT_HASH:
            return KeyTag.ACCOUNT
        if self is KeyKind.UREF:
            return KeyTag.UREF
        return KeyTag.HASH

    @property
    def prefix(self) -> str:
        if self is KeyKind.ACCOUNT_HASH:
            return "account-hash-"
        if self is KeyKind.UREF:
            return "uref-"
        return "hash-"


# Longest prefixes first; "hash-" is ambiguous between contract and package.
_PREFIXES = (
    ("account-hash-", KeyKind.ACCOUNT_HASH),
    ("contract-package-wasm", KeyKind.CONTRACT_PACKAGE_HASH),
    ("contract-package-", KeyKind.CONTRACT_PACKAGE_HASH),
    ("contract-", KeyKind.CONTRACT_HASH),
    ("hash-", KeyKind.CONTRACT_HASH),
    ("uref-", KeyKind.UREF),
)


@dataclass(frozen=True, eq=False)
class AccountKey:
    kind: KeyKind
    payload: bytes
    access_rights: int = ACCESS_READ_ADD_WRITE

    def __post_init__(self) -> None:
        if len(self.payload) != HASH_LENGTH:
            raise ValueError(
                f"{self.kind.value} payload must be {HASH_LENGTH} bytes, got {len(self.payload)}"
            )

    # --- constructors -----------------------------------------------------

    @classmethod
    def account(cls, payload: bytes) -> "AccountKey":
        return cls(KeyKind.ACCOUNT_HASH, bytes(payload))

    @classmethod
    def contract(cls, payload: bytes) -> "AccountKey":
        return cls(KeyKind.CONTRACT_HASH, bytes(payload))

    @classmethod
    def package(cls, payload: bytes) -> "AccountKey":
        return cls(KeyKind.CONTRACT_PACKAGE_HASH, bytes(payload))

    @classmethod
    def uref(cls, payload: bytes, access_rights: int = ACCESS_READ_ADD_WRITE) -> "AccountKey":
        return cls(KeyKind.UREF, bytes(payload), int(access_rights))

    @classmethod
    def from_string(cls, value: str, *, hash_kind: Optional[KeyKind] = None) -> "AccountKey":
        """
        Parse a prefixed key string. A bare ``hash-`` prefix yields a
        contract hash unless `hash_kind` says it is a package hash.
        """
        s = value.strip()
        low = s.lower()
        for prefix, kind in _PREFIXES:
            if not low.startswith(prefix):
                continue
            body = s[len(prefix):]
            if kind is KeyKind.UREF:
                hex_part, sep, rights = body.partition("-")
                if not sep:
                    raise ValueError(f"URef string lacks access rights: {value!r}")
                return cls.uref(from_hex(hex_part), int(rights, 8))
            if prefix == "hash-" and hash_kind is not None:
                kind = hash_kind
            return cls(kind, from_hex(body))
        raise ValueError(f"unrecognised key prefix: {value!r}")

    @classmethod
    def from_bytes(cls, data: bytes, *, hash_kind: KeyKind = KeyKind.CONTRACT_HASH) -> "AccountKey":
        """Decode a serialized key (tag + payload [+ rights])."""
        key, _ = cls.decode(data, hash_kind=hash_kind)
        return key

    @classmethod
    def decode(cls, data: bytes, offset: int = 0, *, hash_kind: KeyKind = KeyKind.CONTRACT_HASH) -> tuple["AccountKey", int]:
        """Decode a key at `offset`, returning (key, bytes consumed)."""
        if len(data) < offset + 1 + HASH_LENGTH:
            raise ValueError("truncated key bytes")
        tag = data[offset]
        payload = bytes(data[offset + 1: offset + 1 + HASH_LENGTH])
        if tag == KeyTag.ACCOUNT:
            return cls.account(payload), 1 + HASH_LENGTH
        if tag == KeyTag.HASH:
            return cls(hash_kind, payload), 1 + HASH_LENGTH
        if tag == KeyTag.UREF:
            if len(data) < offset + 2 + HASH_LENGTH:
                raise ValueError("truncated uref bytes")
            return cls.uref(payload, data[offset + 1 + HASH_LENGTH]), 2 + HASH_LENGTH
        raise ValueError(f"unsupported key tag: {tag}")

    # --- views ------------------------------------------------------------

    def to_bytes(self) -> bytes:
        """Canonical serialization: key tag followed by the payload."""
        out = bytes([self.kind.tag]) + self.payload
        if self.kind is KeyKind.UREF:
            out += bytes([self.access_rights])
        return out

    def to_hex(self) -> str:
        """Lowercase hex of the payload only."""
        return to_hex(self.payload)

    def as_package(self) -> "AccountKey":
        return AccountKey.package(self.payload) if self.kind.tag is KeyTag.HASH else self

    def as_contract(self) -> "AccountKey":
        return AccountKey.contract(self.payload) if self.kind.tag is KeyTag.HASH else self

    def __str__(self) -> str:
        if self.kind is KeyKind.UREF:
            return f"uref-{self.to_hex()}-{self.access_rights:03o}"
        return f"{self.kind.prefix}{self.to_hex()}"

    def __repr__(self) -> str:
        return f"AccountKey({self.kind.name}, {self})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccountKey):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    def __hash__(self) -> int:
        return hash(self.to_bytes())


class KeyAlgorithm(IntEnum):
    ED25519 = 1
    SECP256K1 = 2

    @property
    def key_length(self) -> int:
        return 32 if self is KeyAlgorithm.ED25519 else 33


@dataclass(frozen=True)
class PublicKey:
    algorithm: KeyAlgorithm
    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != self.algorithm.key_length:
            raise ValueError(
                f"{self.algorithm.name.lower()} public key must be "
                f"{self.algorithm.key_length} bytes, got {len(self.raw)}"
            )

    @classmethod
    def from_hex(cls, value: str) -> "PublicKey":
        """Parse the tagged hex form, e.g. '01' + 64 hex chars for ed25519."""
        data = from_hex(value)
        if not data:
            raise ValueError("empty public key")
        return cls(KeyAlgorithm(data[0]), data[1:])

    def to_bytes(self) -> bytes:
        return bytes([self.algorithm]) + self.raw

    def to_hex(self) -> str:
        return to_hex(self.to_bytes())

    def account_hash(self) -> AccountKey:
        """blake2b256(lowercase algorithm name + 0x00 + raw key)."""
        preimage = self.algorithm.name.lower().encode("utf-8") + b"\x00" + self.raw
        return AccountKey.account(blake2b256(preimage))

    def __str__(self) -> str:
        return self.to_hex()


KeyLike = Union[AccountKey, PublicKey, str]


def as_account_key(value: KeyLike) -> AccountKey:
    """Normalise a public key, key string or AccountKey to an AccountKey."""
    if isinstance(value, AccountKey):
        return value
    if isinstance(value, PublicKey):
        return value.account_hash()
    if isinstance(value, str):
        low = value.lower()
        if low.startswith(("01", "02")) and "-" not in low:
            return PublicKey.from_hex(value).account_hash()
        return AccountKey.from_string(value)
    raise TypeError(f"cannot convert {type(value).__name__} to AccountKey")
