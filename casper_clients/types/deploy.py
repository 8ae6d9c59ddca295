"""
casper_clients.types.deploy
===========================

Deploy data model and its canonical serialization.

A deploy is a header, a payment item, a session item and zero or more
approvals. Hashing follows the chain:

    body_hash   = blake2b256(payment.to_bytes() + session.to_bytes())
    deploy.hash = blake2b256(header.to_bytes())

The header embeds the body hash, so a deploy's identity covers everything but
its approvals. Approvals sign `deploy.hash`.

Header bytes:
    public key (tag + raw) | timestamp u64 ms | ttl u64 ms | gas_price u64 |
    body_hash (32) | dependencies (u32 count + 32-byte hashes) | chain_name (string)

Executable items:
    0 ModuleBytes                    u32-len module bytes + args
    1 StoredContractByHash           hash (32) + entry point + args
    3 StoredVersionedContractByHash  hash (32) + Option<u32> version + entry point + args

JSON rendering matches the node's `account_put_deploy` payload (timestamp as
ISO-8601 with a Z suffix, ttl as a humantime string such as "30m").
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from ..keys import PublicKey
from ..utils.bytes import from_hex, to_hex, u32_le, u64_le
from ..utils.hash import blake2b256
from .clvalue import CLValue

__all__ = [
    "NamedArg",
    "ModuleBytes",
    "StoredContractByHash",
    "StoredVersionedContractByHash",
    "ExecutableDeployItem",
    "DeployHeader",
    "Approval",
    "Deploy",
    "Signer",
    "format_ttl",
    "parse_ttl",
    "format_timestamp",
    "parse_timestamp",
    "args_to_bytes",
]


# --- time renderings -------------------------------------------------------------

_TTL_UNITS = (
    ("day", 86_400_000),
    ("h", 3_600_000),
    ("m", 60_000),
    ("s", 1_000),
    ("ms", 1),
)
_TTL_PARSE_UNITS = {
    "ms": 1,
    "s": 1_000,
    "sec": 1_000,
    "m": 60_000,
    "min": 60_000,
    "h": 3_600_000,
    "hr": 3_600_000,
    "d": 86_400_000,
    "day": 86_400_000,
    "days": 86_400_000,
}
_TTL_TOKEN = re.compile(r"(\d+)\s*([a-z]+)")


def format_ttl(ttl_ms: int) -> str:
    """1_800_000 -> '30m'; 90_000 -> '1m 30s'."""
    ttl_ms = int(ttl_ms)
    if ttl_ms <= 0:
        return "0ms"
    parts = []
    for unit, size in _TTL_UNITS:
        n, ttl_ms = divmod(ttl_ms, size)
        if n:
            parts.append(f"{n}{unit}")
    return " ".join(parts)


def parse_ttl(text: str) -> int:
    total = 0
    matched = _TTL_TOKEN.findall(text.strip().lower())
    if not matched:
        raise ValueError(f"invalid ttl: {text!r}")
    for n, unit in matched:
        try:
            total += int(n) * _TTL_PARSE_UNITS[unit]
        except KeyError:
            raise ValueError(f"invalid ttl unit {unit!r} in {text!r}") from None
    return total


def format_timestamp(ms: int) -> str:
    dt = datetime.fromtimestamp(int(ms) / 1000.0, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(text: str) -> int:
    dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * 1000))


def _string(s: str) -> bytes:
    data = s.encode("utf-8")
    return u32_le(len(data)) + data


# --- arguments -------------------------------------------------------------------


@dataclass(frozen=True)
class NamedArg:
    name: str
    value: CLValue

    def to_bytes(self) -> bytes:
        return _string(self.name) + self.value.to_bytes()

    def to_json(self) -> List[Any]:
        return [self.name, self.value.to_json()]

    @classmethod
    def from_json(cls, obj: Sequence[Any]) -> "NamedArg":
        name, value = obj
        return cls(str(name), CLValue.from_json(value))


def args_to_bytes(args: Sequence[NamedArg]) -> bytes:
    return u32_le(len(args)) + b"".join(a.to_bytes() for a in args)


def _args_json(args: Sequence[NamedArg]) -> List[Any]:
    return [a.to_json() for a in args]


def _args_from_json(obj: Sequence[Any]) -> Tuple[NamedArg, ...]:
    return tuple(NamedArg.from_json(a) for a in obj or ())


# --- executable items ------------------------------------------------------------


@dataclass(frozen=True)
class ModuleBytes:
    module_bytes: bytes
    args: Tuple[NamedArg, ...] = ()

    tag = 0

    def to_bytes(self) -> bytes:
        return (
            bytes([self.tag])
            + u32_le(len(self.module_bytes))
            + self.module_bytes
            + args_to_bytes(self.args)
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "ModuleBytes": {
                "module_bytes": to_hex(self.module_bytes),
                "args": _args_json(self.args),
            }
        }


@dataclass(frozen=True)
class StoredContractByHash:
    hash: bytes
    entry_point: str
    args: Tuple[NamedArg, ...] = ()

    tag = 1

    def to_bytes(self) -> bytes:
        return bytes([self.tag]) + self.hash + _string(self.entry_point) + args_to_bytes(self.args)

    def to_json(self) -> Dict[str, Any]:
        return {
            "StoredContractByHash": {
                "hash": to_hex(self.hash),
                "entry_point": self.entry_point,
                "args": _args_json(self.args),
            }
        }


@dataclass(frozen=True)
class StoredVersionedContractByHash:
    """Call into a package; `version=None` targets the latest enabled version."""

    hash: bytes
    version: Optional[int]
    entry_point: str
    args: Tuple[NamedArg, ...] = ()

    tag = 3

    def to_bytes(self) -> bytes:
        version = b"\x00" if self.version is None else b"\x01" + u32_le(int(self.version))
        return (
            bytes([self.tag])
            + self.hash
            + version
            + _string(self.entry_point)
            + args_to_bytes(self.args)
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "StoredVersionedContractByHash": {
                "hash": to_hex(self.hash),
                "version": self.version,
                "entry_point": self.entry_point,
                "args": _args_json(self.args),
            }
        }


ExecutableDeployItem = Union[ModuleBytes, StoredContractByHash, StoredVersionedContractByHash]


def _item_from_json(obj: Mapping[str, Any]) -> ExecutableDeployItem:
    if len(obj) != 1:
        raise ValueError(f"executable item must have exactly one variant, got {list(obj)}")
    (variant, body), = obj.items()
    args = _args_from_json(body.get("args", ()))
    if variant == "ModuleBytes":
        return ModuleBytes(from_hex(body.get("module_bytes") or ""), args)
    if variant == "StoredContractByHash":
        return StoredContractByHash(from_hex(body["hash"]), str(body["entry_point"]), args)
    if variant == "StoredVersionedContractByHash":
        version = body.get("version")
        return StoredVersionedContractByHash(
            from_hex(body["hash"]),
            None if version is None else int(version),
            str(body["entry_point"]),
            args,
        )
    raise ValueError(f"unsupported executable item: {variant}")


# --- header / approvals / deploy ---------------------------------------------------


@dataclass(frozen=True)
class DeployHeader:
    account: PublicKey
    timestamp_ms: int
    ttl_ms: int
    gas_price: int
    body_hash: bytes
    dependencies: Tuple[bytes, ...]
    chain_name: str

    def to_bytes(self) -> bytes:
        deps = u32_le(len(self.dependencies)) + b"".join(self.dependencies)
        return (
            self.account.to_bytes()
            + u64_le(self.timestamp_ms)
            + u64_le(self.ttl_ms)
            + u64_le(self.gas_price)
            + self.body_hash
            + deps
            + _string(self.chain_name)
        )

    def hash(self) -> bytes:
        return blake2b256(self.to_bytes())

    def to_json(self) -> Dict[str, Any]:
        return {
            "account": self.account.to_hex(),
            "timestamp": format_timestamp(self.timestamp_ms),
            "ttl": format_ttl(self.ttl_ms),
            "gas_price": self.gas_price,
            "body_hash": to_hex(self.body_hash),
            "dependencies": [to_hex(d) for d in self.dependencies],
            "chain_name": self.chain_name,
        }

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "DeployHeader":
        return cls(
            account=PublicKey.from_hex(obj["account"]),
            timestamp_ms=parse_timestamp(obj["timestamp"]),
            ttl_ms=parse_ttl(obj["ttl"]),
            gas_price=int(obj["gas_price"]),
            body_hash=from_hex(obj["body_hash"]),
            dependencies=tuple(from_hex(d) for d in obj.get("dependencies", ())),
            chain_name=str(obj["chain_name"]),
        )


@dataclass(frozen=True)
class Approval:
    signer: PublicKey
    signature: bytes  # algorithm tag + raw signature

    def to_json(self) -> Dict[str, str]:
        return {"signer": self.signer.to_hex(), "signature": to_hex(self.signature)}

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "Approval":
        return cls(PublicKey.from_hex(obj["signer"]), from_hex(obj["signature"]))


class Signer(Protocol):
    """Anything holding a public key that can sign a deploy hash."""

    @property
    def public_key(self) -> PublicKey: ...

    def sign(self, message: bytes) -> bytes: ...


@dataclass
class Deploy:
    hash: bytes
    header: DeployHeader
    payment: ExecutableDeployItem
    session: ExecutableDeployItem
    approvals: List[Approval] = field(default_factory=list)

    @property
    def hash_hex(self) -> str:
        return to_hex(self.hash)

    def approve(self, signer: Signer) -> Approval:
        """Sign the deploy hash and append the approval."""
        pk = signer.public_key
        approval = Approval(pk, bytes([pk.algorithm]) + signer.sign(self.hash))
        self.approvals.append(approval)
        return approval

    def verify_hashes(self) -> bool:
        """True when the body hash and the deploy hash match the contents."""
        body_hash = blake2b256(self.payment.to_bytes() + self.session.to_bytes())
        return body_hash == self.header.body_hash and self.header.hash() == self.hash

    def to_json(self) -> Dict[str, Any]:
        return {
            "hash": self.hash_hex,
            "header": self.header.to_json(),
            "payment": self.payment.to_json(),
            "session": self.session.to_json(),
            "approvals": [a.to_json() for a in self.approvals],
        }

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "Deploy":
        return cls(
            hash=from_hex(obj["hash"]),
            header=DeployHeader.from_json(obj["header"]),
            payment=_item_from_json(obj["payment"]),
            session=_item_from_json(obj["session"]),
            approvals=[Approval.from_json(a) for a in obj.get("approvals", ())],
        )
