"""
casper_clients.types.clvalue
============================

The tagged-value boundary: `CLType` descriptors and `CLValue` values.

Only the subset the contract clients exchange with a node is implemented:
bool, i32, i64, u8, u32, u64, u128, u256, u512, unit, string, key, uref,
option, list, byte_array(n), map and public_key. Every value has three
renderings:

- canonical bytes (`serialize()` for the bare value, `to_bytes()` for the
  length-prefixed value followed by its type bytes, as deploy arguments carry
  it),
- the node JSON form ``{"cl_type": ..., "bytes": "<hex>", "parsed": ...}``,
- Python natives (`value`): int, str, bool, bytes, None, list, dict,
  AccountKey, PublicKey.

Big unsigned integers (u128/u256/u512) are a length byte followed by the
minimal little-endian magnitude; zero is the single byte ``00``.

Examples
--------
    CLValue.u256(0).serialize()               # b"\\x00"
    CLValue.u256(1000).serialize().hex()      # '02e803'
    CLValue.string("abc").serialize().hex()   # '03000000616263'
    v = CLValue.from_json(stored["CLValue"])  # decode a node result
    v.value                                   # native Python value
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..keys import AccountKey, KeyAlgorithm, KeyKind, PublicKey
from ..utils.bytes import from_hex, to_hex, u32_le

__all__ = [
    "CLTypeTag",
    "CLType",
    "CLValue",
    "CLDecodeError",
    "BOOL",
    "I32",
    "I64",
    "U8",
    "U32",
    "U64",
    "U128",
    "U256",
    "U512",
    "UNIT",
    "STRING",
    "KEY",
    "UREF",
    "PUBLIC_KEY",
    "cl_option",
    "cl_list",
    "cl_byte_array",
    "cl_map",
    "encode_big_uint",
]


class CLDecodeError(ValueError):
    """Bytes or JSON did not match the declared CLType."""


class CLTypeTag(IntEnum):
    BOOL = 0
    I32 = 1
    I64 = 2
    U8 = 3
    U32 = 4
    U64 = 5
    U128 = 6
    U256 = 7
    U512 = 8
    UNIT = 9
    STRING = 10
    KEY = 11
    UREF = 12
    OPTION = 13
    LIST = 14
    BYTE_ARRAY = 15
    RESULT = 16
    MAP = 17
    TUPLE1 = 18
    TUPLE2 = 19
    TUPLE3 = 20
    ANY = 21
    PUBLIC_KEY = 22


# JSON names of the simple (parameterless) types.
_SIMPLE_NAMES: Dict[CLTypeTag, str] = {
    CLTypeTag.BOOL: "Bool",
    CLTypeTag.I32: "I32",
    CLTypeTag.I64: "I64",
    CLTypeTag.U8: "U8",
    CLTypeTag.U32: "U32",
    CLTypeTag.U64: "U64",
    CLTypeTag.U128: "U128",
    CLTypeTag.U256: "U256",
    CLTypeTag.U512: "U512",
    CLTypeTag.UNIT: "Unit",
    CLTypeTag.STRING: "String",
    CLTypeTag.KEY: "Key",
    CLTypeTag.UREF: "URef",
    CLTypeTag.ANY: "Any",
    CLTypeTag.PUBLIC_KEY: "PublicKey",
}
_SIMPLE_BY_NAME = {v: k for k, v in _SIMPLE_NAMES.items()}

_BIG_UINT_BITS = {CLTypeTag.U128: 128, CLTypeTag.U256: 256, CLTypeTag.U512: 512}
_TUPLE_TAGS = (CLTypeTag.TUPLE1, CLTypeTag.TUPLE2, CLTypeTag.TUPLE3)


@dataclass(frozen=True)
class CLType:
    """A CLType descriptor. `inner` holds parameter types; `size` is for ByteArray."""

    tag: CLTypeTag
    inner: Tuple["CLType", ...] = ()
    size: Optional[int] = None

    def to_bytes(self) -> bytes:
        out = bytes([self.tag])
        if self.tag is CLTypeTag.BYTE_ARRAY:
            out += u32_le(int(self.size or 0))
        for t in self.inner:
            out += t.to_bytes()
        return out

    def to_json(self) -> Any:
        if self.tag in _SIMPLE_NAMES:
            return _SIMPLE_NAMES[self.tag]
        if self.tag is CLTypeTag.OPTION:
            return {"Option": self.inner[0].to_json()}
        if self.tag is CLTypeTag.LIST:
            return {"List": self.inner[0].to_json()}
        if self.tag is CLTypeTag.BYTE_ARRAY:
            return {"ByteArray": self.size}
        if self.tag is CLTypeTag.MAP:
            return {"Map": {"key": self.inner[0].to_json(), "value": self.inner[1].to_json()}}
        if self.tag is CLTypeTag.RESULT:
            return {"Result": {"ok": self.inner[0].to_json(), "err": self.inner[1].to_json()}}
        # Tuple1..3
        return {self.tag.name.title(): [t.to_json() for t in self.inner]}

    @classmethod
    def from_json(cls, obj: Any) -> "CLType":
        if isinstance(obj, str):
            try:
                return cls(_SIMPLE_BY_NAME[obj])
            except KeyError:
                raise CLDecodeError(f"unknown cl_type: {obj!r}") from None
        if isinstance(obj, Mapping) and len(obj) == 1:
            (name, body), = obj.items()
            if name == "Option":
                return cl_option(cls.from_json(body))
            if name == "List":
                return cl_list(cls.from_json(body))
            if name == "ByteArray":
                return cl_byte_array(int(body))
            if name == "Map":
                return cl_map(cls.from_json(body["key"]), cls.from_json(body["value"]))
            if name == "Result":
                return cls(CLTypeTag.RESULT, (cls.from_json(body["ok"]), cls.from_json(body["err"])))
            if name in ("Tuple1", "Tuple2", "Tuple3"):
                return cls(CLTypeTag[name.upper()], tuple(cls.from_json(t) for t in body))
        raise CLDecodeError(f"unsupported cl_type: {obj!r}")

    def __str__(self) -> str:
        j = self.to_json()
        return j if isinstance(j, str) else repr(j)


BOOL = CLType(CLTypeTag.BOOL)
I32 = CLType(CLTypeTag.I32)
I64 = CLType(CLTypeTag.I64)
U8 = CLType(CLTypeTag.U8)
U32 = CLType(CLTypeTag.U32)
U64 = CLType(CLTypeTag.U64)
U128 = CLType(CLTypeTag.U128)
U256 = CLType(CLTypeTag.U256)
U512 = CLType(CLTypeTag.U512)
UNIT = CLType(CLTypeTag.UNIT)
STRING = CLType(CLTypeTag.STRING)
KEY = CLType(CLTypeTag.KEY)
UREF = CLType(CLTypeTag.UREF)
PUBLIC_KEY = CLType(CLTypeTag.PUBLIC_KEY)


def cl_option(inner: CLType) -> CLType:
    return CLType(CLTypeTag.OPTION, (inner,))


def cl_list(inner: CLType) -> CLType:
    return CLType(CLTypeTag.LIST, (inner,))


def cl_byte_array(size: int) -> CLType:
    return CLType(CLTypeTag.BYTE_ARRAY, (), int(size))


def cl_map(key: CLType, value: CLType) -> CLType:
    return CLType(CLTypeTag.MAP, (key, value))


# --- value encoding --------------------------------------------------------------


def encode_big_uint(n: int, bits: int = 512) -> bytes:
    """Length byte + minimal little-endian magnitude; 0 -> b'\\x00'."""
    n = int(n)
    if n < 0 or n.bit_length() > bits:
        raise ValueError(f"value out of range for U{bits}: {n}")
    raw = n.to_bytes((n.bit_length() + 7) // 8, "little") if n else b""
    return bytes([len(raw)]) + raw


def _encode_string(s: str) -> bytes:
    data = s.encode("utf-8")
    return u32_le(len(data)) + data


def _sort_key(v: Any) -> Any:
    if isinstance(v, (AccountKey, PublicKey)):
        return v.to_bytes()
    return v


def _encode(t: CLType, v: Any) -> bytes:
    tag = t.tag
    if tag is CLTypeTag.BOOL:
        return b"\x01" if v else b"\x00"
    if tag is CLTypeTag.I32:
        return struct.pack("<i", int(v))
    if tag is CLTypeTag.I64:
        return struct.pack("<q", int(v))
    if tag is CLTypeTag.U8:
        return struct.pack("<B", int(v))
    if tag is CLTypeTag.U32:
        return struct.pack("<I", int(v))
    if tag is CLTypeTag.U64:
        return struct.pack("<Q", int(v))
    if tag in _BIG_UINT_BITS:
        return encode_big_uint(v, _BIG_UINT_BITS[tag])
    if tag is CLTypeTag.UNIT:
        return b""
    if tag is CLTypeTag.STRING:
        return _encode_string(v)
    if tag is CLTypeTag.KEY:
        return v.to_bytes()
    if tag is CLTypeTag.UREF:
        return v.payload + bytes([v.access_rights])
    if tag is CLTypeTag.PUBLIC_KEY:
        return v.to_bytes()
    if tag is CLTypeTag.BYTE_ARRAY:
        data = bytes(v)
        if len(data) != t.size:
            raise ValueError(f"ByteArray({t.size}) got {len(data)} bytes")
        return data
    if tag is CLTypeTag.OPTION:
        if v is None:
            return b"\x00"
        return b"\x01" + _encode(t.inner[0], v)
    if tag is CLTypeTag.LIST:
        items = list(v)
        return u32_le(len(items)) + b"".join(_encode(t.inner[0], x) for x in items)
    if tag is CLTypeTag.MAP:
        kt, vt = t.inner
        entries = sorted(dict(v).items(), key=lambda kv: _sort_key(kv[0]))
        return u32_le(len(entries)) + b"".join(_encode(kt, k) + _encode(vt, x) for k, x in entries)
    if tag in _TUPLE_TAGS:
        items = tuple(v)
        if len(items) != len(t.inner):
            raise ValueError(f"{t} needs {len(t.inner)} items, got {len(items)}")
        return b"".join(_encode(it, x) for it, x in zip(t.inner, items))
    raise ValueError(f"encoding {t} values is not supported")


# --- value decoding --------------------------------------------------------------


class _Reader:
    __slots__ = ("data", "pos")

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise CLDecodeError(f"need {n} bytes at offset {self.pos}, have {len(self.data) - self.pos}")
        out = self.data[self.pos: self.pos + n]
        self.pos += n
        return out

    def unpack(self, fmt: str) -> Any:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))[0]


def _decode(t: CLType, r: _Reader) -> Any:
    tag = t.tag
    if tag is CLTypeTag.BOOL:
        b = r.take(1)[0]
        if b > 1:
            raise CLDecodeError(f"invalid bool byte {b}")
        return bool(b)
    if tag is CLTypeTag.I32:
        return r.unpack("<i")
    if tag is CLTypeTag.I64:
        return r.unpack("<q")
    if tag is CLTypeTag.U8:
        return r.unpack("<B")
    if tag is CLTypeTag.U32:
        return r.unpack("<I")
    if tag is CLTypeTag.U64:
        return r.unpack("<Q")
    if tag in _BIG_UINT_BITS:
        n = r.take(1)[0]
        return int.from_bytes(r.take(n), "little")
    if tag is CLTypeTag.UNIT:
        return None
    if tag is CLTypeTag.STRING:
        n = r.unpack("<I")
        try:
            return r.take(n).decode("utf-8")
        except UnicodeDecodeError as e:
            raise CLDecodeError(f"invalid UTF-8 in String: {e}") from e
    if tag is CLTypeTag.KEY:
        try:
            key, used = AccountKey.decode(r.data, r.pos)
        except ValueError as e:
            raise CLDecodeError(str(e)) from e
        r.pos += used
        return key
    if tag is CLTypeTag.UREF:
        payload = r.take(32)
        return AccountKey.uref(payload, r.take(1)[0])
    if tag is CLTypeTag.PUBLIC_KEY:
        try:
            alg = KeyAlgorithm(r.take(1)[0])
        except ValueError as e:
            raise CLDecodeError(str(e)) from e
        return PublicKey(alg, r.take(alg.key_length))
    if tag is CLTypeTag.BYTE_ARRAY:
        return r.take(int(t.size or 0))
    if tag is CLTypeTag.OPTION:
        present = r.take(1)[0]
        return _decode(t.inner[0], r) if present else None
    if tag is CLTypeTag.LIST:
        n = r.unpack("<I")
        return [_decode(t.inner[0], r) for _ in range(n)]
    if tag is CLTypeTag.MAP:
        n = r.unpack("<I")
        out: Dict[Any, Any] = {}
        for _ in range(n):
            k = _decode(t.inner[0], r)
            out[k] = _decode(t.inner[1], r)
        return out
    if tag in _TUPLE_TAGS:
        return tuple(_decode(it, r) for it in t.inner)
    raise CLDecodeError(f"decoding {t} values is not supported")


# --- "parsed" JSON rendering -----------------------------------------------------


def _parsed(t: CLType, v: Any) -> Any:
    tag = t.tag
    if tag in _BIG_UINT_BITS:
        return str(v)
    if tag is CLTypeTag.KEY:
        label = {KeyKind.ACCOUNT_HASH: "Account", KeyKind.UREF: "URef"}.get(v.kind, "Hash")
        return {label: str(v)}
    if tag in (CLTypeTag.UREF, CLTypeTag.PUBLIC_KEY):
        return str(v)
    if tag is CLTypeTag.BYTE_ARRAY:
        return to_hex(v)
    if tag is CLTypeTag.OPTION:
        return None if v is None else _parsed(t.inner[0], v)
    if tag is CLTypeTag.LIST:
        return [_parsed(t.inner[0], x) for x in v]
    if tag is CLTypeTag.MAP:
        kt, vt = t.inner
        return [{"key": _parsed(kt, k), "value": _parsed(vt, x)} for k, x in dict(v).items()]
    if tag in _TUPLE_TAGS:
        return [_parsed(it, x) for it, x in zip(t.inner, v)]
    return v


def _from_parsed(t: CLType, p: Any) -> Any:
    tag = t.tag
    if tag in _BIG_UINT_BITS or tag in (CLTypeTag.I32, CLTypeTag.I64, CLTypeTag.U8, CLTypeTag.U32, CLTypeTag.U64):
        return int(p)
    if tag is CLTypeTag.KEY:
        if isinstance(p, Mapping):
            (_, p), = p.items()
        return AccountKey.from_string(str(p))
    if tag is CLTypeTag.UREF:
        return AccountKey.from_string(str(p))
    if tag is CLTypeTag.PUBLIC_KEY:
        return PublicKey.from_hex(str(p))
    if tag is CLTypeTag.BYTE_ARRAY:
        return from_hex(str(p))
    if tag is CLTypeTag.OPTION:
        return None if p is None else _from_parsed(t.inner[0], p)
    if tag is CLTypeTag.LIST:
        return [_from_parsed(t.inner[0], x) for x in p]
    if tag is CLTypeTag.MAP:
        kt, vt = t.inner
        if isinstance(p, Mapping):
            return {_from_parsed(kt, k): _from_parsed(vt, x) for k, x in p.items()}
        return {_from_parsed(kt, e["key"]): _from_parsed(vt, e["value"]) for e in p}
    if tag in _TUPLE_TAGS:
        return tuple(_from_parsed(it, x) for it, x in zip(t.inner, p))
    return p


NativeItems = Union[Sequence["CLValue"], Iterable[Any]]


@dataclass(frozen=True)
class CLValue:
    cl_type: CLType
    value: Any

    # --- constructors -------------------------------------------------------

    @classmethod
    def boolean(cls, v: bool) -> "CLValue":
        return cls(BOOL, bool(v))

    @classmethod
    def i32(cls, v: int) -> "CLValue":
        return cls(I32, int(v))

    @classmethod
    def i64(cls, v: int) -> "CLValue":
        return cls(I64, int(v))

    @classmethod
    def u8(cls, v: int) -> "CLValue":
        return cls(U8, _check_uint(v, 8))

    @classmethod
    def u32(cls, v: int) -> "CLValue":
        return cls(U32, _check_uint(v, 32))

    @classmethod
    def u64(cls, v: int) -> "CLValue":
        return cls(U64, _check_uint(v, 64))

    @classmethod
    def u128(cls, v: int) -> "CLValue":
        return cls(U128, _check_uint(v, 128))

    @classmethod
    def u256(cls, v: int) -> "CLValue":
        return cls(U256, _check_uint(v, 256))

    @classmethod
    def u512(cls, v: int) -> "CLValue":
        return cls(U512, _check_uint(v, 512))

    @classmethod
    def unit(cls) -> "CLValue":
        return cls(UNIT, None)

    @classmethod
    def string(cls, v: str) -> "CLValue":
        if not isinstance(v, str):
            raise TypeError(f"String value must be str, got {type(v).__name__}")
        return cls(STRING, v)

    @classmethod
    def key(cls, v: AccountKey) -> "CLValue":
        return cls(KEY, v)

    @classmethod
    def uref(cls, v: AccountKey) -> "CLValue":
        if v.kind is not KeyKind.UREF:
            raise ValueError("URef value needs a uref key")
        return cls(UREF, v)

    @classmethod
    def public_key(cls, v: PublicKey) -> "CLValue":
        return cls(PUBLIC_KEY, v)

    @classmethod
    def byte_array(cls, v: bytes) -> "CLValue":
        data = bytes(v)
        return cls(cl_byte_array(len(data)), data)

    @classmethod
    def option(cls, v: Optional["CLValue"], inner_type: Optional[CLType] = None) -> "CLValue":
        """Some(v), or None when `v` is None (then `inner_type` is required)."""
        if v is None:
            if inner_type is None:
                raise ValueError("Option None needs an explicit inner type")
            return cls(cl_option(inner_type), None)
        return cls(cl_option(v.cl_type), v.value)

    @classmethod
    def list_of(cls, items: NativeItems, item_type: Optional[CLType] = None) -> "CLValue":
        """List from CLValues (type inferred) or natives with an explicit `item_type`."""
        seq = list(items)
        if item_type is None:
            if not seq or not isinstance(seq[0], CLValue):
                raise ValueError("empty or native list needs an explicit item type")
            item_type = seq[0].cl_type
        values = []
        for x in seq:
            if isinstance(x, CLValue):
                if x.cl_type != item_type:
                    raise ValueError(f"list item type {x.cl_type} != {item_type}")
                values.append(x.value)
            else:
                values.append(x)
        return cls(cl_list(item_type), values)

    @classmethod
    def map_of(
        cls,
        entries: Mapping[Any, Any],
        key_type: CLType = STRING,
        value_type: CLType = STRING,
    ) -> "CLValue":
        return cls(cl_map(key_type, value_type), dict(entries))

    @classmethod
    def tuple_of(cls, *items: "CLValue") -> "CLValue":
        """Tuple1..Tuple3 of CLValues."""
        if not 1 <= len(items) <= 3:
            raise ValueError(f"tuples hold 1 to 3 items, got {len(items)}")
        tag = _TUPLE_TAGS[len(items) - 1]
        return cls(CLType(tag, tuple(i.cl_type for i in items)), tuple(i.value for i in items))

    # --- encodings ----------------------------------------------------------

    def serialize(self) -> bytes:
        """Bare value bytes, without length prefix or type."""
        return _encode(self.cl_type, self.value)

    def to_bytes(self) -> bytes:
        """u32 length + value bytes + type bytes (the runtime-argument form)."""
        body = self.serialize()
        return u32_le(len(body)) + body + self.cl_type.to_bytes()

    def to_json(self) -> Dict[str, Any]:
        return {
            "cl_type": self.cl_type.to_json(),
            "bytes": to_hex(self.serialize()),
            "parsed": _parsed(self.cl_type, self.value),
        }

    @classmethod
    def from_bytes(cls, cl_type: CLType, data: bytes) -> "CLValue":
        r = _Reader(bytes(data))
        value = _decode(cl_type, r)
        if r.pos != len(r.data):
            raise CLDecodeError(f"{len(r.data) - r.pos} trailing bytes after {cl_type}")
        return cls(cl_type, value)

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "CLValue":
        """Decode the node form; `bytes` wins over `parsed` when both are present."""
        try:
            cl_type = CLType.from_json(obj["cl_type"])
        except KeyError:
            raise CLDecodeError("CLValue JSON lacks cl_type") from None
        raw = obj.get("bytes")
        if raw is not None:
            return cls.from_bytes(cl_type, from_hex(str(raw)))
        if "parsed" not in obj:
            raise CLDecodeError("CLValue JSON carries neither bytes nor parsed")
        return cls(cl_type, _from_parsed(cl_type, obj["parsed"]))


def _check_uint(v: int, bits: int) -> int:
    n = int(v)
    if n < 0 or n.bit_length() > bits:
        raise ValueError(f"value out of range for U{bits}: {v}")
    return n
