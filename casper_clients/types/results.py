"""
casper_clients.types.results
============================

Read-only views over node results:

- `ExecutionOutcome` / `Effect`: one deploy's execution result, as found in
  `info_get_deploy.execution_results[*]` or a `DeployProcessed` event.
- `NamedValue`, `ContractRecord`, `AccountRecord`, `PackageRecord`: the four
  stored-value shapes a named-key query can return, as a tagged union keyed
  by `StoredValueKind`.

Effects keep the raw transform body; `Effect.cl_value()` decodes
`WriteCLValue` payloads on demand so one undecodable value does not spoil the
whole outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Union

from ..keys import AccountKey, KeyKind
from .clvalue import CLValue

__all__ = [
    "TransformKind",
    "Effect",
    "ExecutionOutcome",
    "StoredValueKind",
    "NamedValue",
    "ContractRecord",
    "AccountRecord",
    "PackageRecord",
    "ContractVersion",
    "StoredValue",
    "parse_stored_value",
    "named_keys_from_json",
]


class TransformKind:
    """Transform names the clients look for."""

    WRITE_CONTRACT = "WriteContract"
    WRITE_CONTRACT_PACKAGE = "WriteContractPackage"
    WRITE_CL_VALUE = "WriteCLValue"


@dataclass(frozen=True)
class Effect:
    key: str
    kind: str
    raw: Any = None

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "Effect":
        transform = obj.get("transform")
        if isinstance(transform, str):
            return cls(str(obj.get("key", "")), transform, None)
        if isinstance(transform, Mapping) and len(transform) == 1:
            (kind, body), = transform.items()
            return cls(str(obj.get("key", "")), str(kind), body)
        raise ValueError(f"malformed transform: {transform!r}")

    def cl_value(self) -> Optional[CLValue]:
        """Decoded value of a WriteCLValue effect, None for other kinds."""
        if self.kind != TransformKind.WRITE_CL_VALUE or self.raw is None:
            return None
        return CLValue.from_json(self.raw)


@dataclass(frozen=True)
class ExecutionOutcome:
    success: bool
    cost: int
    error_message: Optional[str] = None
    block_hash: Optional[str] = None
    effects: Tuple[Effect, ...] = ()

    @classmethod
    def from_json(cls, obj: Mapping[str, Any], *, block_hash: Optional[str] = None) -> "ExecutionOutcome":
        """
        Accepts either ``{"Success": {...}}`` / ``{"Failure": {...}}`` or the
        wrapper ``{"block_hash": ..., "result": {...}}`` found in
        `execution_results`.
        """
        if "result" in obj:
            return cls.from_json(obj["result"], block_hash=obj.get("block_hash", block_hash))
        if "Success" in obj:
            body, success = obj["Success"], True
        elif "Failure" in obj:
            body, success = obj["Failure"], False
        else:
            raise ValueError(f"execution result has neither Success nor Failure: {list(obj)}")
        transforms = (body.get("effect") or {}).get("transforms") or []
        return cls(
            success=success,
            cost=int(body.get("cost", 0)),
            error_message=body.get("error_message"),
            block_hash=block_hash,
            effects=tuple(Effect.from_json(t) for t in transforms),
        )

    def to_json(self) -> Dict[str, Any]:
        transforms = [
            {"key": e.key, "transform": e.kind if e.raw is None else {e.kind: e.raw}}
            for e in self.effects
        ]
        body: Dict[str, Any] = {"effect": {"transforms": transforms}, "cost": str(self.cost)}
        if not self.success:
            body["error_message"] = self.error_message
        return {"block_hash": self.block_hash, "result": {"Success" if self.success else "Failure": body}}

    def first_key_with(self, kind: str) -> Optional[str]:
        for e in self.effects:
            if e.kind == kind:
                return e.key
        return None


# --- stored values ---------------------------------------------------------------


class StoredValueKind(Enum):
    CL_VALUE = "CLValue"
    CONTRACT = "Contract"
    ACCOUNT = "Account"
    CONTRACT_PACKAGE = "ContractPackage"


def named_keys_from_json(items: Any) -> Dict[str, str]:
    """`[{"name": .., "key": ..}, ...]` -> ordered name -> key-string map."""
    if isinstance(items, Mapping):
        return {str(k): str(v) for k, v in items.items()}
    return {str(nk["name"]): str(nk["key"]) for nk in items or ()}


@dataclass(frozen=True)
class NamedValue:
    kind: ClassVar[StoredValueKind] = StoredValueKind.CL_VALUE

    value: CLValue

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "NamedValue":
        return cls(CLValue.from_json(obj))


@dataclass(frozen=True)
class ContractRecord:
    kind: ClassVar[StoredValueKind] = StoredValueKind.CONTRACT

    contract_package_hash: AccountKey
    contract_wasm_hash: str = ""
    named_keys: Dict[str, str] = field(default_factory=dict)
    entry_points: Tuple[str, ...] = ()
    protocol_version: Optional[str] = None

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "ContractRecord":
        return cls(
            contract_package_hash=AccountKey.from_string(
                obj["contract_package_hash"], hash_kind=KeyKind.CONTRACT_PACKAGE_HASH
            ).as_package(),
            contract_wasm_hash=str(obj.get("contract_wasm_hash", "")),
            named_keys=named_keys_from_json(obj.get("named_keys")),
            entry_points=tuple(str(ep.get("name")) for ep in obj.get("entry_points") or ()),
            protocol_version=obj.get("protocol_version"),
        )


@dataclass(frozen=True)
class AccountRecord:
    kind: ClassVar[StoredValueKind] = StoredValueKind.ACCOUNT

    account_hash: AccountKey
    named_keys: Dict[str, str] = field(default_factory=dict)
    main_purse: Optional[str] = None

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "AccountRecord":
        return cls(
            account_hash=AccountKey.from_string(obj["account_hash"]),
            named_keys=named_keys_from_json(obj.get("named_keys")),
            main_purse=obj.get("main_purse"),
        )


@dataclass(frozen=True)
class ContractVersion:
    protocol_version_major: int
    contract_version: int
    contract_hash: AccountKey


@dataclass(frozen=True)
class PackageRecord:
    kind: ClassVar[StoredValueKind] = StoredValueKind.CONTRACT_PACKAGE

    versions: Tuple[ContractVersion, ...] = ()
    disabled_versions: Tuple[Tuple[int, int], ...] = ()
    access_key: Optional[str] = None

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "PackageRecord":
        versions = tuple(
            ContractVersion(
                int(v.get("protocol_version_major", 1)),
                int(v["contract_version"]),
                AccountKey.from_string(v["contract_hash"]),
            )
            for v in obj.get("versions") or ()
        )
        disabled = tuple(
            (int(d.get("protocol_version_major", 1)), int(d["contract_version"]))
            for d in obj.get("disabled_versions") or ()
        )
        return cls(versions=versions, disabled_versions=disabled, access_key=obj.get("access_key"))


StoredValue = Union[NamedValue, ContractRecord, AccountRecord, PackageRecord]

_PARSERS = {
    StoredValueKind.CL_VALUE.value: NamedValue,
    StoredValueKind.CONTRACT.value: ContractRecord,
    StoredValueKind.ACCOUNT.value: AccountRecord,
    StoredValueKind.CONTRACT_PACKAGE.value: PackageRecord,
}


def parse_stored_value(obj: Mapping[str, Any]) -> StoredValue:
    """Parse a node `stored_value` object into its record type."""
    if len(obj) != 1:
        raise ValueError(f"stored_value must have exactly one variant, got {list(obj)}")
    (variant, body), = obj.items()
    try:
        parser = _PARSERS[variant]
    except KeyError:
        raise ValueError(f"unsupported stored_value variant: {variant}") from None
    return parser.from_json(body)
