"""
casper_clients.tx.build
=======================

Builders for unsigned deploys: contract installation, a call by contract
hash, and a versioned call by contract package hash.

The builders are pure: they return a `Deploy` with its body hash and deploy
hash computed and no approvals. Sign it with `Deploy.approve(key_pair)` (or
through `DeployLifecycle.sign`) before submitting.

Payment is always the standard payment: an empty ModuleBytes item with a
single `amount` U512 argument, in motes. No currency conversion happens here.

Examples
--------
    from casper_clients.tx.build import DeployParams, contract_call
    from casper_clients.types.clvalue import CLValue
    from casper_clients.types.deploy import NamedArg

    params = DeployParams(account=kp.public_key, chain_name="casper-test")
    deploy = contract_call(
        contract_hash, "transfer",
        [NamedArg("recipient", CLValue.key(user2)), NamedArg("amount", CLValue.u256(10_000))],
        params=params, payment_motes=1_000_000_000,
    )
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

from ..config import DEFAULT_GAS_PRICE, DEFAULT_TTL_MS
from ..errors import InvalidArgument
from ..keys import AccountKey, PublicKey
from ..types.clvalue import CLValue
from ..types.deploy import (Deploy, DeployHeader, ExecutableDeployItem,
                            ModuleBytes, NamedArg, StoredContractByHash,
                            StoredVersionedContractByHash)
from ..utils.hash import blake2b256

__all__ = [
    "DeployParams",
    "ArgsLike",
    "named_args",
    "payment",
    "make_header",
    "make_deploy",
    "install_deploy",
    "contract_call",
    "versioned_contract_call",
]

ArgsLike = Iterable[Union[NamedArg, Tuple[str, CLValue]]]
HashLike = Union[AccountKey, bytes]


@dataclass(frozen=True)
class DeployParams:
    """Header inputs shared by every builder."""

    account: PublicKey
    chain_name: str
    ttl_ms: int = DEFAULT_TTL_MS
    gas_price: int = DEFAULT_GAS_PRICE
    timestamp_ms: Optional[int] = None
    dependencies: Tuple[bytes, ...] = ()


def named_args(args: ArgsLike) -> Tuple[NamedArg, ...]:
    """Normalise NamedArg / (name, CLValue) pairs, keeping their order."""
    out = []
    for a in args:
        if isinstance(a, NamedArg):
            out.append(a)
        else:
            name, value = a
            if not isinstance(value, CLValue):
                raise InvalidArgument(f"argument {name!r} must be a CLValue, got {type(value).__name__}")
            out.append(NamedArg(str(name), value))
    return tuple(out)


def payment(amount_motes: int) -> ModuleBytes:
    """Standard payment of `amount_motes`."""
    if isinstance(amount_motes, bool) or not isinstance(amount_motes, int):
        raise InvalidArgument(f"payment must be an integer number of motes, got {amount_motes!r}")
    if amount_motes < 0:
        raise InvalidArgument(f"payment must be non-negative, got {amount_motes}")
    return ModuleBytes(b"", (NamedArg("amount", CLValue.u512(amount_motes)),))


def make_header(
    params: DeployParams,
    payment_item: ExecutableDeployItem,
    session: ExecutableDeployItem,
) -> DeployHeader:
    if params.ttl_ms <= 0:
        raise InvalidArgument(f"ttl must be positive, got {params.ttl_ms}")
    timestamp = params.timestamp_ms if params.timestamp_ms is not None else int(time.time() * 1000)
    return DeployHeader(
        account=params.account,
        timestamp_ms=int(timestamp),
        ttl_ms=int(params.ttl_ms),
        gas_price=int(params.gas_price),
        body_hash=blake2b256(payment_item.to_bytes() + session.to_bytes()),
        dependencies=tuple(bytes(d) for d in params.dependencies),
        chain_name=params.chain_name,
    )


def make_deploy(params: DeployParams, payment_item: ExecutableDeployItem, session: ExecutableDeployItem) -> Deploy:
    header = make_header(params, payment_item, session)
    return Deploy(hash=header.hash(), header=header, payment=payment_item, session=session)


def _hash_bytes(h: HashLike) -> bytes:
    raw = h.payload if isinstance(h, AccountKey) else bytes(h)
    if len(raw) != 32:
        raise InvalidArgument(f"contract hash must be 32 bytes, got {len(raw)}")
    return raw


def _entry_point(name: str) -> str:
    if not name:
        raise InvalidArgument("entry point name must not be empty")
    return name


def install_deploy(
    wasm: bytes,
    args: ArgsLike,
    *,
    params: DeployParams,
    payment_motes: int,
) -> Deploy:
    """Session runs `wasm` with `args`, installing the contract it carries."""
    if not wasm:
        raise InvalidArgument("installation needs non-empty wasm bytes")
    session = ModuleBytes(bytes(wasm), named_args(args))
    return make_deploy(params, payment(payment_motes), session)


def contract_call(
    contract_hash: HashLike,
    entry_point: str,
    args: ArgsLike,
    *,
    params: DeployParams,
    payment_motes: int,
) -> Deploy:
    session = StoredContractByHash(_hash_bytes(contract_hash), _entry_point(entry_point), named_args(args))
    return make_deploy(params, payment(payment_motes), session)


def versioned_contract_call(
    package_hash: HashLike,
    version: Optional[int],
    entry_point: str,
    args: ArgsLike,
    *,
    params: DeployParams,
    payment_motes: int,
) -> Deploy:
    """Call through the package; `version=None` means the latest enabled version."""
    if version is not None and (isinstance(version, bool) or int(version) < 0):
        raise InvalidArgument(f"invalid contract version: {version!r}")
    session = StoredVersionedContractByHash(
        _hash_bytes(package_hash),
        None if version is None else int(version),
        _entry_point(entry_point),
        named_args(args),
    )
    return make_deploy(params, payment(payment_motes), session)
