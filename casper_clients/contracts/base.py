"""
casper_clients.contracts.base
=============================

`ContractHandle`: the target identity and named-key access shared by every
contract family client.

A handle is bound exactly once, by one of:

- `bind_by_hash(contract_hash)`: calls go to that contract; named keys and
  dictionaries are readable. Unless `skip_eager_load` is set, the family's
  well-known named keys are read right away and cached.
- `bind_by_account_named_key(public_key, label)`: looks the contract hash up
  under an account's named key, then binds by hash.
- `bind_by_package_hash(package_hash, version=None)`: calls go through the
  package (`None` = latest version); named-key reads are refused.

Rebinding raises `HandleAlreadyBound`; build a new client instead.

Named-key reads use one typed accessor per stored-value shape
(`read_named_value`, `read_contract_record`, `read_account_record`,
`read_package_record`). Getting another shape back is a programming error
and raises `UnexpectedStoredValue`.

Example
-------
    from casper_clients.contracts.erc20 import ERC20Client
    from casper_clients.rpc.http import NodeRpcClient

    rpc = NodeRpcClient("http://127.0.0.1:7777/rpc")
    erc20 = ERC20Client(rpc, chain_name="casper-test")
    await erc20.bind_by_hash("hash-…")
    lc = erc20.transfer_tokens(user2, 10_000, sender=owner.public_key, payment_motes=1_000_000_000)
    await lc.submit_and_wait(owner)
"""

from __future__ import annotations

import asyncio
import logging
from enum import IntEnum
from typing import Any, ClassVar, Dict, Optional, Type, TypeVar, Union

from ..config import ClientConfig
from ..errors import (CasperClientError, ContractNotReachable,
                      HandleAlreadyBound, NamedKeyNotFound,
                      NamedKeysUnavailable, NoContractBound, RpcError,
                      UnexpectedStoredValue)
from ..keys import AccountKey, KeyKind, PublicKey
from ..rpc.http import NodeClient
from ..rpc.sse import EventStreamClient
from ..tx.build import (ArgsLike, DeployParams, contract_call, install_deploy,
                        versioned_contract_call)
from ..tx.lifecycle import DeployLifecycle, ResultPostProcessor
from ..types.clvalue import CLValue
from ..types.deploy import Deploy
from ..types.results import (AccountRecord, ContractRecord, NamedValue,
                             PackageRecord, StoredValue)
from .errors import make_result_processor
from .events import ContractEventSubscriber, EventTable

log = logging.getLogger(__name__)

__all__ = ["ContractHandle"]

R = TypeVar("R", NamedValue, ContractRecord, AccountRecord, PackageRecord)

HashArg = Union[str, AccountKey]


def _as_key(value: HashArg, kind: KeyKind) -> AccountKey:
    if isinstance(value, AccountKey):
        key = value
    else:
        key = AccountKey.from_string(value, hash_kind=kind)
    if key.kind.tag != kind.tag:
        raise ValueError(f"expected a {kind.value}, got {key}")
    return key.as_package() if kind is KeyKind.CONTRACT_PACKAGE_HASH else key.as_contract()


class ContractHandle:
    """Base for contract family clients."""

    # Family error enum used to classify failed deploys (None: no mapping).
    error_table: ClassVar[Optional[Type[IntEnum]]] = None
    # Family event table used by `subscriber()` (None: no events).
    event_table: ClassVar[Optional[EventTable]] = None

    def __init__(
        self,
        node: NodeClient,
        chain_name: Optional[str] = None,
        *,
        config: Optional[ClientConfig] = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._node = node
        self.chain_name = chain_name or self._config.chain_name
        self._contract_hash: Optional[AccountKey] = None
        self._package_hash: Optional[AccountKey] = None
        self._version: Optional[int] = None
        self._package_lock = asyncio.Lock()
        # well-known named values read by `_load_named_keys`
        self._named: Dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.target or 'unbound'})"

    # --- identity --------------------------------------------------------

    @property
    def node(self) -> NodeClient:
        return self._node

    @property
    def contract_hash(self) -> Optional[AccountKey]:
        return self._contract_hash

    @property
    def contract_package_hash(self) -> Optional[AccountKey]:
        return self._package_hash

    @property
    def contract_version(self) -> Optional[int]:
        return self._version

    @property
    def target(self) -> Optional[str]:
        if self._contract_hash is not None:
            return str(self._contract_hash)
        if self._package_hash is not None:
            version = "latest" if self._version is None else self._version
            return f"{self._package_hash}@{version}"
        return None

    @property
    def is_bound(self) -> bool:
        return self._contract_hash is not None or self._package_hash is not None

    def _require_unbound(self) -> None:
        if self.is_bound:
            raise HandleAlreadyBound(self.target or "")

    def _require_contract_hash(self) -> AccountKey:
        if self._contract_hash is not None:
            return self._contract_hash
        if self._package_hash is not None:
            raise NamedKeysUnavailable()
        raise NoContractBound()

    # --- binding ---------------------------------------------------------

    async def bind_by_hash(self, contract_hash: HashArg, *, skip_eager_load: bool = False) -> None:
        self._require_unbound()
        key = _as_key(contract_hash, KeyKind.CONTRACT_HASH)
        self._contract_hash = key
        if skip_eager_load:
            return
        try:
            await self._load_named_keys()
        except (RpcError, CasperClientError, ValueError) as e:
            self._contract_hash = None
            self._named.clear()
            raise ContractNotReachable(str(key), str(e)) from e
        log.debug("bound %s to %s", type(self).__name__, key)

    async def bind_by_account_named_key(
        self,
        public_key: PublicKey,
        label: str,
        *,
        skip_eager_load: bool = False,
    ) -> None:
        self._require_unbound()
        account = await self._node.get_account_info(public_key)
        key = account.named_keys.get(label)
        if key is None:
            raise NamedKeyNotFound(label)
        await self.bind_by_hash(key, skip_eager_load=skip_eager_load)

    def bind_by_package_hash(self, package_hash: HashArg, version: Optional[int] = None) -> None:
        """Calls go through the package; `version=None` targets the latest version."""
        self._require_unbound()
        self._package_hash = _as_key(package_hash, KeyKind.CONTRACT_PACKAGE_HASH)
        self._version = None if version is None else int(version)

    async def _load_named_keys(self) -> None:
        """Read and cache the family's well-known named keys."""

    # --- named keys ------------------------------------------------------

    async def _query(self, path: Optional[str]) -> StoredValue:
        contract = self._require_contract_hash()
        return await self._node.query_state(f"hash-{contract.to_hex()}", [path] if path else [])

    async def _read(self, path: Optional[str], shape: Type[R]) -> R:
        stored = await self._query(path)
        if not isinstance(stored, shape):
            raise UnexpectedStoredValue(path or "<contract>", shape.kind.value, stored.kind.value)
        return stored

    async def read_named_value(self, path: str) -> CLValue:
        return (await self._read(path, NamedValue)).value

    async def read_contract_record(self, path: Optional[str] = None) -> ContractRecord:
        """The contract under `path`, or the bound contract itself when omitted."""
        return await self._read(path, ContractRecord)

    async def read_account_record(self, path: str) -> AccountRecord:
        return await self._read(path, AccountRecord)

    async def read_package_record(self, path: str) -> PackageRecord:
        return await self._read(path, PackageRecord)

    async def resolve_package_hash(self) -> AccountKey:
        """
        Package hash of the bound contract, read once and cached. Concurrent
        first callers share a single query.
        """
        if self._package_hash is not None:
            return self._package_hash
        async with self._package_lock:
            if self._package_hash is None:
                record = await self.read_contract_record()
                self._package_hash = record.contract_package_hash
        return self._package_hash

    # --- dictionaries ----------------------------------------------------

    async def dictionary_value(self, dictionary: str, item_key: str) -> CLValue:
        """Raises RpcError(-32003) when the item is absent."""
        contract = self._require_contract_hash()
        return await self._node.get_dictionary_item(f"hash-{contract.to_hex()}", dictionary, item_key)

    # --- deploys ---------------------------------------------------------

    @property
    def post_processor(self) -> Optional[ResultPostProcessor]:
        if self.error_table is None:
            return None
        return make_result_processor(self.error_table)

    def _params(self, sender: PublicKey, ttl_ms: Optional[int]) -> DeployParams:
        return DeployParams(
            account=sender,
            chain_name=self.chain_name,
            ttl_ms=self._config.deploy_ttl_ms if ttl_ms is None else int(ttl_ms),
            gas_price=self._config.gas_price,
        )

    def build_deploy(
        self,
        entry_point: str,
        args: ArgsLike,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> Deploy:
        """By-hash call when bound by hash, versioned call when bound by package."""
        params = self._params(sender, ttl_ms)
        if self._contract_hash is not None:
            return contract_call(self._contract_hash, entry_point, args, params=params, payment_motes=payment_motes)
        if self._package_hash is not None:
            return versioned_contract_call(
                self._package_hash, self._version, entry_point, args, params=params, payment_motes=payment_motes
            )
        raise NoContractBound()

    def lifecycle(self, deploy: Deploy) -> DeployLifecycle:
        return DeployLifecycle(
            self._node,
            deploy,
            post_processor=self.post_processor,
            poll_interval=self._config.poll_interval,
            resolution_timeout=self._config.resolution_timeout,
        )

    def _call(
        self,
        entry_point: str,
        args: ArgsLike,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        return self.lifecycle(self.build_deploy(entry_point, args, sender, payment_motes, ttl_ms))

    def _install(
        self,
        wasm: bytes,
        args: ArgsLike,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        deploy = install_deploy(wasm, args, params=self._params(sender, ttl_ms), payment_motes=payment_motes)
        return self.lifecycle(deploy)

    # --- events ----------------------------------------------------------

    def subscriber(self, stream: EventStreamClient, **kwargs: Any) -> ContractEventSubscriber:
        if self.event_table is None:
            raise NotImplementedError(f"{type(self).__name__} emits no events")
        return ContractEventSubscriber(self, stream, self.event_table, **kwargs)
