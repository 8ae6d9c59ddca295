"""
casper_clients.contracts.cep47
==============================

Client for the CEP-47 non-fungible token contract.

Token ids are non-negative integers passed to the contract as U256 values,
always inside a list (``token_ids``) even for single-token calls. Token
metadata is a ``Map<String, String>``.

Dictionaries (values are stored as ``Option``; an absent entry reads as the
domain default shown)
-------------------------------------------------------------------------
- ``balances``              hex(owner account hash)              -> 0
- ``owners``                decimal token id                     -> None
- ``metadata``              decimal token id                     -> None
- ``owned_tokens_by_index`` blake2b256(owner key + U256(index))  -> None
- ``allowances``            blake2b256(owner key + String(id))   -> None

Events
------
The contract writes one string map per event; `CEP47Client.subscriber()`
turns them into `DomainEvent[CEP47Event]`.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional

from ..dictionary import (hex_item_key, key_and_string_item_key,
                          key_and_u256_item_key, token_item_key)
from ..errors import InvalidArgument
from ..keys import AccountKey, KeyLike, PublicKey, as_account_key
from ..tx.lifecycle import DeployLifecycle
from ..types.clvalue import STRING, U256, CLValue, cl_map
from .base import ContractHandle
from .errors import CEP47Error, not_found_default
from .events import EventTable

__all__ = ["CEP47Event", "CEP47_EVENTS", "CEP47Client"]

Metadata = Mapping[str, str]


class CEP47Event(Enum):
    UNKNOWN = "unknown"
    MINT_ONE = "cep47_mint_one"
    BURN_ONE = "cep47_burn_one"
    APPROVE = "cep47_approve_token"
    TRANSFER = "cep47_transfer_token"
    UPDATE_METADATA = "cep47_metadata_update"


def _event_names() -> Dict[str, CEP47Event]:
    names: Dict[str, CEP47Event] = {}
    for member in CEP47Event:
        if member is CEP47Event.UNKNOWN:
            continue
        names[member.value] = member
        names[member.value[len("cep47_"):]] = member
    return names


CEP47_EVENTS: EventTable[CEP47Event] = EventTable(CEP47Event.UNKNOWN, _event_names())

_META = cl_map(STRING, STRING)


def _token_ids(token_ids: Iterable[int]) -> CLValue:
    ids = list(token_ids)
    if not ids:
        raise InvalidArgument("at least one token id is required")
    for t in ids:
        if isinstance(t, bool) or not isinstance(t, int) or t < 0:
            raise InvalidArgument(f"token id must be a non-negative integer, got {t!r}")
    return CLValue.list_of(ids, item_type=U256)


def _meta(meta: Metadata) -> CLValue:
    return CLValue.map_of({str(k): str(v) for k, v in meta.items()})


class CEP47Client(ContractHandle):
    error_table = CEP47Error
    event_table = CEP47_EVENTS

    async def _load_named_keys(self) -> None:
        self._named["name"] = (await self.read_named_value("name")).value
        self._named["symbol"] = (await self.read_named_value("symbol")).value
        self._named["meta"] = dict((await self.read_named_value("meta")).value)
        self._named["total_supply"] = int((await self.read_named_value("total_supply")).value)

    @property
    def name(self) -> Optional[str]:
        return self._named.get("name")

    @property
    def symbol(self) -> Optional[str]:
        return self._named.get("symbol")

    @property
    def meta(self) -> Optional[Dict[str, str]]:
        return self._named.get("meta")

    @property
    def total_supply(self) -> Optional[int]:
        return self._named.get("total_supply")

    # --- deploys ---------------------------------------------------------

    def install_contract(
        self,
        wasm: bytes,
        contract_name: str,
        name: str,
        symbol: str,
        meta: Metadata,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args = [
            ("name", CLValue.string(name)),
            ("symbol", CLValue.string(symbol)),
            ("meta", _meta(meta)),
            ("contract_name", CLValue.string(contract_name)),
        ]
        return self._install(wasm, args, sender, payment_motes, ttl_ms)

    def mint_one(
        self,
        recipient: KeyLike,
        token_id: int,
        meta: Metadata,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        return self.mint_many(
            recipient, [token_id], [meta], sender=sender, payment_motes=payment_motes, ttl_ms=ttl_ms
        )

    def mint_many(
        self,
        recipient: KeyLike,
        token_ids: Iterable[int],
        metas: Iterable[Metadata],
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        ids = list(token_ids)
        meta_list = [{str(k): str(v) for k, v in m.items()} for m in metas]
        if len(ids) != len(meta_list):
            raise InvalidArgument(f"{len(ids)} token ids but {len(meta_list)} metadata maps")
        args = [
            ("recipient", CLValue.key(as_account_key(recipient))),
            ("token_ids", _token_ids(ids)),
            ("token_metas", CLValue.list_of(meta_list, item_type=_META)),
        ]
        return self._call("mint", args, sender, payment_motes, ttl_ms)

    def mint_copies(
        self,
        recipient: KeyLike,
        token_ids: Iterable[int],
        meta: Metadata,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        """Mint one token per id, all sharing `meta`."""
        ids = list(token_ids)
        args = [
            ("recipient", CLValue.key(as_account_key(recipient))),
            ("token_ids", _token_ids(ids)),
            ("token_meta", _meta(meta)),
            ("count", CLValue.u32(len(ids))),
        ]
        return self._call("mint_copies", args, sender, payment_motes, ttl_ms)

    def transfer_token(
        self,
        recipient: KeyLike,
        token_ids: Iterable[int],
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args = [
            ("recipient", CLValue.key(as_account_key(recipient))),
            ("token_ids", _token_ids(token_ids)),
        ]
        return self._call("transfer", args, sender, payment_motes, ttl_ms)

    def transfer_token_from(
        self,
        owner: KeyLike,
        recipient: KeyLike,
        token_ids: Iterable[int],
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args = [
            ("sender", CLValue.key(as_account_key(owner))),
            ("recipient", CLValue.key(as_account_key(recipient))),
            ("token_ids", _token_ids(token_ids)),
        ]
        return self._call("transfer_from", args, sender, payment_motes, ttl_ms)

    def approve(
        self,
        spender: KeyLike,
        token_ids: Iterable[int],
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args = [
            ("spender", CLValue.key(as_account_key(spender))),
            ("token_ids", _token_ids(token_ids)),
        ]
        return self._call("approve", args, sender, payment_motes, ttl_ms)

    def burn_one(
        self,
        owner: KeyLike,
        token_id: int,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        return self.burn_many(owner, [token_id], sender=sender, payment_motes=payment_motes, ttl_ms=ttl_ms)

    def burn_many(
        self,
        owner: KeyLike,
        token_ids: Iterable[int],
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args = [
            ("owner", CLValue.key(as_account_key(owner))),
            ("token_ids", _token_ids(token_ids)),
        ]
        return self._call("burn", args, sender, payment_motes, ttl_ms)

    def update_token_metadata(
        self,
        token_id: int,
        meta: Metadata,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args = [
            ("token_id", CLValue.u256(token_id)),
            ("token_meta", _meta(meta)),
        ]
        return self._call("update_token_meta", args, sender, payment_motes, ttl_ms)

    # --- reads -----------------------------------------------------------

    async def _lookup(self, dictionary: str, item_key: str):
        value = await not_found_default(self.dictionary_value(dictionary, item_key), None)
        return None if value is None else value.value

    async def get_balance_of(self, owner: KeyLike) -> int:
        value = await self._lookup("balances", hex_item_key(as_account_key(owner)))
        return 0 if value is None else int(value)

    async def get_owner_of(self, token_id: int) -> Optional[AccountKey]:
        return await self._lookup("owners", token_item_key(token_id))

    async def get_token_metadata(self, token_id: int) -> Optional[Dict[str, str]]:
        value = await self._lookup("metadata", token_item_key(token_id))
        return None if value is None else dict(value)

    async def get_token_id_by_index(self, owner: KeyLike, index: int) -> Optional[int]:
        value = await self._lookup("owned_tokens_by_index", key_and_u256_item_key(as_account_key(owner), index))
        return None if value is None else int(value)

    async def get_tokens_of(self, owner: KeyLike) -> List[int]:
        """Every token id `owner` holds, walking the owner index from 0."""
        count = await self.get_balance_of(owner)
        tokens = []
        for index in range(count):
            token_id = await self.get_token_id_by_index(owner, index)
            if token_id is not None:
                tokens.append(token_id)
        return tokens

    async def get_approved_spender(self, owner: KeyLike, token_id: int) -> Optional[AccountKey]:
        item_key = key_and_string_item_key(as_account_key(owner), token_item_key(token_id))
        return await self._lookup("allowances", item_key)
