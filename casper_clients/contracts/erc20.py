"""
casper_clients.contracts.erc20
==============================

Client for the ERC-20 fungible token contract.

Named keys read on bind: ``name``, ``symbol``, ``decimals``, ``total_supply``.

Dictionaries
------------
- ``balances``: item key = base64 of the owner's serialized account key.
  A missing entry means a zero balance.
- ``allowances``: item key = blake2b256(owner key bytes + spender key bytes).
  A missing entry raises `NotFound`; no approval was ever recorded.

Example
-------
    erc20 = ERC20Client(rpc, chain_name="casper-test")
    await erc20.bind_by_account_named_key(owner.public_key, "erc20_token_contract")
    lc = erc20.transfer_tokens(user2.public_key, 10_000,
                               sender=owner.public_key, payment_motes=1_000_000_000)
    await lc.submit_and_wait(owner)
    await erc20.get_balance(user2.public_key)   # 10000
"""

from __future__ import annotations

from typing import Optional

from ..dictionary import base64_item_key, key_pair_item_key
from ..errors import UnknownAccount
from ..keys import KeyLike, PublicKey, as_account_key
from ..tx.lifecycle import DeployLifecycle
from ..types.clvalue import CLValue
from .base import ContractHandle
from .errors import ERC20Error, not_found_default, require_found

__all__ = ["ERC20Client"]


class ERC20Client(ContractHandle):
    error_table = ERC20Error

    async def _load_named_keys(self) -> None:
        self._named["name"] = (await self.read_named_value("name")).value
        self._named["symbol"] = (await self.read_named_value("symbol")).value
        self._named["decimals"] = int((await self.read_named_value("decimals")).value)
        self._named["total_supply"] = int((await self.read_named_value("total_supply")).value)

    @property
    def name(self) -> Optional[str]:
        return self._named.get("name")

    @property
    def symbol(self) -> Optional[str]:
        return self._named.get("symbol")

    @property
    def decimals(self) -> Optional[int]:
        return self._named.get("decimals")

    @property
    def total_supply(self) -> Optional[int]:
        return self._named.get("total_supply")

    # --- deploys ---------------------------------------------------------

    def install_contract(
        self,
        wasm: bytes,
        name: str,
        symbol: str,
        decimals: int,
        total_supply: int,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args = [
            ("name", CLValue.string(name)),
            ("symbol", CLValue.string(symbol)),
            ("decimals", CLValue.u8(decimals)),
            ("total_supply", CLValue.u256(total_supply)),
        ]
        return self._install(wasm, args, sender, payment_motes, ttl_ms)

    def transfer_tokens(
        self,
        recipient: KeyLike,
        amount: int,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args = [
            ("recipient", CLValue.key(as_account_key(recipient))),
            ("amount", CLValue.u256(amount)),
        ]
        return self._call("transfer", args, sender, payment_motes, ttl_ms)

    def approve_spender(
        self,
        spender: KeyLike,
        amount: int,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args = [
            ("spender", CLValue.key(as_account_key(spender))),
            ("amount", CLValue.u256(amount)),
        ]
        return self._call("approve", args, sender, payment_motes, ttl_ms)

    def transfer_tokens_from_owner(
        self,
        owner: KeyLike,
        recipient: KeyLike,
        amount: int,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        """Spend `sender`'s allowance over `owner`'s tokens."""
        args = [
            ("owner", CLValue.key(as_account_key(owner))),
            ("recipient", CLValue.key(as_account_key(recipient))),
            ("amount", CLValue.u256(amount)),
        ]
        return self._call("transfer_from", args, sender, payment_motes, ttl_ms)

    # --- reads -----------------------------------------------------------

    async def get_balance(self, owner: KeyLike) -> int:
        item_key = base64_item_key(as_account_key(owner))
        value = await not_found_default(self.dictionary_value("balances", item_key), None)
        return 0 if value is None else int(value.value)

    async def get_allowance(self, owner: KeyLike, spender: KeyLike) -> int:
        item_key = key_pair_item_key(as_account_key(owner), as_account_key(spender))
        value = await require_found(
            self.dictionary_value("allowances", item_key),
            f"No allowance recorded for {owner} -> {spender}",
            dictionary="allowances",
            item_key=item_key,
            error=UnknownAccount,
        )
        return int(value.value)

