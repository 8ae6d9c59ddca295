"""
ERC-20 client against an in-memory ledger that executes deploys the way the
contract does: balances keyed by base64 of the account key, allowances by the
hash of both keys.
"""

from typing import Optional

import pytest
from conftest import CONTRACT, FAST, PACKAGE, PAYMENT, failure, success

from casper_clients.contracts.erc20 import ERC20Client
from casper_clients.dictionary import base64_item_key, key_pair_item_key
from casper_clients.errors import (ContractError, ContractNotReachable,
                                   HandleAlreadyBound, JsonRpcCode,
                                   NamedKeyNotFound, NotFound, RpcError,
                                   UnknownAccount)
from casper_clients.keys import AccountKey
from casper_clients.types.clvalue import CLValue
from casper_clients.types.deploy import ModuleBytes, StoredContractByHash
from casper_clients.types.results import Effect

pytestmark = pytest.mark.anyio

SUPPLY = 1_000_000


class ERC20Ledger:
    def __init__(self, node, holder: Optional[AccountKey] = None, supply: int = SUPPLY) -> None:
        self.node = node
        node.executor = self.execute
        if holder is not None:
            self._install(holder, "Acme Token", "ACME", 5, supply)

    def _install(self, holder, name, symbol, decimals, supply):
        self.node.add_contract()
        self.node.set_named("name", CLValue.string(name))
        self.node.set_named("symbol", CLValue.string(symbol))
        self.node.set_named("decimals", CLValue.u8(decimals))
        self.node.set_named("total_supply", CLValue.u256(supply))
        self._set_balance(holder, supply)

    def balance(self, key: AccountKey) -> int:
        value = self.node.item("balances", base64_item_key(key))
        return 0 if value is None else value.value

    def allowance(self, owner: AccountKey, spender: AccountKey) -> int:
        value = self.node.item("allowances", key_pair_item_key(owner, spender))
        return 0 if value is None else value.value

    def _set_balance(self, key, amount):
        self.node.set_item("balances", base64_item_key(key), CLValue.u256(amount))

    def _move(self, source, target, amount):
        if self.balance(source) < amount:
            return failure("User error: 65534")
        self._set_balance(source, self.balance(source) - amount)
        self._set_balance(target, self.balance(target) + amount)
        return success()

    def execute(self, deploy):
        session = deploy.session
        args = {a.name: a.value.value for a in session.args}
        caller = deploy.header.account.account_hash()
        if isinstance(session, ModuleBytes):
            self._install(caller, args["name"], args["symbol"], args["decimals"], args["total_supply"])
            return success(
                Effect(PACKAGE, "WriteContractPackage", None),
                Effect(CONTRACT, "WriteContract", None),
            )
        assert isinstance(session, StoredContractByHash)
        if session.entry_point == "transfer":
            return self._move(caller, args["recipient"], args["amount"])
        if session.entry_point == "approve":
            item_key = key_pair_item_key(caller, args["spender"])
            self.node.set_item("allowances", item_key, CLValue.u256(args["amount"]))
            return success()
        if session.entry_point == "transfer_from":
            allowed = self.allowance(args["owner"], caller)
            if allowed < args["amount"]:
                return failure("User error: 65533")
            outcome = self._move(args["owner"], args["recipient"], args["amount"])
            if outcome.success:
                item_key = key_pair_item_key(args["owner"], caller)
                self.node.set_item("allowances", item_key, CLValue.u256(allowed - args["amount"]))
            return outcome
        return failure("User error: 65535")


async def _bound(node, owner):
    ERC20Ledger(node, owner.public_key.account_hash())
    erc20 = ERC20Client(node, config=FAST)
    await erc20.bind_by_hash(CONTRACT)
    return erc20


async def test_bind_reads_token_metadata(node, owner):
    erc20 = await _bound(node, owner)
    assert erc20.name == "Acme Token"
    assert erc20.symbol == "ACME"
    assert erc20.decimals == 5
    assert erc20.total_supply == SUPPLY
    assert erc20.contract_hash == AccountKey.contract(b"\x0a" * 32)


async def test_transfer_conserves_supply(node, owner, user2):
    erc20 = await _bound(node, owner)
    lc = erc20.transfer_tokens(user2.public_key, 10_000, sender=owner.public_key, payment_motes=PAYMENT)
    outcome = await lc.submit_and_wait(owner, timeout=5)
    assert outcome.success

    owner_balance = await erc20.get_balance(owner.public_key)
    user2_balance = await erc20.get_balance(user2.public_key)
    assert user2_balance == 10_000
    assert owner_balance + user2_balance == SUPPLY

    deploy = node.submitted[0]
    assert deploy.header.chain_name == "casper-test"
    assert deploy.session.entry_point == "transfer"


async def test_insufficient_balance_is_a_contract_error(node, owner, user2):
    erc20 = await _bound(node, owner)
    lc = erc20.transfer_tokens(owner.public_key, 1, sender=user2.public_key, payment_motes=PAYMENT)
    with pytest.raises(ContractError) as ei:
        await lc.submit_and_wait(user2, timeout=5)
    assert ei.value.code == 65534
    assert ei.value.name == "INSUFFICIENT_BALANCE"
    assert ei.value.deploy_hash == lc.deploy_hash
    assert not lc.is_success


async def test_missing_balance_reads_zero_but_missing_allowance_raises(node, owner, user2):
    erc20 = await _bound(node, owner)
    assert await erc20.get_balance(user2.public_key) == 0
    with pytest.raises(UnknownAccount) as ei:
        await erc20.get_allowance(owner.public_key, user2.public_key)
    assert isinstance(ei.value, NotFound)
    assert ei.value.code == JsonRpcCode.DICTIONARY_ITEM_NOT_FOUND
    assert ei.value.dictionary == "allowances"


async def test_other_rpc_errors_propagate(node, owner, user2):
    erc20 = await _bound(node, owner)
    node.dictionary_error = RpcError(JsonRpcCode.QUERY_FAILED, "Query failed")
    with pytest.raises(RpcError) as ei:
        await erc20.get_balance(user2.public_key)
    assert ei.value.code == JsonRpcCode.QUERY_FAILED


async def test_approve_then_transfer_from(node, owner, user2, secp_user):
    erc20 = await _bound(node, owner)
    await erc20.approve_spender(user2.public_key, 500, sender=owner.public_key, payment_motes=PAYMENT).submit_and_wait(owner, timeout=5)
    assert await erc20.get_allowance(owner.public_key, user2.public_key) == 500

    lc = erc20.transfer_tokens_from_owner(
        owner.public_key, secp_user.public_key, 200, sender=user2.public_key, payment_motes=PAYMENT
    )
    await lc.submit_and_wait(user2, timeout=5)
    assert await erc20.get_balance(secp_user.public_key) == 200
    assert await erc20.get_allowance(owner.public_key, user2.public_key) == 300

    over = erc20.transfer_tokens_from_owner(
        owner.public_key, secp_user.public_key, 301, sender=user2.public_key, payment_motes=PAYMENT
    )
    with pytest.raises(ContractError) as ei:
        await over.submit_and_wait(user2, timeout=5)
    assert ei.value.name == "INSUFFICIENT_ALLOWANCE"


async def test_bind_by_account_named_key(node, owner):
    ERC20Ledger(node, owner.public_key.account_hash())
    node.add_account(owner.public_key, {"erc20_token_contract": CONTRACT})
    erc20 = ERC20Client(node, config=FAST)
    await erc20.bind_by_account_named_key(owner.public_key, "erc20_token_contract")
    assert erc20.symbol == "ACME"

    other = ERC20Client(node, config=FAST)
    with pytest.raises(NamedKeyNotFound):
        await other.bind_by_account_named_key(owner.public_key, "missing_label")
    assert not other.is_bound


async def test_unreachable_contract_rolls_back_binding(node):
    node.add_contract()
    erc20 = ERC20Client(node, config=FAST)
    with pytest.raises(ContractNotReachable):
        await erc20.bind_by_hash(CONTRACT)
    assert not erc20.is_bound


async def test_rebinding_is_refused(node, owner):
    erc20 = await _bound(node, owner)
    with pytest.raises(HandleAlreadyBound):
        await erc20.bind_by_hash("hash-" + "0c" * 32)
    with pytest.raises(HandleAlreadyBound):
        erc20.bind_by_package_hash("hash-" + "0b" * 32)


async def test_install_arguments(node, owner):
    erc20 = ERC20Client(node, config=FAST)
    lc = erc20.install_contract(b"\x00asm", "Acme Token", "ACME", 5, SUPPLY, sender=owner.public_key, payment_motes=PAYMENT)
    args = {a.name: a.value for a in lc.deploy.session.args}
    assert list(args) == ["name", "symbol", "decimals", "total_supply"]
    assert args["decimals"] == CLValue.u8(5)
    assert args["total_supply"] == CLValue.u256(SUPPLY)


async def test_partial_load_leaves_no_cached_metadata(node):
    node.add_contract()
    node.set_named("name", CLValue.string("Acme Token"))
    node.set_named("symbol", CLValue.string("ACME"))
    erc20 = ERC20Client(node, config=FAST)
    with pytest.raises(ContractNotReachable):
        await erc20.bind_by_hash(CONTRACT)
    assert erc20.name is None
    assert erc20.symbol is None


async def test_install_bind_transfer_conserves_supply(node, owner, user2):
    ERC20Ledger(node)
    erc20 = ERC20Client(node, config=FAST)
    install = erc20.install_contract(b"\x00asm", "Acme Token", "ACME", 5, SUPPLY, sender=owner.public_key, payment_motes=PAYMENT)
    await install.submit_and_wait(owner, timeout=5)
    assert install.is_success
    assert install.installed_contract_hash == AccountKey.contract(b"\x0a" * 32)

    await erc20.bind_by_hash(install.installed_contract_hash)
    assert erc20.decimals == 5
    assert erc20.total_supply == SUPPLY

    await erc20.transfer_tokens(user2.public_key, 10_000, sender=owner.public_key, payment_motes=PAYMENT).submit_and_wait(owner, timeout=5)
    owner_balance = await erc20.get_balance(owner.public_key)
    user2_balance = await erc20.get_balance(user2.public_key)
    assert user2_balance == 10_000
    assert owner_balance + user2_balance == SUPPLY
