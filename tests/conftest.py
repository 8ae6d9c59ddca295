"""
Shared fixtures: an in-memory node and deterministic key pairs.

`FakeNode` implements the `NodeClient` protocol over plain dicts keyed the
way the node keys global state. Deploys it receives are decoded from their
JSON form and checked (hashes recomputed, approvals present) before an
optional `executor` turns them into execution outcomes.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pytest

from casper_clients.config import ClientConfig
from casper_clients.errors import JsonRpcCode, RpcError
from casper_clients.keys import AccountKey, KeyAlgorithm, PublicKey
from casper_clients.types.clvalue import CLValue
from casper_clients.types.deploy import Deploy
from casper_clients.types.results import (AccountRecord, ContractRecord,
                                          Effect, ExecutionOutcome,
                                          NamedValue, StoredValue)
from casper_clients.utils.bytes import from_hex
from casper_clients.wallet.signer import KeyPair

CONTRACT_HEX = "0a" * 32
PACKAGE_HEX = "0b" * 32
CONTRACT = f"hash-{CONTRACT_HEX}"
PACKAGE = f"hash-{PACKAGE_HEX}"

PAYMENT = 1_000_000_000

# Poll fast so lifecycle tests never sleep for long.
FAST = ClientConfig(chain_name="casper-test", poll_interval=0.01)


@pytest.fixture
def anyio_backend():
    return "asyncio"


def success(*effects: Effect, cost: int = 100_000) -> ExecutionOutcome:
    return ExecutionOutcome(success=True, cost=cost, effects=tuple(effects))


def failure(message: str, cost: int = 100_000) -> ExecutionOutcome:
    return ExecutionOutcome(success=False, cost=cost, error_message=message)


def deploy_args(deploy: Deploy) -> Dict[str, CLValue]:
    """Session arguments of a deploy by name."""
    return {a.name: a.value for a in deploy.session.args}


class FakeNode:
    """In-memory NodeClient."""

    def __init__(self) -> None:
        self.state_root_hash = "5a" * 32
        self.stored: Dict[Tuple[str, Tuple[str, ...]], StoredValue] = {}
        self.dictionaries: Dict[Tuple[str, str, str], CLValue] = {}
        self.accounts: Dict[str, AccountRecord] = {}
        self.outcomes: Dict[str, ExecutionOutcome] = {}
        self.submitted: List[Deploy] = []
        self.calls: List[str] = []
        # fetch_deploy_outcome answers None this many times first
        self.pending_polls = 0
        self.executor: Optional[Callable[[Deploy], ExecutionOutcome]] = None
        self.put_error: Optional[Exception] = None
        self.dictionary_error: Optional[Exception] = None

    async def __aenter__(self) -> "FakeNode":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    # --- seeding ---------------------------------------------------------

    def add_contract(
        self,
        contract: str = CONTRACT,
        package: str = PACKAGE,
        named_keys: Optional[Mapping[str, str]] = None,
    ) -> None:
        record = ContractRecord(
            contract_package_hash=AccountKey.package(from_hex(package.split("-")[-1])),
            named_keys=dict(named_keys or {}),
        )
        self.stored[(contract, ())] = record

    def set_named(self, name: str, value: CLValue, contract: str = CONTRACT) -> None:
        self.stored[(contract, (name,))] = NamedValue(value)

    def set_stored(self, name: str, stored: StoredValue, contract: str = CONTRACT) -> None:
        self.stored[(contract, (name,))] = stored

    def set_item(self, dictionary: str, item_key: str, value: CLValue, contract: str = CONTRACT) -> None:
        self.dictionaries[(contract, dictionary, item_key)] = value

    def item(self, dictionary: str, item_key: str, contract: str = CONTRACT) -> Optional[CLValue]:
        return self.dictionaries.get((contract, dictionary, item_key))

    def add_account(self, public_key: PublicKey, named_keys: Mapping[str, str]) -> None:
        self.accounts[public_key.to_hex()] = AccountRecord(public_key.account_hash(), dict(named_keys))

    # --- NodeClient --------------------------------------------------------

    async def put_deploy(self, deploy: Mapping[str, Any]) -> str:
        self.calls.append("put_deploy")
        if self.put_error is not None:
            raise self.put_error
        received = Deploy.from_json(deploy)
        assert received.verify_hashes()
        assert received.approvals
        self.submitted.append(received)
        if self.executor is not None:
            self.outcomes[received.hash_hex] = self.executor(received)
        return received.hash_hex

    async def fetch_deploy_outcome(self, deploy_hash: str) -> Optional[ExecutionOutcome]:
        self.calls.append("fetch_deploy_outcome")
        if self.pending_polls > 0:
            self.pending_polls -= 1
            return None
        return self.outcomes.get(deploy_hash)

    async def get_state_root_hash(self) -> str:
        self.calls.append("get_state_root_hash")
        return self.state_root_hash

    async def query_state(self, key: str, path: Sequence[str] = ()) -> StoredValue:
        self.calls.append("query_state")
        try:
            return self.stored[(key.lower(), tuple(path))]
        except KeyError:
            raise RpcError(JsonRpcCode.QUERY_FAILED, "Query failed", method="query_global_state") from None

    async def get_dictionary_item(self, contract_hash: str, dictionary: str, item_key: str) -> CLValue:
        self.calls.append("get_dictionary_item")
        if self.dictionary_error is not None:
            raise self.dictionary_error
        try:
            return self.dictionaries[(str(contract_hash).lower(), dictionary, item_key)]
        except KeyError:
            raise RpcError(
                JsonRpcCode.DICTIONARY_ITEM_NOT_FOUND,
                "Dictionary item not found",
                method="state_get_dictionary_item",
            ) from None

    async def get_account_info(self, public_key: PublicKey) -> AccountRecord:
        self.calls.append("get_account_info")
        try:
            return self.accounts[public_key.to_hex()]
        except KeyError:
            raise RpcError(JsonRpcCode.QUERY_FAILED, "No such account", method="state_get_account_info") from None


@pytest.fixture
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def owner() -> KeyPair:
    return KeyPair.from_private_bytes(KeyAlgorithm.ED25519, bytes([1]) * 32)


@pytest.fixture
def user2() -> KeyPair:
    return KeyPair.from_private_bytes(KeyAlgorithm.ED25519, bytes([2]) * 32)


@pytest.fixture
def secp_user() -> KeyPair:
    return KeyPair.from_private_bytes(KeyAlgorithm.SECP256K1, bytes([3]) * 32)


def effects_of(pairs: Iterable[Tuple[str, Any]]) -> Tuple[Effect, ...]:
    """Build WriteCLValue effects from (key, CLValue) pairs."""
    return tuple(Effect(key, "WriteCLValue", value.to_json()) for key, value in pairs)
