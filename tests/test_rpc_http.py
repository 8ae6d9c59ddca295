import json

import httpx
import pytest

from casper_clients.config import ClientConfig
from casper_clients.errors import JsonRpcCode, RpcError
from casper_clients.keys import AccountKey, PublicKey
from casper_clients.rpc.http import NodeRpcClient
from casper_clients.types.clvalue import CLValue
from casper_clients.types.results import ContractRecord

pytestmark = pytest.mark.anyio

URL = "http://node.test:7777/rpc"
SRH = "5a" * 32


class FakeRpc:
    """Answers JSON-RPC calls from a method -> result table; lists are served in order."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        answer = self.routes[payload["method"]]
        if isinstance(answer, list):
            answer = answer.pop(0)
        if isinstance(answer, httpx.Response):
            return answer
        if isinstance(answer, dict) and "error" in answer:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "error": answer["error"]})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": answer})

    @property
    def methods(self):
        return [r["method"] for r in self.requests]


def _client(routes, **kw):
    fake = FakeRpc(routes)
    kw.setdefault("backoff_base", 0.0)
    return NodeRpcClient(URL, transport=httpx.MockTransport(fake), **kw), fake


async def test_state_root_hash_request_shape():
    rpc, fake = _client({"chain_get_state_root_hash": {"state_root_hash": SRH}})
    async with rpc:
        assert await rpc.get_state_root_hash() == SRH
    req = fake.requests[0]
    assert req["jsonrpc"] == "2.0"
    assert req["params"] == []
    assert isinstance(req["id"], int)


async def test_dictionary_item_lookup():
    value = CLValue.u256(10_000)
    rpc, fake = _client({
        "chain_get_state_root_hash": {"state_root_hash": SRH},
        "state_get_dictionary_item": {"stored_value": {"CLValue": value.to_json()}},
    })
    async with rpc:
        got = await rpc.get_dictionary_item(AccountKey.contract(b"\x0a" * 32), "balances", "item")
    assert got == value
    assert fake.methods == ["chain_get_state_root_hash", "state_get_dictionary_item"]
    params = fake.requests[1]["params"]
    assert params["state_root_hash"] == SRH
    assert params["dictionary_identifier"]["ContractNamedKey"] == {
        "key": "hash-" + "0a" * 32,
        "dictionary_name": "balances",
        "dictionary_item_key": "item",
    }


async def test_missing_dictionary_item_keeps_its_code():
    rpc, _ = _client({
        "chain_get_state_root_hash": {"state_root_hash": SRH},
        "state_get_dictionary_item": {"error": {"code": -32003, "message": "Failed to find base key at path"}},
    })
    async with rpc:
        with pytest.raises(RpcError) as ei:
            await rpc.get_dictionary_item("hash-" + "0a" * 32, "balances", "nope")
    assert ei.value.is_not_found
    assert ei.value.code_enum is JsonRpcCode.DICTIONARY_ITEM_NOT_FOUND
    assert ei.value.method == "state_get_dictionary_item"


async def test_query_state_parses_contract_records():
    contract = {
        "contract_package_hash": "contract-package-wasm" + "0b" * 32,
        "contract_wasm_hash": "contract-wasm-" + "0c" * 32,
        "named_keys": [{"name": "balances", "key": "uref-" + "0d" * 32 + "-007"}],
        "entry_points": [{"name": "transfer"}],
        "protocol_version": "1.4.5",
    }
    rpc, fake = _client({"query_global_state": {"stored_value": {"Contract": contract}}})
    async with rpc:
        stored = await rpc.query_state("hash-" + "0a" * 32, [], state_root_hash=SRH)
    assert isinstance(stored, ContractRecord)
    assert stored.contract_package_hash == AccountKey.package(b"\x0b" * 32)
    assert stored.named_keys == {"balances": "uref-" + "0d" * 32 + "-007"}
    assert stored.entry_points == ("transfer",)
    assert fake.requests[0]["params"]["state_identifier"] == {"StateRootHash": SRH}


async def test_reads_retry_transient_http_failures():
    rpc, fake = _client({
        "chain_get_state_root_hash": [
            httpx.Response(503),
            httpx.Response(429),
            {"state_root_hash": SRH},
        ]
    })
    async with rpc:
        assert await rpc.get_state_root_hash() == SRH
    assert len(fake.requests) == 3


async def test_retries_are_bounded():
    rpc, fake = _client({"chain_get_state_root_hash": [httpx.Response(503) for _ in range(3)]}, max_retries=2)
    async with rpc:
        with pytest.raises(RpcError) as ei:
            await rpc.get_state_root_hash()
    assert ei.value.code == JsonRpcCode.TRANSPORT_FAILED
    assert len(fake.requests) == 3


async def test_put_deploy_is_sent_once():
    rpc, fake = _client({"account_put_deploy": [httpx.Response(503), {"deploy_hash": "ab" * 32}]})
    async with rpc:
        with pytest.raises(RpcError) as ei:
            await rpc.put_deploy({"hash": "ab" * 32})
    assert ei.value.code == JsonRpcCode.TRANSPORT_FAILED
    assert len(fake.requests) == 1
    assert fake.requests[0]["params"] == {"deploy": {"hash": "ab" * 32}}


async def test_put_deploy_returns_the_hash():
    rpc, _ = _client({"account_put_deploy": {"api_version": "1.4.5", "deploy_hash": "ab" * 32}})
    async with rpc:
        assert await rpc.put_deploy({"hash": "ab" * 32}) == "ab" * 32


async def test_deploy_outcome_polling_answers():
    executed = {
        "deploy": {},
        "execution_results": [{
            "block_hash": "cc" * 32,
            "result": {"Failure": {"effect": {"transforms": []}, "cost": "12345", "error_message": "User error: 65534"}},
        }],
    }
    rpc, _ = _client({
        "info_get_deploy": [
            {"error": {"code": -32000, "message": "No such deploy"}},
            {"deploy": {}, "execution_results": []},
            executed,
        ]
    })
    async with rpc:
        assert await rpc.fetch_deploy_outcome("ab" * 32) is None
        assert await rpc.fetch_deploy_outcome("ab" * 32) is None
        outcome = await rpc.fetch_deploy_outcome("ab" * 32)
    assert not outcome.success
    assert outcome.cost == 12345
    assert outcome.error_message == "User error: 65534"
    assert outcome.block_hash == "cc" * 32


async def test_account_info():
    pk = PublicKey.from_hex("01" + "aa" * 32)
    account = {
        "account_hash": str(pk.account_hash()),
        "named_keys": [{"name": "erc20_token_contract", "key": "hash-" + "0a" * 32}],
        "main_purse": "uref-" + "01" * 32 + "-007",
    }
    rpc, fake = _client({"state_get_account_info": {"account": account}})
    async with rpc:
        record = await rpc.get_account_info(pk)
    assert record.account_hash == pk.account_hash()
    assert record.named_keys["erc20_token_contract"] == "hash-" + "0a" * 32
    assert fake.requests[0]["params"]["public_key"] == pk.to_hex()


async def test_non_json_response_is_an_rpc_error():
    rpc, _ = _client({"chain_get_state_root_hash": httpx.Response(200, text="<html>oops</html>")})
    async with rpc:
        with pytest.raises(RpcError) as ei:
            await rpc.get_state_root_hash()
    assert ei.value.code == JsonRpcCode.INTERNAL_ERROR
    assert ei.value.http_status == 200


async def test_from_config_uses_configured_headers():
    seen = {}

    def handler(request):
        seen["ua"] = request.headers["user-agent"]
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {"state_root_hash": SRH}})

    config = ClientConfig(node_url=URL, user_agent="tests/1.0")
    async with NodeRpcClient.from_config(config, transport=httpx.MockTransport(handler)) as rpc:
        await rpc.get_state_root_hash()
    assert seen["ua"] == "tests/1.0"
