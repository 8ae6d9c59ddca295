from __future__ import annotations

"""
HTTP JSON-RPC client (async) for a Casper node.

- Uses httpx.AsyncClient; pass `transport=` to plug in httpx.MockTransport
  in tests.
- Retries idempotent reads on transient transport failures and 429/5xx with
  jittered exponential backoff. `put_deploy` is sent exactly once.
- Error objects become `RpcError` with the node's numeric code, so callers
  can single out -32003 ("dictionary item not found").

Example:
    from casper_clients.rpc.http import NodeRpcClient

    async with NodeRpcClient("http://localhost:7777/rpc") as rpc:
        srh = await rpc.get_state_root_hash()
        value = await rpc.get_dictionary_item(contract, "balances", item_key)
"""

import json
import logging
import time
from dataclasses import dataclass, field
from itertools import count
from typing import (Any, Dict, Iterable, Mapping, Optional, Protocol,
                    Sequence, Union)

import httpx

from ..config import ClientConfig
from ..errors import JsonRpcCode, RpcError, from_jsonrpc_error
from ..keys import AccountKey, PublicKey
from ..types.clvalue import CLValue
from ..types.results import (AccountRecord, ExecutionOutcome, NamedValue,
                             StoredValue, parse_stored_value)
from ..utils.retry import RetryError, aretry_call
from ..version import user_agent

log = logging.getLogger(__name__)

JSON = Union[dict, list, str, int, float, bool, None]
Params = Union[Sequence[Any], Mapping[str, Any], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _is_retriable_http(status: int) -> bool:
    # Typical transient HTTP statuses: 429/502/503/504
    return status in (429, 502, 503, 504)


class _TransientHttp(Exception):
    """Retriable HTTP status; never escapes this module."""

    def __init__(self, status: int) -> None:
        super().__init__(f"HTTP {status}")
        self.status = status


class NodeClient(Protocol):
    """
    The node operations the contract clients depend on. `NodeRpcClient`
    implements it over HTTP; tests provide in-memory fakes.
    """

    async def put_deploy(self, deploy: Mapping[str, Any]) -> str: ...

    async def fetch_deploy_outcome(self, deploy_hash: str) -> Optional[ExecutionOutcome]: ...

    async def get_state_root_hash(self) -> str: ...

    async def query_state(self, key: str, path: Sequence[str] = ()) -> StoredValue: ...

    async def get_dictionary_item(self, contract_hash: str, dictionary: str, item_key: str) -> CLValue: ...

    async def get_account_info(self, public_key: PublicKey) -> AccountRecord: ...


@dataclass
class NodeRpcClient:
    """Asynchronous JSON-RPC 2.0 client for the node's /rpc endpoint."""

    url: str
    timeout: float = 10.0
    max_retries: int = 3
    backoff_base: float = 0.25
    backoff_max: float = 3.0
    headers: Optional[Mapping[str, str]] = None
    transport: Optional[httpx.AsyncBaseTransport] = None
    _id_counter: Iterable[int] = field(default_factory=lambda: count(start=_now_ms()))
    _client: Optional[httpx.AsyncClient] = field(init=False, default=None)

    def __post_init__(self) -> None:
        merged_headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": user_agent(),
        }
        if self.headers:
            merged_headers.update(dict(self.headers))
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers=merged_headers,
            transport=self.transport,
        )

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs: Any) -> "NodeRpcClient":
        return cls(
            url=config.node_url,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            backoff_base=config.backoff_factor,
            headers=config.http_headers(),
            **kwargs,
        )

    # --- context manager -------------------------------------------------

    async def __aenter__(self) -> "NodeRpcClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # --- generic ---------------------------------------------------------

    async def request(self, method: str, params: Params = None, *, retry: bool = True) -> JSON:
        """Perform one JSON-RPC request and return `result` or raise RpcError."""
        payload = self._make_payload(method, params)
        if not retry:
            return await self._send_once(payload)
        try:
            return await aretry_call(
                self._send_once,
                payload,
                retries=self.max_retries,
                base=self.backoff_base,
                max_delay=self.backoff_max,
                exceptions=(httpx.TransportError, _TransientHttp),
                on_retry=lambda attempt, exc, delay: log.debug(
                    "rpc %s attempt %d failed (%s); retrying in %.2fs", method, attempt, exc, delay
                ),
            )
        except RetryError as e:
            raise RpcError(
                code=JsonRpcCode.TRANSPORT_FAILED,
                message="RPC transport failed",
                data=str(e.last_exception),
                method=method,
            ) from e

    # --- node operations -------------------------------------------------

    async def put_deploy(self, deploy: Mapping[str, Any]) -> str:
        """Submit a deploy. Not retried: a deploy that reached the node may be charged."""
        try:
            res = await self.request("account_put_deploy", {"deploy": dict(deploy)}, retry=False)
        except (httpx.TransportError, _TransientHttp) as e:
            raise RpcError(
                code=JsonRpcCode.TRANSPORT_FAILED,
                message="Network error",
                data=str(e),
                method="account_put_deploy",
            ) from e
        if not isinstance(res, Mapping) or "deploy_hash" not in res:
            raise RpcError(code=JsonRpcCode.INTERNAL_ERROR, message="Malformed put_deploy result", data=res, method="account_put_deploy")
        return str(res["deploy_hash"])

    async def get_deploy(self, deploy_hash: str) -> Dict[str, Any]:
        res = await self.request("info_get_deploy", {"deploy_hash": deploy_hash})
        if not isinstance(res, dict):
            raise RpcError(code=JsonRpcCode.INTERNAL_ERROR, message="Malformed info_get_deploy result", data=res, method="info_get_deploy")
        return res

    async def fetch_deploy_outcome(self, deploy_hash: str) -> Optional[ExecutionOutcome]:
        """
        One look at the deploy's execution results. Returns None while the
        deploy is unknown to the node or not yet executed.
        """
        try:
            res = await self.get_deploy(deploy_hash)
        except RpcError as e:
            if e.code == JsonRpcCode.NO_SUCH_DEPLOY:
                log.debug("deploy %s not yet known to node", deploy_hash)
                return None
            raise
        results = res.get("execution_results") or []
        if not results:
            return None
        return ExecutionOutcome.from_json(results[0])

    async def get_state_root_hash(self) -> str:
        res = await self.request("chain_get_state_root_hash", [])
        if not isinstance(res, Mapping) or not res.get("state_root_hash"):
            raise RpcError(code=JsonRpcCode.INTERNAL_ERROR, message="Malformed state root result", data=res, method="chain_get_state_root_hash")
        return str(res["state_root_hash"])

    async def query_state(
        self,
        key: str,
        path: Sequence[str] = (),
        *,
        state_root_hash: Optional[str] = None,
    ) -> StoredValue:
        srh = state_root_hash or await self.get_state_root_hash()
        res = await self.request(
            "query_global_state",
            {
                "state_identifier": {"StateRootHash": srh},
                "key": str(key),
                "path": list(path),
            },
        )
        return parse_stored_value(self._stored_value(res, "query_global_state"))

    async def get_dictionary_item(
        self,
        contract_hash: Union[str, AccountKey],
        dictionary: str,
        item_key: str,
        *,
        state_root_hash: Optional[str] = None,
    ) -> CLValue:
        """Raises RpcError(-32003) when the item does not exist."""
        srh = state_root_hash or await self.get_state_root_hash()
        key = str(contract_hash)
        if isinstance(contract_hash, AccountKey):
            key = f"hash-{contract_hash.to_hex()}"
        res = await self.request(
            "state_get_dictionary_item",
            {
                "state_root_hash": srh,
                "dictionary_identifier": {
                    "ContractNamedKey": {
                        "key": key,
                        "dictionary_name": dictionary,
                        "dictionary_item_key": item_key,
                    }
                },
            },
        )
        stored = parse_stored_value(self._stored_value(res, "state_get_dictionary_item"))
        if not isinstance(stored, NamedValue):
            raise RpcError(code=JsonRpcCode.INTERNAL_ERROR, message="Dictionary item is not a CLValue", data=res, method="state_get_dictionary_item")
        return stored.value

    async def get_account_info(self, public_key: PublicKey) -> AccountRecord:
        res = await self.request(
            "state_get_account_info",
            {"public_key": public_key.to_hex(), "block_identifier": None},
        )
        if not isinstance(res, Mapping) or not isinstance(res.get("account"), Mapping):
            raise RpcError(code=JsonRpcCode.INTERNAL_ERROR, message="Malformed account info", data=res, method="state_get_account_info")
        return AccountRecord.from_json(res["account"])

    # --- internals -------------------------------------------------------

    @staticmethod
    def _stored_value(res: JSON, method: str) -> Mapping[str, Any]:
        if not isinstance(res, Mapping) or not isinstance(res.get("stored_value"), Mapping):
            raise RpcError(code=JsonRpcCode.INTERNAL_ERROR, message="Result lacks stored_value", data=res, method=method)
        return res["stored_value"]

    def _make_payload(self, method: str, params: Params) -> Dict[str, Any]:
        if params is None:
            params = []
        elif isinstance(params, Mapping):
            params = dict(params)
        elif isinstance(params, Sequence) and not isinstance(params, (str, bytes, bytearray)):
            params = list(params)
        else:
            params = [params]  # type: ignore[list-item]
        return {"jsonrpc": "2.0", "id": next(self._id_counter), "method": method, "params": params}

    async def _send_once(self, payload: Dict[str, Any]) -> JSON:
        if self._client is None:
            raise RuntimeError("NodeRpcClient is closed")
        method = payload["method"]
        body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        log.debug("rpc -> %s id=%s", method, payload["id"])
        r = await self._client.post(self.url, content=body)
        if _is_retriable_http(r.status_code):
            raise _TransientHttp(r.status_code)
        try:
            resp = r.json()
        except ValueError as e:
            raise RpcError(
                code=JsonRpcCode.INTERNAL_ERROR,
                message="Non-JSON response from RPC",
                data=f"HTTP {r.status_code}: {r.text[:256]}",
                method=method,
                http_status=r.status_code,
            ) from e

        if not isinstance(resp, dict):
            raise RpcError(code=JsonRpcCode.INTERNAL_ERROR, message="Invalid JSON-RPC response type", data=type(resp).__name__, method=method)
        if "error" in resp and resp["error"] is not None:
            err = resp["error"] if isinstance(resp["error"], Mapping) else {"message": str(resp["error"])}
            log.debug("rpc <- %s error code=%s", method, err.get("code"))
            raise from_jsonrpc_error(err, method=method, http_status=r.status_code)
        if "result" not in resp:
            raise RpcError(code=JsonRpcCode.INTERNAL_ERROR, message="Malformed JSON-RPC response", data=resp, method=method)
        return resp["result"]


__all__ = ["NodeClient", "NodeRpcClient"]
