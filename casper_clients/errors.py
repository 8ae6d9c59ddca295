"""
Typed error classes for the contract clients.

These are raised by rpc/http, tx/lifecycle, contracts/* and the key/codec
helpers so callers can catch specific failure modes while still being able to
catch the base `CasperClientError`.

Taxonomy
--------
- transport: `RpcError` (numeric JSON-RPC code; -32003 is "dictionary item
  not found" and is recovered at read sites where a domain default exists)
- configuration: `ConfigurationError` and subclasses (caller preconditions,
  never retried)
- execution: `ContractError` / `UnclassifiedExecutionError`
- timeout: `ResolutionTimeout` (the deploy's final fate is unknown)

Every typed error carries a human-readable message and a machine-checkable
`code`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

__all__ = [
    "CasperClientError",
    "JsonRpcCode",
    "ClientErrorCode",
    "RpcError",
    "ConfigurationError",
    "NoContractBound",
    "NamedKeyNotFound",
    "NamedKeysUnavailable",
    "HandleAlreadyBound",
    "ContractNotReachable",
    "InvalidArgument",
    "UnexpectedStoredValue",
    "DeployStateError",
    "ResolutionTimeout",
    "ExecutionError",
    "ContractError",
    "UnclassifiedExecutionError",
    "NotFound",
    "UnknownAccount",
    "from_jsonrpc_error",
]


class CasperClientError(Exception):
    """Base class for all client errors."""


class JsonRpcCode(IntEnum):
    # JSON-RPC 2.0
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Node server errors (implementation-defined range: -32099 to -32000)
    NO_SUCH_DEPLOY = -32000
    NO_SUCH_BLOCK = -32001
    PARSE_QUERY_KEY = -32002
    DICTIONARY_ITEM_NOT_FOUND = -32003
    QUERY_FAILED = -32005

    # Client-side transport failure (never sent by a node)
    TRANSPORT_FAILED = -32098


class ClientErrorCode(IntEnum):
    """Codes for errors raised locally, outside any contract's error table."""

    OTHER = 0
    NO_CONTRACT_BOUND = 1001
    NAMED_KEY_NOT_FOUND = 1002
    NAMED_KEYS_UNAVAILABLE = 1003
    HANDLE_ALREADY_BOUND = 1004
    CONTRACT_NOT_REACHABLE = 1005
    INVALID_ARGUMENT = 1006
    UNEXPECTED_STORED_VALUE = 1007
    DEPLOY_STATE = 1008
    RESOLUTION_TIMEOUT = 1009
    UNCLASSIFIED_EXECUTION = 1010


@dataclass(eq=False)
class RpcError(CasperClientError):
    """Raised when a JSON-RPC call returns an error object or the transport fails."""

    code: int
    message: str
    data: Optional[Any] = None
    method: Optional[str] = None
    http_status: Optional[int] = None

    def __str__(self) -> str:
        parts = [f"RPC[{self.method or '-'}] code={self.code} msg={self.message!r}"]
        if self.http_status is not None:
            parts.append(f"http={self.http_status}")
        if self.data is not None:
            parts.append(f"data={self.data!r}")
        return " ".join(parts)

    @property
    def code_enum(self) -> Optional[JsonRpcCode]:
        try:
            return JsonRpcCode(self.code)
        except ValueError:
            return None

    @property
    def is_not_found(self) -> bool:
        return self.code == JsonRpcCode.DICTIONARY_ITEM_NOT_FOUND


# --- Configuration errors ------------------------------------------------------


class ConfigurationError(CasperClientError):
    """A caller precondition was violated. Always fatal, never retried."""

    code = ClientErrorCode.OTHER

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = int(code)


class NoContractBound(ConfigurationError):
    code = ClientErrorCode.NO_CONTRACT_BOUND

    def __init__(self, message: str = "Neither contract nor contract package hash is bound. Check client initialization.") -> None:
        super().__init__(message)


class NamedKeyNotFound(ConfigurationError):
    code = ClientErrorCode.NAMED_KEY_NOT_FOUND

    def __init__(self, label: str) -> None:
        super().__init__(f"Named key '{label}' not found.")
        self.label = label


class NamedKeysUnavailable(ConfigurationError):
    """Named-key and dictionary reads need a contract hash, not only a package hash."""

    code = ClientErrorCode.NAMED_KEYS_UNAVAILABLE

    def __init__(self, message: str = "Handle is bound by contract package hash; bind by contract hash to read named keys.") -> None:
        super().__init__(message)


class HandleAlreadyBound(ConfigurationError):
    code = ClientErrorCode.HANDLE_ALREADY_BOUND

    def __init__(self, current: str) -> None:
        super().__init__(f"Handle already bound to {current}; create a new client to target another contract.")
        self.current = current


class ContractNotReachable(ConfigurationError):
    code = ClientErrorCode.CONTRACT_NOT_REACHABLE

    def __init__(self, contract: str, reason: str) -> None:
        super().__init__(f"Contract {contract} not reachable: {reason}")
        self.contract = contract


class InvalidArgument(ConfigurationError, ValueError):
    code = ClientErrorCode.INVALID_ARGUMENT


class UnexpectedStoredValue(CasperClientError, TypeError):
    """A named key holds a different stored-value shape than the accessor expects."""

    code = ClientErrorCode.UNEXPECTED_STORED_VALUE

    def __init__(self, path: str, expected: str, got: Optional[str]) -> None:
        super().__init__(f"Named key '{path}' holds {got or 'nothing'}, expected {expected}")
        self.path = path
        self.expected = expected
        self.got = got


# --- Lifecycle errors ------------------------------------------------------------


class DeployStateError(CasperClientError, RuntimeError):
    """A lifecycle operation was called in a state that does not allow it."""

    code = ClientErrorCode.DEPLOY_STATE


class ResolutionTimeout(CasperClientError, TimeoutError):
    """
    The local wait for a deploy result ran out. The deploy itself may still
    execute later; only the wait was abandoned.
    """

    code = ClientErrorCode.RESOLUTION_TIMEOUT

    def __init__(self, deploy_hash: str, timeout: float) -> None:
        super().__init__(f"Timed out after {timeout:g}s waiting for deploy {deploy_hash}")
        self.deploy_hash = deploy_hash
        self.timeout = timeout


# --- Execution errors ------------------------------------------------------------


class ExecutionError(CasperClientError):
    """On-chain execution rejected the deploy."""

    def __init__(self, message: str, code: int, deploy_hash: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = int(code)
        self.deploy_hash = deploy_hash


class ContractError(ExecutionError):
    """
    Execution failed with a user error code known to (or at least reported by)
    the contract. `name` is the contract error enum member, or "UNKNOWN" when
    the code is not in the family's table.
    """

    def __init__(self, message: str, code: int, name: str = "UNKNOWN", deploy_hash: Optional[str] = None) -> None:
        super().__init__(message, code, deploy_hash)
        self.name = name


class UnclassifiedExecutionError(ExecutionError):
    """Execution failed and the error message carried no trailing user error code."""

    def __init__(self, raw_message: str, deploy_hash: Optional[str] = None) -> None:
        super().__init__(raw_message, ClientErrorCode.UNCLASSIFIED_EXECUTION, deploy_hash)
        self.raw_message = raw_message


# --- Read-site "absent entry" errors ---------------------------------------------


class NotFound(CasperClientError, LookupError):
    """A dictionary entry the operation requires does not exist (code -32003)."""

    code = JsonRpcCode.DICTIONARY_ITEM_NOT_FOUND

    def __init__(self, message: str, dictionary: Optional[str] = None, item_key: Optional[str] = None) -> None:
        super().__init__(message)
        self.dictionary = dictionary
        self.item_key = item_key


class UnknownAccount(NotFound):
    """The account the operation requires is not known to the contract."""


def from_jsonrpc_error(
    err_obj: Dict[str, Any],
    *,
    method: Optional[str] = None,
    http_status: Optional[int] = None,
) -> RpcError:
    """
    Convert a JSON-RPC error object into RpcError.

    `err_obj` should resemble: {"code": int, "message": str, "data": any?}
    """
    code = int(err_obj.get("code", JsonRpcCode.INTERNAL_ERROR))
    message = str(err_obj.get("message", "Unknown JSON-RPC error"))
    return RpcError(
        code=code,
        message=message,
        data=err_obj.get("data"),
        method=method,
        http_status=http_status,
    )
