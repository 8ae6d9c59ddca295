"""
casper_clients.contracts.errors
===============================

Failure classification for contract calls and reads.

Execution failures
    The node reports a failed deploy with a free-text error message. A user
    error raised by contract code ends with ``User error: <n>``; only that
    trailing integer is trusted. It is looked up in the contract family's
    error enum and surfaced as `ContractError` (name ``UNKNOWN`` when the
    family does not know the code). A message without a trailing code becomes
    `UnclassifiedExecutionError` carrying the raw text.

Absent dictionary entries
    A dictionary read for a missing item fails with RpcError -32003. Read
    sites either recover a domain default (`not_found_default`) or require
    the entry and re-raise it as `NotFound` / `UnknownAccount`
    (`require_found`). Every other error propagates unchanged.
"""

from __future__ import annotations

import re
from enum import IntEnum
from typing import Awaitable, Optional, Type, TypeVar, Union

from ..errors import (ContractError, ExecutionError, NotFound, RpcError,
                      UnclassifiedExecutionError)
from ..tx.lifecycle import ResultPostProcessor
from ..types.results import ExecutionOutcome

__all__ = [
    "USER_ERROR_RE",
    "UNKNOWN_ERROR_NAME",
    "ERC20Error",
    "CEP47Error",
    "CEP78Error",
    "error_name",
    "map_execution_failure",
    "make_result_processor",
    "not_found_default",
    "require_found",
]

USER_ERROR_RE = re.compile(r"User error: ([0-9]+)$")
UNKNOWN_ERROR_NAME = "UNKNOWN"

T = TypeVar("T")
D = TypeVar("D")


class ERC20Error(IntEnum):
    INVALID_CONTEXT = 65535
    INSUFFICIENT_BALANCE = 65534
    INSUFFICIENT_ALLOWANCE = 65533
    OVERFLOW = 65532


class CEP47Error(IntEnum):
    PERMISSION_DENIED = 1
    WRONG_ARGUMENTS = 2
    TOKEN_ID_ALREADY_EXISTS = 3
    TOKEN_ID_DOESNT_EXIST = 4


class CEP78Error(IntEnum):
    OTHER_ERROR = 0
    INVALID_ACCOUNT = 1
    MISSING_INSTALLER = 2
    INVALID_INSTALLER = 3
    UNEXPECTED_KEY_VARIANT = 4
    MISSING_TOKEN_OWNER = 5
    INVALID_TOKEN_OWNER = 6
    FAILED_TO_GET_ARG_BYTES = 7
    FAILED_TO_CREATE_DICTIONARY = 8
    MISSING_STORAGE_UREF = 9
    INVALID_STORAGE_UREF = 10
    MISSING_OWNERS_UREF = 11
    INVALID_OWNERS_UREF = 12
    FAILED_TO_ACCESS_STORAGE_DICTIONARY = 13
    FAILED_TO_ACCESS_OWNERSHIP_DICTIONARY = 14
    DUPLICATE_MINTED = 15
    FAILED_TO_CONVERT_TO_CL_VALUE = 16
    MISSING_COLLECTION_NAME = 17
    INVALID_COLLECTION_NAME = 18
    FAILED_TO_SERIALIZE_META_DATA = 19
    MISSING_ACCOUNT = 20
    MISSING_MINTING_STATUS = 21
    INVALID_MINTING_STATUS = 22
    MISSING_COLLECTION_SYMBOL = 23
    INVALID_COLLECTION_SYMBOL = 24
    MISSING_TOTAL_TOKEN_SUPPLY = 25
    INVALID_TOTAL_TOKEN_SUPPLY = 26
    MISSING_TOKEN_ID = 27
    INVALID_TOKEN_IDENTIFIER = 28
    MISSING_TOKEN_OWNERS = 29
    MISSING_ACCOUNT_HASH = 30
    INVALID_ACCOUNT_HASH = 31
    TOKEN_SUPPLY_DEPLETED = 32
    MISSING_OWNED_TOKENS_DICTIONARY = 33
    TOKEN_ALREADY_BELONGS_TO_MINTER_FATAL = 34
    FATAL_TOKEN_ID_DUPLICATION = 35
    INVALID_MINTER = 36
    MISSING_MINTING_MODE = 37
    INVALID_MINTING_MODE = 38
    MISSING_INSTALLER_KEY = 39
    FAILED_TO_CONVERT_TO_ACCOUNT_HASH = 40
    INVALID_BURNER = 41
    PREVIOUSLY_BURNT_TOKEN = 42
    MISSING_ALLOW_MINTING = 43
    INVALID_ALLOW_MINTING = 44
    MISSING_NUMBER_OF_MINTED_TOKENS = 45
    INVALID_NUMBER_OF_MINTED_TOKENS = 46
    MISSING_TOKEN_META_DATA = 47
    INVALID_TOKEN_META_DATA = 48
    MISSING_APPROVED_ACCOUNT_HASH = 49
    INVALID_APPROVED_ACCOUNT_HASH = 50
    MISSING_APPROVED_TOKENS_DICTIONARY = 51
    TOKEN_ALREADY_APPROVED = 52
    MISSING_APPROVE_ALL = 53
    INVALID_APPROVE_ALL = 54
    MISSING_OPERATOR = 55
    INVALID_OPERATOR = 56
    PHANTOM = 57
    CONTRACT_ALREADY_INITIALIZED = 58
    MINTING_IS_PAUSED = 59
    FAILURE_TO_PARSE_ACCOUNT_HASH = 60
    VACANT_VALUE_IN_DICTIONARY = 61
    MISSING_OWNERSHIP_MODE = 62
    INVALID_OWNERSHIP_MODE = 63
    INVALID_TOKEN_MINTER = 64
    MISSING_OWNED_TOKENS = 65
    INVALID_ACCOUNT_KEY_IN_DICTIONARY = 66
    MISSING_JSON_SCHEMA = 67
    INVALID_JSON_SCHEMA = 68
    INVALID_KEY = 69
    INVALID_OWNED_TOKENS = 70
    MISSING_TOKEN_URI = 71
    INVALID_TOKEN_URI = 72
    MISSING_NFT_KIND = 73
    INVALID_NFT_KIND = 74
    MISSING_HOLDER_MODE = 75
    INVALID_HOLDER_MODE = 76
    MISSING_WHITELIST_MODE = 77
    INVALID_WHITELIST_MODE = 78
    MISSING_CONTRACT_WHITE_LIST = 79
    INVALID_CONTRACT_WHITELIST = 80
    UNLISTED_CONTRACT_HASH = 81
    INVALID_CONTRACT = 82
    EMPTY_CONTRACT_WHITELIST = 83
    MISSING_RECEIPT_NAME = 84
    INVALID_RECEIPT_NAME = 85
    INVALID_JSON_METADATA = 86
    INVALID_JSON_FORMAT = 87
    FAILED_TO_PARSE_CEP99_METADATA = 88
    FAILED_TO_PARSE_721_METADATA = 89
    FAILED_TO_PARSE_CUSTOM_METADATA = 90
    INVALID_CEP99_METADATA = 91
    FAILED_TO_JSONIFY_CEP99_METADATA = 92
    INVALID_NFT721_METADATA = 93
    FAILED_TO_JSONIFY_NFT721_METADATA = 94
    INVALID_CUSTOM_METADATA = 95
    MISSING_NFT_METADATA_KIND = 96
    INVALID_NFT_METADATA_KIND = 97
    MISSING_IDENTIFIER_MODE = 98
    INVALID_IDENTIFIER_MODE = 99
    FAILED_TO_PARSE_TOKEN_ID = 100
    MISSING_METADATA_MUTABILITY = 101
    INVALID_METADATA_MUTABILITY = 102
    FAILED_TO_JSONIFY_CUSTOM_METADATA = 103
    FORBIDDEN_METADATA_UPDATE = 104
    MISSING_BURN_MODE = 105
    INVALID_BURN_MODE = 106


def error_name(table: Type[IntEnum], code: int) -> str:
    try:
        return table(code).name
    except ValueError:
        return UNKNOWN_ERROR_NAME


def map_execution_failure(
    outcome: ExecutionOutcome,
    table: Type[IntEnum],
    deploy_hash: Optional[str] = None,
) -> Optional[ExecutionError]:
    """Return the typed error for a failed outcome, or None on success."""
    if outcome.success:
        return None
    message = (outcome.error_message or "").rstrip()
    m = USER_ERROR_RE.search(message)
    if m is None:
        return UnclassifiedExecutionError(message, deploy_hash)
    code = int(m.group(1))
    name = error_name(table, code)
    return ContractError(f"Deploy not executed. {name}", code, name, deploy_hash)


def make_result_processor(table: Type[IntEnum]) -> ResultPostProcessor:
    """A post-processor raising the mapped error for failed outcomes."""

    def _process(outcome: ExecutionOutcome, deploy_hash: str) -> None:
        err = map_execution_failure(outcome, table, deploy_hash)
        if err is not None:
            raise err

    return _process


async def not_found_default(call: Awaitable[T], default: D) -> Union[T, D]:
    """Await `call`; an RpcError -32003 yields `default` instead."""
    try:
        return await call
    except RpcError as e:
        if e.is_not_found:
            return default
        raise


async def require_found(
    call: Awaitable[T],
    message: str,
    *,
    dictionary: Optional[str] = None,
    item_key: Optional[str] = None,
    error: Type[NotFound] = NotFound,
) -> T:
    """Await `call`; an RpcError -32003 is re-raised as `error` (code -32003)."""
    try:
        return await call
    except RpcError as e:
        if e.is_not_found:
            raise error(message, dictionary=dictionary, item_key=item_key) from e
        raise
