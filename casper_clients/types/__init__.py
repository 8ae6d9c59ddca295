"""
Value and record types exchanged with a node: the CLValue codec, the deploy
model and execution/stored-value results.
"""

from .clvalue import CLDecodeError, CLType, CLTypeTag, CLValue
from .deploy import (Approval, Deploy, DeployHeader, ExecutableDeployItem,
                     ModuleBytes, NamedArg, StoredContractByHash,
                     StoredVersionedContractByHash)
from .results import (AccountRecord, ContractRecord, Effect, ExecutionOutcome,
                      NamedValue, PackageRecord, StoredValue, StoredValueKind,
                      TransformKind, parse_stored_value)

__all__ = [
    "CLDecodeError",
    "CLType",
    "CLTypeTag",
    "CLValue",
    "Approval",
    "Deploy",
    "DeployHeader",
    "ExecutableDeployItem",
    "ModuleBytes",
    "NamedArg",
    "StoredContractByHash",
    "StoredVersionedContractByHash",
    "AccountRecord",
    "ContractRecord",
    "Effect",
    "ExecutionOutcome",
    "NamedValue",
    "PackageRecord",
    "StoredValue",
    "StoredValueKind",
    "TransformKind",
    "parse_stored_value",
]
