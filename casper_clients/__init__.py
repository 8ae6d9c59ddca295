"""
Casper contract clients for Python.
Convenience exports for the most common client APIs.
"""

from .version import __version__  # noqa: F401

# Core config & errors
from .config import ClientConfig  # noqa: F401
from .errors import (  # noqa: F401
    CasperClientError,
    ConfigurationError,
    ContractError,
    NotFound,
    ResolutionTimeout,
    RpcError,
    UnclassifiedExecutionError,
)

# Keys & values
from .keys import AccountKey, KeyAlgorithm, PublicKey  # noqa: F401
from .types.clvalue import CLValue  # noqa: F401

# RPC
from .rpc.http import NodeClient, NodeRpcClient  # noqa: F401
from .rpc.sse import EventKind, EventStreamClient  # noqa: F401

# Wallet
from .wallet.signer import KeyPair  # noqa: F401

# Deploys
from .tx.build import DeployParams, contract_call, install_deploy  # noqa: F401
from .tx.lifecycle import DeployLifecycle, DeployState, resolve_all  # noqa: F401

# Contracts
from .contracts.base import ContractHandle  # noqa: F401
from .contracts.cep47 import CEP47Client, CEP47Event  # noqa: F401
from .contracts.cep78 import CEP78Client  # noqa: F401
from .contracts.erc20 import ERC20Client  # noqa: F401
from .contracts.events import ContractEventSubscriber, DomainEvent  # noqa: F401

__all__ = [
    "__version__",
    # Core
    "ClientConfig",
    "CasperClientError", "ConfigurationError", "ContractError", "NotFound",
    "ResolutionTimeout", "RpcError", "UnclassifiedExecutionError",
    # Keys & values
    "AccountKey", "KeyAlgorithm", "PublicKey", "CLValue",
    # RPC
    "NodeClient", "NodeRpcClient", "EventKind", "EventStreamClient",
    # Wallet
    "KeyPair",
    # Deploys
    "DeployParams", "contract_call", "install_deploy",
    "DeployLifecycle", "DeployState", "resolve_all",
    # Contracts
    "ContractHandle", "ERC20Client", "CEP47Client", "CEP47Event", "CEP78Client",
    "ContractEventSubscriber", "DomainEvent",
]
