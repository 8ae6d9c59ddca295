"""
Contract family clients and the machinery they share: target binding,
failure classification and event correlation.
"""

from .base import ContractHandle
from .cep47 import CEP47_EVENTS, CEP47Client, CEP47Event
from .cep78 import (BurnMode, CEP78Client, CEP78InstallArgs,
                    CEP78TokenMetadata, JsonSchema, JsonSchemaEntry,
                    MetadataMutability, MintingMode, NFT721TokenMetadata,
                    NFTHolderMode, NFTIdentifierMode, NFTKind,
                    NFTMetadataKind, NFTOwnershipMode, WhitelistMode)
from .erc20 import ERC20Client
from .errors import (CEP47Error, CEP78Error, ERC20Error,
                     make_result_processor, map_execution_failure)
from .events import (ContractEventSubscriber, DomainEvent, EventTable,
                     correlate)

__all__ = [
    "ContractHandle",
    "ERC20Client",
    "CEP47Client",
    "CEP47Event",
    "CEP47_EVENTS",
    "CEP78Client",
    "CEP78InstallArgs",
    "CEP78TokenMetadata",
    "NFT721TokenMetadata",
    "JsonSchema",
    "JsonSchemaEntry",
    "NFTOwnershipMode",
    "NFTKind",
    "NFTHolderMode",
    "WhitelistMode",
    "MintingMode",
    "NFTMetadataKind",
    "NFTIdentifierMode",
    "MetadataMutability",
    "BurnMode",
    "ERC20Error",
    "CEP47Error",
    "CEP78Error",
    "map_execution_failure",
    "make_result_processor",
    "ContractEventSubscriber",
    "DomainEvent",
    "EventTable",
    "correlate",
]
