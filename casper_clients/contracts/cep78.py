"""
casper_clients.contracts.cep78
==============================

Client for the CEP-78 enhanced NFT contract.

A CEP-78 instance is configured at install time through a set of modalities
(ownership, kind, holder, whitelist, minting, metadata kind, identifier,
mutability and burn modes), stored under named keys as ``u8`` ordinals and
exposed here as `IntEnum`s with the same ordinals.

Tokens are identified either by an ordinal (``token_id``, u64) or by a hash
string (``token_hash``), depending on `NFTIdentifierMode`. Every token-scoped
operation takes a `TokenId` (int or str) and picks the argument name from
its type.

Token metadata travels as a JSON string. `CEP78TokenMetadata` and
`NFT721TokenMetadata` cover the two built-in schemas; anything with a
``serialize() -> str`` method (or a plain string for the raw kind) works for
minting.

Failed deploys are mapped through `CEP78Error`, e.g.
``ContractError("Deploy not executed. INVALID_TOKEN_OWNER", 6)``.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import (Any, Dict, Iterable, List, Mapping, Optional, Protocol,
                    Tuple, Type, TypeVar, Union)

from ..dictionary import TokenId, hex_item_key, token_item_key
from ..errors import ConfigurationError, ContractError, InvalidArgument
from ..keys import AccountKey, KeyLike, PublicKey, as_account_key
from ..tx.lifecycle import DeployLifecycle
from ..types.clvalue import CLValue, cl_byte_array
from .base import ContractHandle
from .errors import CEP78Error, not_found_default, require_found

__all__ = [
    "NFTOwnershipMode",
    "NFTKind",
    "NFTHolderMode",
    "WhitelistMode",
    "MintingMode",
    "NFTMetadataKind",
    "NFTIdentifierMode",
    "MetadataMutability",
    "BurnMode",
    "JsonSchemaEntry",
    "JsonSchema",
    "TokenMetadata",
    "CEP78TokenMetadata",
    "NFT721TokenMetadata",
    "CEP78InstallArgs",
    "CEP78Client",
]


class NFTOwnershipMode(IntEnum):
    MINTER = 0
    ASSIGNED = 1
    TRANSFERABLE = 2


class NFTKind(IntEnum):
    PHYSICAL = 0
    DIGITAL = 1
    VIRTUAL = 2


class NFTHolderMode(IntEnum):
    ACCOUNTS = 0
    CONTRACTS = 1
    MIXED = 2


class WhitelistMode(IntEnum):
    UNLOCKED = 0
    LOCKED = 1


class MintingMode(IntEnum):
    INSTALLER = 0
    PUBLIC = 1


class NFTMetadataKind(IntEnum):
    CEP78 = 0
    NFT721 = 1
    RAW = 2
    CUSTOM_VALIDATED = 3

    @property
    def dictionary(self) -> str:
        """Dictionary holding token metadata of this kind."""
        return _METADATA_DICTIONARIES[self]


_METADATA_DICTIONARIES = {
    NFTMetadataKind.CEP78: "metadata_cep78",
    NFTMetadataKind.NFT721: "metadata_nft721",
    NFTMetadataKind.RAW: "metadata_raw",
    NFTMetadataKind.CUSTOM_VALIDATED: "metadata_custom_validated",
}


class NFTIdentifierMode(IntEnum):
    ORDINAL = 0
    HASH = 1


class MetadataMutability(IntEnum):
    IMMUTABLE = 0
    MUTABLE = 1


class BurnMode(IntEnum):
    BURNABLE = 0
    NON_BURNABLE = 1


def _dumps(obj: Any) -> str:
    return json.dumps(obj, separators=(",", ":"))


@dataclass
class JsonSchemaEntry:
    name: str
    description: str = ""
    required: bool = False


@dataclass
class JsonSchema:
    """Custom metadata schema, used with `NFTMetadataKind.CUSTOM_VALIDATED`."""

    properties: Dict[str, JsonSchemaEntry] = field(default_factory=dict)

    def serialize(self) -> str:
        return _dumps({"properties": {k: asdict(v) for k, v in self.properties.items()}})

    @classmethod
    def deserialize(cls, data: str) -> "JsonSchema":
        if not data or not data.strip():
            return cls()
        obj = json.loads(data)
        props = obj.get("properties") or {}
        return cls({k: JsonSchemaEntry(**v) for k, v in props.items()})


class TokenMetadata(Protocol):
    def serialize(self) -> str: ...


M = TypeVar("M", bound="_JsonMetadata")


class _JsonMetadata:
    def serialize(self) -> str:
        return _dumps(asdict(self))  # type: ignore[call-overload]

    @classmethod
    def deserialize(cls: Type[M], data: str) -> M:
        obj = json.loads(data)
        return cls(**{k: obj.get(k, "") for k in cls.__dataclass_fields__})  # type: ignore[attr-defined]


@dataclass
class CEP78TokenMetadata(_JsonMetadata):
    name: str = ""
    token_uri: str = ""
    checksum: str = ""


@dataclass
class NFT721TokenMetadata(_JsonMetadata):
    name: str = ""
    symbol: str = ""
    token_uri: str = ""


@dataclass
class CEP78InstallArgs:
    """
    Installation parameters. The first block is required by the contract;
    optional modalities left as None are omitted and take the contract's
    defaults.
    """

    collection_name: str
    collection_symbol: str
    total_token_supply: int
    ownership_mode: NFTOwnershipMode
    nft_kind: NFTKind
    nft_metadata_kind: NFTMetadataKind
    identifier_mode: NFTIdentifierMode
    metadata_mutability: MetadataMutability
    json_schema: Optional[JsonSchema] = None
    minting_mode: Optional[MintingMode] = None
    allow_minting: Optional[bool] = None
    whitelist_mode: Optional[WhitelistMode] = None
    holder_mode: Optional[NFTHolderMode] = None
    contract_whitelist: Tuple[AccountKey, ...] = ()
    burn_mode: Optional[BurnMode] = None

    def named_args(self) -> List[Tuple[str, CLValue]]:
        args = [
            ("collection_name", CLValue.string(self.collection_name)),
            ("collection_symbol", CLValue.string(self.collection_symbol)),
            ("total_token_supply", CLValue.u64(self.total_token_supply)),
            ("ownership_mode", CLValue.u8(self.ownership_mode)),
            ("nft_kind", CLValue.u8(self.nft_kind)),
            ("nft_metadata_kind", CLValue.u8(self.nft_metadata_kind)),
            ("json_schema", CLValue.string(self.json_schema.serialize() if self.json_schema else "")),
            ("identifier_mode", CLValue.u8(self.identifier_mode)),
            ("metadata_mutability", CLValue.u8(self.metadata_mutability)),
        ]
        if self.minting_mode is not None:
            args.append(("minting_mode", CLValue.u8(self.minting_mode)))
        if self.allow_minting is not None:
            args.append(("allow_minting", CLValue.boolean(self.allow_minting)))
        if self.whitelist_mode is not None:
            args.append(("whitelist_mode", CLValue.u8(self.whitelist_mode)))
        if self.holder_mode is not None:
            args.append(("holder_mode", CLValue.u8(self.holder_mode)))
        if self.contract_whitelist:
            args.append(("contract_whitelist", _whitelist(self.contract_whitelist)))
        if self.burn_mode is not None:
            args.append(("burn_mode", CLValue.u8(self.burn_mode)))
        return args


def _whitelist(contracts: Iterable[Union[AccountKey, str]]) -> CLValue:
    hashes = []
    for c in contracts:
        key = c if isinstance(c, AccountKey) else AccountKey.from_string(c)
        hashes.append(key.payload)
    return CLValue.list_of(hashes, item_type=cl_byte_array(32))


def _token_arg(token: TokenId) -> Tuple[str, CLValue]:
    if isinstance(token, bool):
        raise InvalidArgument("token identifier must be an int or a str")
    if isinstance(token, int):
        return ("token_id", CLValue.u64(token))
    if isinstance(token, str):
        return ("token_hash", CLValue.string(token))
    raise InvalidArgument(f"token identifier must be an int or a str, got {type(token).__name__}")


def _metadata_json(meta: Union[TokenMetadata, str]) -> str:
    return meta if isinstance(meta, str) else meta.serialize()


class CEP78Client(ContractHandle):
    error_table = CEP78Error

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._metadata_kind: Optional[NFTMetadataKind] = None

    # --- named keys ------------------------------------------------------

    async def _value(self, name: str) -> Any:
        return (await self.read_named_value(name)).value

    async def get_collection_name(self) -> str:
        return await self._value("collection_name")

    async def get_collection_symbol(self) -> str:
        return await self._value("collection_symbol")

    async def get_token_total_supply(self) -> int:
        return int(await self._value("total_token_supply"))

    async def get_ownership_mode(self) -> NFTOwnershipMode:
        return NFTOwnershipMode(await self._value("ownership_mode"))

    async def get_nft_kind(self) -> NFTKind:
        return NFTKind(await self._value("nft_kind"))

    async def get_nft_metadata_kind(self) -> NFTMetadataKind:
        return NFTMetadataKind(await self._value("nft_metadata_kind"))

    async def get_json_schema(self) -> JsonSchema:
        return JsonSchema.deserialize(await self._value("json_schema"))

    async def get_identifier_mode(self) -> NFTIdentifierMode:
        return NFTIdentifierMode(await self._value("identifier_mode"))

    async def get_metadata_mutability(self) -> MetadataMutability:
        return MetadataMutability(await self._value("metadata_mutability"))

    async def get_minting_mode(self) -> MintingMode:
        return MintingMode(await self._value("minting_mode"))

    async def get_allow_minting(self) -> bool:
        return bool(await self._value("allow_minting"))

    async def get_whitelist_mode(self) -> WhitelistMode:
        return WhitelistMode(await self._value("whitelist_mode"))

    async def get_holder_mode(self) -> NFTHolderMode:
        return NFTHolderMode(await self._value("holder_mode"))

    async def get_contract_whitelist(self) -> List[AccountKey]:
        return [AccountKey.contract(h) for h in await self._value("contract_whitelist")]

    async def get_burn_mode(self) -> BurnMode:
        return BurnMode(await self._value("burn_mode"))

    async def get_number_of_minted_tokens(self) -> int:
        return int(await self._value("number_of_minted_tokens"))

    async def get_receipt_name(self) -> str:
        return await self._value("receipt_name")

    async def get_installer(self) -> AccountKey:
        """Account hash of the installing account."""
        return (await self.read_account_record("installer")).account_hash

    # --- deploys ---------------------------------------------------------

    def install_contract(
        self,
        wasm: bytes,
        install_args: CEP78InstallArgs,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        return self._install(wasm, install_args.named_args(), sender, payment_motes, ttl_ms)

    def set_variables(
        self,
        allow_minting: Optional[bool] = None,
        contract_whitelist: Optional[Iterable[Union[AccountKey, str]]] = None,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args: List[Tuple[str, CLValue]] = []
        if allow_minting is not None:
            args.append(("allow_minting", CLValue.boolean(allow_minting)))
        if contract_whitelist is not None:
            contracts = list(contract_whitelist)
            if not contracts:
                raise ContractError(
                    "ContractWhitelist must contain at least one entry",
                    CEP78Error.EMPTY_CONTRACT_WHITELIST,
                    CEP78Error.EMPTY_CONTRACT_WHITELIST.name,
                )
            args.append(("contract_whitelist", _whitelist(contracts)))
        if not args:
            raise ConfigurationError("No variables to set.")
        return self._call("set_variables", args, sender, payment_motes, ttl_ms)

    def mint(
        self,
        token_owner: KeyLike,
        token_meta_data: Union[TokenMetadata, str],
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args = [
            ("token_owner", CLValue.key(as_account_key(token_owner))),
            ("token_meta_data", CLValue.string(_metadata_json(token_meta_data))),
        ]
        return self._call("mint", args, sender, payment_motes, ttl_ms)

    def burn(
        self,
        token: TokenId,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        return self._call("burn", [_token_arg(token)], sender, payment_motes, ttl_ms)

    def approve(
        self,
        token: TokenId,
        operator: KeyLike,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args = [_token_arg(token), ("operator", CLValue.key(as_account_key(operator)))]
        return self._call("approve", args, sender, payment_motes, ttl_ms)

    def _approval_for_all(
        self,
        approve: bool,
        operator: KeyLike,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int],
    ) -> DeployLifecycle:
        args = [
            ("approve_all", CLValue.boolean(approve)),
            ("operator", CLValue.key(as_account_key(operator))),
        ]
        return self._call("set_approval_for_all", args, sender, payment_motes, ttl_ms)

    def approve_all(
        self,
        operator: KeyLike,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        """Let `operator` manage every token `sender` owns."""
        return self._approval_for_all(True, operator, sender, payment_motes, ttl_ms)

    def remove_approve_all(
        self,
        operator: KeyLike,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        return self._approval_for_all(False, operator, sender, payment_motes, ttl_ms)

    def transfer(
        self,
        token: TokenId,
        source_key: KeyLike,
        target_key: KeyLike,
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args = [
            _token_arg(token),
            ("source_key", CLValue.key(as_account_key(source_key))),
            ("target_key", CLValue.key(as_account_key(target_key))),
        ]
        return self._call("transfer", args, sender, payment_motes, ttl_ms)

    def set_token_metadata(
        self,
        token: TokenId,
        token_meta_data: Union[TokenMetadata, str],
        *,
        sender: PublicKey,
        payment_motes: int,
        ttl_ms: Optional[int] = None,
    ) -> DeployLifecycle:
        args = [
            _token_arg(token),
            ("token_meta_data", CLValue.string(_metadata_json(token_meta_data))),
        ]
        return self._call("set_token_metadata", args, sender, payment_motes, ttl_ms)

    # --- reads -----------------------------------------------------------

    async def _lookup(self, dictionary: str, item_key: str, default: Any = None) -> Any:
        value = await not_found_default(self.dictionary_value(dictionary, item_key), None)
        return default if value is None or value.value is None else value.value

    async def get_balance_of(self, owner: KeyLike) -> int:
        return int(await self._lookup("balances", hex_item_key(as_account_key(owner)), 0))

    async def get_owner_of(self, token: TokenId) -> Optional[AccountKey]:
        return await self._lookup("token_owners", token_item_key(token))

    async def get_first_owner_of(self, token: TokenId) -> Optional[AccountKey]:
        """The account that minted `token`."""
        return await self._lookup("token_issuers", token_item_key(token))

    async def get_approved(self, token: TokenId) -> Optional[AccountKey]:
        return await self._lookup("operator", token_item_key(token))

    async def get_owned_token_identifiers(self, owner: KeyLike) -> List[TokenId]:
        return list(await self._lookup("owned_tokens", hex_item_key(as_account_key(owner)), []))

    async def is_token_burned(self, token: TokenId) -> bool:
        # any entry marks the token burnt, whatever its value
        value = await not_found_default(self.dictionary_value("burnt_tokens", token_item_key(token)), None)
        return value is not None

    async def get_raw_metadata(self, token: TokenId) -> str:
        """Metadata JSON of `token`. A missing entry raises NotFound."""
        if self._metadata_kind is None:
            self._metadata_kind = await self.get_nft_metadata_kind()
        dictionary = self._metadata_kind.dictionary
        item_key = token_item_key(token)
        value = await require_found(
            self.dictionary_value(dictionary, item_key),
            f"No metadata for token {token}",
            dictionary=dictionary,
            item_key=item_key,
        )
        return value.value

    async def get_metadata(self, token: TokenId, cls: Type[M]) -> M:
        return cls.deserialize(await self.get_raw_metadata(token))

    async def get_metadata_dict(self, token: TokenId) -> Mapping[str, Any]:
        return json.loads(await self.get_raw_metadata(token))
