"""
casper_clients.contracts.events
===============================

Correlate `DeployProcessed` notifications with one contract package and turn
the event maps the contract writes into typed `DomainEvent`s.

Contracts emit an event by writing a ``Map<String, String>`` to global state.
The map carries ``event_type`` and ``contract_package_hash`` plus optional
``token_id``, ``owner``, ``spender``, ``sender`` and ``recipient`` entries.

Public API
----------
- EventTable(unknown, names) : event_type string -> enum, unknown strings map
  to the `unknown` member and never raise
- correlate(outcome, package_hash, table, deploy_hash) -> List[DomainEvent]
- ContractEventSubscriber(handle, stream, table) : long-lived subscription
  dispatching DomainEvents to listeners

Listeners run synchronously on the stream's reader task, in registration
order. A notification that fails to decode is logged and skipped; a listener
that raises is logged and the remaining listeners still run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import (Any, Callable, Dict, Generic, List, Mapping, Optional,
                    Protocol, TypeVar, Union)

from ..keys import AccountKey
from ..rpc.sse import EventKind, EventStreamClient
from ..types.clvalue import STRING, CLDecodeError, CLType, cl_map
from ..types.results import ExecutionOutcome, TransformKind

log = logging.getLogger(__name__)

__all__ = [
    "EventTable",
    "DomainEvent",
    "EventListener",
    "correlate",
    "normalize_package_hash",
    "ContractEventSubscriber",
]

E = TypeVar("E", bound=Enum)

_STRING_MAP = cl_map(STRING, STRING)
_OPTIONAL_FIELDS = ("token_id", "owner", "spender", "sender", "recipient")
_PACKAGE_PREFIXES = ("contract-package-wasm", "contract-package-", "hash-")


class EventTable(Generic[E]):
    """Closed mapping from `event_type` strings to a family's event enum."""

    def __init__(self, unknown: E, names: Mapping[str, E]) -> None:
        self.unknown = unknown
        self._names = {k.lower(): v for k, v in names.items()}

    def decode(self, name: Optional[str]) -> E:
        if not name:
            return self.unknown
        return self._names.get(name.strip().lower(), self.unknown)

    def __contains__(self, name: str) -> bool:
        return name.strip().lower() in self._names


@dataclass(frozen=True)
class DomainEvent(Generic[E]):
    kind: E
    contract_package_hash: str
    deploy_hash: Optional[str] = None
    token_id: Optional[str] = None
    owner: Optional[str] = None
    spender: Optional[str] = None
    sender: Optional[str] = None
    recipient: Optional[str] = None
    fields: Mapping[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "kind": self.kind.name,
            "contract_package_hash": self.contract_package_hash,
            "deploy_hash": self.deploy_hash,
        }
        for name in _OPTIONAL_FIELDS:
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        return out


EventListener = Callable[[DomainEvent], None]


def normalize_package_hash(value: Union[str, AccountKey]) -> str:
    """Bare lowercase hex of a package hash, whatever prefix it carried."""
    if isinstance(value, AccountKey):
        return value.to_hex()
    s = value.strip().lower()
    for prefix in _PACKAGE_PREFIXES:
        if s.startswith(prefix):
            return s[len(prefix):]
    return s


def _is_string_map(raw: Any) -> bool:
    if not isinstance(raw, Mapping):
        return False
    try:
        return CLType.from_json(raw.get("cl_type")) == _STRING_MAP
    except (ValueError, KeyError, TypeError):
        return False


def correlate(
    outcome: ExecutionOutcome,
    package_hash: Union[str, AccountKey],
    table: EventTable[E],
    deploy_hash: Optional[str] = None,
) -> List[DomainEvent[E]]:
    """
    Events the deploy emitted for `package_hash`, in effect order. Failed
    deploys emit nothing. Decoding errors in a candidate map propagate.
    """
    if not outcome.success:
        return []
    bound = normalize_package_hash(package_hash)
    events: List[DomainEvent[E]] = []
    for effect in outcome.effects:
        if effect.kind != TransformKind.WRITE_CL_VALUE or not _is_string_map(effect.raw):
            continue
        # events are written under a URef
        if not effect.key.lower().startswith("uref-"):
            continue
        value = effect.cl_value()
        if value is None:
            raise CLDecodeError(f"WriteCLValue effect under {effect.key} carries no value")
        m: Mapping[str, str] = value.value
        cph = m.get("contract_package_hash")
        if cph is None or normalize_package_hash(cph) != bound:
            continue
        events.append(
            DomainEvent(
                kind=table.decode(m.get("event_type")),
                contract_package_hash=bound,
                deploy_hash=deploy_hash,
                fields=dict(m),
                **{name: m[name] for name in _OPTIONAL_FIELDS if name in m},
            )
        )
    return events


class PackageResolver(Protocol):
    async def resolve_package_hash(self) -> AccountKey: ...


class ContractEventSubscriber(Generic[E]):
    """
    Subscribes to the event stream and republishes the bound package's events.

    The package hash is resolved lazily on `listen()`. One catch-all callback
    is registered for `DeployProcessed`; `close()` removes it and stops the
    stream.
    """

    def __init__(
        self,
        handle: PackageResolver,
        stream: EventStreamClient,
        table: EventTable[E],
        *,
        callback_id: str = "catch-all-cb",
    ) -> None:
        self._handle = handle
        self._stream = stream
        self._table = table
        self._callback_id = callback_id
        self._listeners: List[EventListener] = []
        self._package_hash: Optional[str] = None

    @property
    def package_hash(self) -> Optional[str]:
        return self._package_hash

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> bool:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    async def listen(self) -> None:
        if self._package_hash is None:
            pkg = await self._handle.resolve_package_hash()
            self._package_hash = normalize_package_hash(pkg)
        self._stream.add_event_callback(EventKind.DEPLOY_PROCESSED, self._callback_id, self._on_event)
        await self._stream.start_listening()
        log.info("listening for events of package %s", self._package_hash)

    async def close(self) -> None:
        self._stream.remove_event_callback(EventKind.DEPLOY_PROCESSED, self._callback_id)
        await self._stream.stop_listening()

    def _on_event(self, kind: EventKind, body: Mapping[str, Any]) -> None:
        if kind is EventKind.DEPLOY_PROCESSED:
            self.handle_deploy_processed(body)

    def handle_deploy_processed(self, body: Mapping[str, Any]) -> List[DomainEvent[E]]:
        """Correlate one DeployProcessed body and dispatch the resulting events."""
        if self._package_hash is None:
            log.warning("DeployProcessed received before the package hash was resolved; skipped")
            return []
        deploy_hash = body.get("deploy_hash")
        try:
            outcome = ExecutionOutcome.from_json(body["execution_result"], block_hash=body.get("block_hash"))
            events = correlate(outcome, self._package_hash, self._table, deploy_hash)
        except Exception as e:  # noqa: BLE001
            log.warning("skipping undecodable DeployProcessed %s: %s", deploy_hash, e)
            return []
        for event in events:
            self._dispatch(event)
        return events

    def _dispatch(self, event: DomainEvent[E]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                log.exception("event listener %r raised for %s", listener, event.kind.name)
