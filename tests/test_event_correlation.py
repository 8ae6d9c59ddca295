import json

import pytest
from conftest import CONTRACT, FAST, PACKAGE_HEX, effects_of, failure, success

from casper_clients.contracts.cep47 import CEP47_EVENTS, CEP47Client, CEP47Event
from casper_clients.contracts.events import correlate, normalize_package_hash
from casper_clients.rpc.sse import EventKind, EventStreamClient
from casper_clients.types.clvalue import CLDecodeError, CLValue
from casper_clients.types.results import Effect

OTHER_PACKAGE_HEX = "0c" * 32


def _event(event_type, package_hex=PACKAGE_HEX, prefix="contract-package-wasm", **fields):
    m = {"event_type": event_type, "contract_package_hash": prefix + package_hex}
    m.update(fields)
    return CLValue.map_of(m)


def _mint_outcome():
    return success(
        *effects_of([
            ("uref-" + "01" * 32 + "-007", _event("cep47_mint_one", recipient="account-hash-" + "22" * 32, token_id="1")),
            ("uref-" + "02" * 32 + "-007", _event("cep47_mint_one", OTHER_PACKAGE_HEX, token_id="9")),
            ("uref-" + "03" * 32 + "-007", CLValue.u256(1)),
        ]),
        Effect("hash-" + "04" * 32, "Identity", None),
    )


def test_only_the_bound_package_is_reported():
    events = correlate(_mint_outcome(), "hash-" + PACKAGE_HEX, CEP47_EVENTS, "d1")
    assert len(events) == 1
    ev = events[0]
    assert ev.kind is CEP47Event.MINT_ONE
    assert ev.token_id == "1"
    assert ev.recipient == "account-hash-" + "22" * 32
    assert ev.deploy_hash == "d1"
    assert ev.contract_package_hash == PACKAGE_HEX
    assert ev.fields["event_type"] == "cep47_mint_one"
    assert ev.to_dict()["kind"] == "MINT_ONE"
    assert "spender" not in ev.to_dict()


def test_another_package_sees_its_own_events():
    events = correlate(_mint_outcome(), OTHER_PACKAGE_HEX, CEP47_EVENTS)
    assert [e.token_id for e in events] == ["9"]


def test_failed_deploys_emit_nothing():
    assert correlate(failure("User error: 1"), PACKAGE_HEX, CEP47_EVENTS) == []


def test_events_keep_effect_order_and_unknown_types_decode():
    outcome = success(*effects_of([
        ("uref-" + "01" * 32 + "-007", _event("transfer_token", token_id="1")),
        ("uref-" + "02" * 32 + "-007", _event("cep47_something_new", token_id="2")),
        ("uref-" + "03" * 32 + "-007", _event("CEP47_BURN_ONE", token_id="3", prefix="hash-")),
    ]))
    events = correlate(outcome, PACKAGE_HEX, CEP47_EVENTS)
    assert [e.kind for e in events] == [CEP47Event.TRANSFER, CEP47Event.UNKNOWN, CEP47Event.BURN_ONE]
    assert [e.token_id for e in events] == ["1", "2", "3"]


def test_maps_outside_urefs_are_not_events():
    outcome = success(*effects_of([
        ("hash-" + "05" * 32, _event("cep47_mint_one", token_id="1")),
        ("uref-" + "06" * 32 + "-007", _event("cep47_burn_one", token_id="2")),
    ]))
    events = correlate(outcome, PACKAGE_HEX, CEP47_EVENTS)
    assert [(e.kind, e.token_id) for e in events] == [(CEP47Event.BURN_ONE, "2")]


def test_malformed_event_map_is_a_decode_error():
    raw = {"cl_type": {"Map": {"key": "String", "value": "String"}}}
    outcome = success(Effect("uref-" + "07" * 32 + "-007", "WriteCLValue", raw))
    with pytest.raises(CLDecodeError):
        correlate(outcome, PACKAGE_HEX, CEP47_EVENTS)


def test_package_hash_normalisation():
    for raw in ("contract-package-wasm" + PACKAGE_HEX, "contract-package-" + PACKAGE_HEX,
                "hash-" + PACKAGE_HEX, PACKAGE_HEX.upper()):
        assert normalize_package_hash(raw) == PACKAGE_HEX


@pytest.mark.anyio
async def test_subscriber_dispatches_deploy_processed(node, monkeypatch):
    node.add_contract()
    cep47 = CEP47Client(node, config=FAST)
    await cep47.bind_by_hash(CONTRACT, skip_eager_load=True)

    stream = EventStreamClient("http://127.0.0.1:9999/events/main")
    started = []

    async def _start():
        started.append(True)

    monkeypatch.setattr(stream, "start_listening", _start)

    sub = cep47.subscriber(stream)
    received = []

    def _boom(event):
        raise RuntimeError("listener bug")

    sub.add_listener(_boom)
    sub.add_listener(received.append)
    await sub.listen()
    assert started == [True]
    assert sub.package_hash == PACKAGE_HEX

    body = {"deploy_hash": "d2", "block_hash": "b2", "execution_result": _mint_outcome().to_json()}
    stream.dispatch_raw(json.dumps({"DeployProcessed": body}))
    assert [e.token_id for e in received] == ["1"]
    assert received[0].deploy_hash == "d2"

    # undecodable notifications are skipped
    stream.dispatch(EventKind.DEPLOY_PROCESSED, {"deploy_hash": "d3"})
    assert len(received) == 1

    await sub.close()
    stream.dispatch_raw(json.dumps({"DeployProcessed": body}))
    assert len(received) == 1
