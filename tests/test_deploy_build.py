import pytest

from casper_clients.errors import InvalidArgument
from casper_clients.keys import AccountKey
from casper_clients.tx.build import (DeployParams, contract_call,
                                     install_deploy, named_args, payment,
                                     versioned_contract_call)
from casper_clients.types.clvalue import CLValue
from casper_clients.types.deploy import (Deploy, ModuleBytes, NamedArg,
                                         StoredContractByHash,
                                         StoredVersionedContractByHash,
                                         format_timestamp, format_ttl,
                                         parse_timestamp, parse_ttl)
from casper_clients.utils.hash import blake2b256

CONTRACT = AccountKey.contract(b"\x0a" * 32)
PACKAGE = AccountKey.package(b"\x0b" * 32)
RECIPIENT = AccountKey.account(b"\x22" * 32)
TIMESTAMP = 1_700_000_000_000


def _params(kp, **kw):
    return DeployParams(account=kp.public_key, chain_name="casper-test", timestamp_ms=TIMESTAMP, **kw)


def _transfer(kp, amount=10_000, **kw):
    args = [("recipient", CLValue.key(RECIPIENT)), ("amount", CLValue.u256(amount))]
    return contract_call(CONTRACT, "transfer", args, params=_params(kp, **kw), payment_motes=1_000_000_000)


def test_contract_call_shape(owner):
    deploy = _transfer(owner)
    assert isinstance(deploy.session, StoredContractByHash)
    assert deploy.session.hash == CONTRACT.payload
    assert deploy.session.entry_point == "transfer"
    assert [a.name for a in deploy.session.args] == ["recipient", "amount"]

    assert isinstance(deploy.payment, ModuleBytes)
    assert deploy.payment.module_bytes == b""
    assert deploy.payment.args == (NamedArg("amount", CLValue.u512(1_000_000_000)),)

    assert deploy.header.ttl_ms == 1_800_000
    assert deploy.header.gas_price == 1
    assert deploy.approvals == []


def test_hashes_cover_header_and_body(owner):
    deploy = _transfer(owner)
    assert deploy.header.body_hash == blake2b256(deploy.payment.to_bytes() + deploy.session.to_bytes())
    assert deploy.hash == blake2b256(deploy.header.to_bytes())
    assert deploy.verify_hashes()
    assert deploy.header.to_bytes().startswith(owner.public_key.to_bytes())


def test_hash_is_deterministic(owner):
    assert _transfer(owner).hash == _transfer(owner).hash
    assert _transfer(owner).hash != _transfer(owner, amount=10_001).hash
    assert _transfer(owner).hash != _transfer(owner, ttl_ms=60_000).hash


def test_json_round_trip_keeps_identity(owner):
    deploy = _transfer(owner)
    deploy.approve(owner)
    back = Deploy.from_json(deploy.to_json())
    assert back.hash == deploy.hash
    assert back.verify_hashes()
    assert back.approvals == deploy.approvals
    assert deploy.to_json()["header"]["ttl"] == "30m"


def test_versioned_call_encodes_optional_version(owner):
    latest = versioned_contract_call(PACKAGE, None, "mint", [], params=_params(owner), payment_motes=1)
    assert isinstance(latest.session, StoredVersionedContractByHash)
    raw = latest.session.to_bytes()
    assert raw[:1] == b"\x03"
    assert raw[33:34] == b"\x00"

    pinned = versioned_contract_call(PACKAGE, 2, "mint", [], params=_params(owner), payment_motes=1)
    assert pinned.session.to_bytes()[33:38] == b"\x01\x02\x00\x00\x00"
    assert pinned.to_json()["session"]["StoredVersionedContractByHash"]["version"] == 2

    with pytest.raises(InvalidArgument):
        versioned_contract_call(PACKAGE, -1, "mint", [], params=_params(owner), payment_motes=1)


def test_install_deploy_carries_wasm(owner):
    deploy = install_deploy(b"\x00asm", [("name", CLValue.string("Token"))], params=_params(owner), payment_motes=5)
    assert isinstance(deploy.session, ModuleBytes)
    assert deploy.session.module_bytes == b"\x00asm"
    with pytest.raises(InvalidArgument):
        install_deploy(b"", [], params=_params(owner), payment_motes=5)


def test_builder_preconditions(owner):
    with pytest.raises(InvalidArgument):
        contract_call(CONTRACT, "", [], params=_params(owner), payment_motes=1)
    with pytest.raises(InvalidArgument):
        contract_call(b"\x01" * 31, "x", [], params=_params(owner), payment_motes=1)
    with pytest.raises(InvalidArgument):
        contract_call(CONTRACT, "x", [], params=_params(owner, ttl_ms=0), payment_motes=1)
    with pytest.raises(InvalidArgument):
        payment(-1)
    with pytest.raises(InvalidArgument):
        payment(True)
    with pytest.raises(InvalidArgument):
        named_args([("amount", 5)])


def test_ed25519_approval(owner):
    deploy = _transfer(owner)
    approval = deploy.approve(owner)
    assert approval.signer == owner.public_key
    assert approval.signature[0] == 1
    assert len(approval.signature) == 65
    assert owner.verify(deploy.hash, approval.signature[1:])
    assert not owner.verify(b"\x00" * 32, approval.signature[1:])


def test_secp256k1_approval(secp_user):
    deploy = _transfer(secp_user)
    approval = deploy.approve(secp_user)
    assert approval.signature[0] == 2
    assert len(approval.signature) == 65
    assert secp_user.verify(deploy.hash, approval.signature[1:])
    assert len(secp_user.public_key.raw) == 33


def test_ttl_and_timestamp_renderings():
    assert format_ttl(1_800_000) == "30m"
    assert format_ttl(90_000) == "1m 30s"
    assert parse_ttl("1m 30s") == 90_000
    assert parse_ttl("2h") == 7_200_000
    with pytest.raises(ValueError):
        parse_ttl("forever")
    with pytest.raises(ValueError):
        parse_ttl("5 parsecs")
    assert format_timestamp(0) == "1970-01-01T00:00:00.000Z"
    assert parse_timestamp(format_timestamp(TIMESTAMP)) == TIMESTAMP
